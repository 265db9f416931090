"""
Stickytape bundler adapter.

Implements IBundlerPort with stickytape's module discovery: every local
module the emitted satellite imports, directly or transitively, is inlined
into one self-contained bundle.
"""

import ast
import asyncio
from pathlib import PurePosixPath
from typing import Dict, List, Tuple

import stickytape

from closed_function.domain.ports import IBundlerPort
from closed_function.domain.value_objects import BundleRequest, BundleResult
from closed_function.infrastructure.logging.logging_config import get_logger
from closed_function.runtime import render_bundle


logger = get_logger()

WRITE_MODULE = "__stickytape_write_module"


def inlined_modules(script: str) -> Dict[str, Tuple[bool, str]]:
    """
    Read the modules a stickytape script would write to disk.

    Args:
        script: Output of `stickytape.script`

    Returns:
        Module name -> (is_package, source text)

    Raises:
        SyntaxError: If the script does not parse
        ValueError: If a module write does not carry literal arguments
    """
    modules: Dict[str, Tuple[bool, str]] = {}
    for node in ast.walk(ast.parse(script)):
        if not (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == WRITE_MODULE
        ):
            continue
        if len(node.args) != 2:
            raise ValueError(f"unexpected {WRITE_MODULE} call at line {node.lineno}")

        path = ast.literal_eval(node.args[0])
        contents = ast.literal_eval(node.args[1])
        if isinstance(contents, bytes):
            contents = contents.decode("utf-8")

        parts = PurePosixPath(path.replace("\\", "/")).with_suffix("").parts
        is_package = parts[-1] == "__init__"
        if is_package:
            parts = parts[:-1]
        modules[".".join(parts)] = (is_package, contents)
    return modules


class StickytapeBundler(IBundlerPort):
    """
    Bundles satellites with stickytape.

    Modules found on `options.python_paths` are inlined; anything else
    (stdlib, installed distributions) is left as a plain import. The bundle
    is executed by the runtime's private module registry rather than by
    stickytape's own temp-dir loader, so it touches neither `sys.path` nor
    `sys.modules`. stickytape is synchronous, so each call runs in a worker
    thread.
    """

    async def bundle(self, request: BundleRequest) -> BundleResult:
        try:
            text = await asyncio.to_thread(self._bundle_text, request)
        except (OSError, SyntaxError, ValueError) as e:
            logger.warning(
                "stickytape failed",
                entry=str(request.entry_path),
                error=str(e),
            )
            return BundleResult(success=False, diagnostics=(f"{type(e).__name__}: {e}",))

        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        request.output_path.write_text(text, encoding="utf-8")
        return BundleResult(success=True, output_path=request.output_path)

    def _bundle_text(self, request: BundleRequest) -> str:
        paths: List[str] = list(request.options.python_paths)
        script = stickytape.script(str(request.entry_path), add_python_paths=paths)
        modules = inlined_modules(script)
        logger.debug(
            "Satellite bundled",
            entry=str(request.entry_path),
            inlined=sorted(modules),
        )
        return render_bundle(modules, request.entry_path.read_text(encoding="utf-8"))
