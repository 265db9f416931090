"""
Source Tree Build

A minimal host pipeline over a directory of Python modules. It records
dependency edges, fires the compilation hooks in order and writes the final
module texts plus the dependency graph.
"""

import ast
import hashlib
import io
import json
import time
import tokenize
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

from closed_function.domain.entities import HostModule
from closed_function.domain.errors import ClosedBlockError
from closed_function.domain.services import absolute_import_name
from closed_function.domain.value_objects import BuildMode, DependencyEdge, LineIndex
from closed_function.infrastructure.logging.logging_config import get_logger
from closed_function.interfaces.hooks import Compilation, CompilationOptions


logger = get_logger()

GRAPH_FILE = "dependency-graph.json"


def module_id_for(relative_path: Path) -> str:
    """Dotted module id of a source file relative to the tree root."""
    parts = list(relative_path.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def build_fingerprint(relative_path: str, mode: BuildMode, text: str) -> str:
    digest = hashlib.sha256()
    for chunk in (relative_path, mode.value, text):
        digest.update(chunk.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()[:16]


def strip_comments(text: str) -> str:
    """
    Remove comments without moving any code.

    Every line stays where it was; columns before a comment are unchanged.
    Text that does not tokenize is returned as is.
    """
    lines = io.StringIO(text).readlines()
    try:
        comments = [
            token.start
            for token in tokenize.generate_tokens(io.StringIO(text).readline)
            if token.type == tokenize.COMMENT
        ]
    except (tokenize.TokenError, SyntaxError) as e:
        logger.debug("Comment stripping skipped", error=str(e))
        return text

    for row, column in comments:
        line = lines[row - 1]
        ending = line[len(line.rstrip("\r\n")):]
        lines[row - 1] = line[:column].rstrip() + ending
    return "".join(lines)


class DependencyScanner:
    """
    Records the dependency edges of a module.

    One edge per module named by an import statement, located on the whole
    statement, and one edge per load of a name bound by a module-level
    import, located on that name. Only modules of the same source tree are
    resolved as targets.
    """

    def __init__(self, module_ids: Set[str]):
        self.module_ids = module_ids

    def resolve(self, name: Optional[str]) -> Optional[str]:
        return name if name in self.module_ids else None

    def scan(self, module_id: str, text: str, is_package: bool = False) -> List[DependencyEdge]:
        """
        Scan a module text.

        Args:
            module_id: Dotted id of the module
            text: Module text
            is_package: True for a package's __init__.py

        Returns:
            Edges in source order; empty for text that does not parse
        """
        try:
            tree = ast.parse(text)
        except SyntaxError:
            return []

        index = LineIndex(text)
        edges: List[DependencyEdge] = []
        bound: Dict[str, Optional[str]] = {}

        for node in ast.walk(tree):
            if not isinstance(node, (ast.Import, ast.ImportFrom)):
                continue
            loc = index.node_location(node)
            top_level = node in tree.body
            if isinstance(node, ast.Import):
                for alias in node.names:
                    target = self.resolve(alias.name)
                    edges.append(DependencyEdge(request=alias.name, loc=loc, target=target))
                    if top_level:
                        local = alias.asname or alias.name.split(".")[0]
                        bound[local] = target if alias.asname else self.resolve(local)
            else:
                absolute = absolute_import_name(module_id, is_package, node)
                request = "." * node.level + (node.module or "")
                edges.append(DependencyEdge(request=request, loc=loc, target=self.resolve(absolute)))
                if top_level:
                    for alias in node.names:
                        if alias.name == "*":
                            continue
                        if absolute is None:
                            bound[alias.asname or alias.name] = None
                            continue
                        submodule = f"{absolute}.{alias.name}" if absolute else alias.name
                        bound[alias.asname or alias.name] = self.resolve(submodule) or self.resolve(absolute)

        for node in ast.walk(tree):
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load) and node.id in bound:
                edges.append(
                    DependencyEdge(
                        request=node.id,
                        loc=index.node_location(node),
                        target=bound[node.id],
                    )
                )

        edges.sort(key=lambda edge: edge.loc.start)
        return edges


@dataclass
class BuildReport:
    """Outcome of a source tree build."""

    modules: List[HostModule] = field(default_factory=list)
    errors: List[ClosedBlockError] = field(default_factory=list)
    graph: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.errors


class SourceTreeBuild:
    """
    Host pipeline over a source directory.

    Phases:
    1. Discover modules and record their dependency edges
    2. Fire build_module for each module, then load its (possibly redirected) text
    3. Await finish_modules
    4. Fire optimize_dependencies
    5. Write module texts and the dependency graph
    """

    def __init__(
        self,
        source_root: Path,
        output_root: Path,
        options: Optional[CompilationOptions] = None,
        plugins: Sequence[Any] = (),
    ):
        """
        Initialize the build.

        Args:
            source_root: Directory scanned for *.py files
            output_root: Directory receiving the built tree
            options: Compilation options, defaults to mode "none"
            plugins: Objects with an `apply(compilation)` method
        """
        self.source_root = Path(source_root)
        self.output_root = Path(output_root)
        self.options = options or CompilationOptions()
        self.plugins = list(plugins)
        self.options.plugins = list(self.plugins)

    def discover(self) -> List[Path]:
        return sorted(
            path
            for path in self.source_root.rglob("*.py")
            if "__pycache__" not in path.parts
        )

    def load(self, module: HostModule) -> str:
        """Read the module's current resource, transformed for the build mode."""
        text = module.resource_path.read_text(encoding="utf-8")
        if self.options.mode is BuildMode.PRODUCTION:
            text = strip_comments(text)
        return text

    async def run(self) -> BuildReport:
        """
        Run every phase.

        Returns:
            BuildReport with the final modules, collected errors and the graph
        """
        started = time.perf_counter()
        compilation = Compilation(options=self.options)
        for plugin in self.plugins:
            plugin.apply(compilation)

        paths = self.discover()
        relatives = [path.relative_to(self.source_root) for path in paths]
        scanner = DependencyScanner({module_id_for(rel) for rel in relatives})

        for path, relative in zip(paths, relatives):
            text = path.read_text(encoding="utf-8")
            module_id = module_id_for(relative)
            module = HostModule(
                module_id=module_id,
                resource_path=path,
                source_text=text,
                build_fingerprint=build_fingerprint(relative.as_posix(), self.options.mode, text),
                dependencies=scanner.scan(module_id, text, is_package=path.name == "__init__.py"),
            )
            compilation.modules.append(module)
            compilation.hooks.build_module.call(module)
            module.source_text = self.load(module)

        await compilation.hooks.finish_modules.promise(compilation.modules)
        compilation.hooks.optimize_dependencies.call(compilation.modules)

        graph = {
            module.module_id: [edge.to_dict() for edge in module.dependencies]
            for module in compilation.modules
        }
        self.write(compilation.modules, graph)

        report = BuildReport(
            modules=compilation.modules,
            errors=list(compilation.errors),
            graph=graph,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        logger.info(
            "Build finished",
            modules=len(report.modules),
            errors=len(report.errors),
            mode=self.options.mode.value,
            duration_ms=report.duration_ms,
        )
        return report

    def write(self, modules: List[HostModule], graph: Dict[str, List[Dict[str, Any]]]) -> None:
        self.output_root.mkdir(parents=True, exist_ok=True)
        for module in modules:
            target = self.output_root / module.resource_path.relative_to(self.source_root)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(module.source_text, encoding="utf-8")
        (self.output_root / GRAPH_FILE).write_text(json.dumps(graph, indent=2), encoding="utf-8")
