"""
Shim generator for spliced closed functions.

Generates the one-line statement that replaces a closed block in the host:
it materializes the bundle through the process-wide runtime cache and
forwards the host function's own arguments to the bundle's entry point.
"""

import ast
from typing import List

from closed_function.domain.entities import IsolatedFunction
from closed_function.domain.value_objects import BuildMode, FunctionKind


RUNTIME_MODULE = "closed_function.runtime"
YIELD_NAME = "__closed_item__"


def forward_arguments(args: ast.arguments) -> str:
    """
    Rebuild a call argument list from a function signature.

    Examples:
        >>> tree = ast.parse("def f(self, a, /, b, *rest, c, **extra): pass")
        >>> forward_arguments(tree.body[0].args)
        'self, a, b, *rest, c=c, **extra'
    """
    parts: List[str] = [a.arg for a in args.posonlyargs]
    parts.extend(a.arg for a in args.args)
    if args.vararg is not None:
        parts.append(f"*{args.vararg.arg}")
    parts.extend(f"{a.arg}={a.arg}" for a in args.kwonlyargs)
    if args.kwarg is not None:
        parts.append(f"**{args.kwarg.arg}")
    return ", ".join(parts)


def generate_python_shim(
    function: IsolatedFunction,
    fingerprint: str,
    payload: str,
    mode: BuildMode,
) -> str:
    """
    Generate the shim statement for a closed function.

    The statement has no leading indentation and fits on one line so it can
    take the placeholder's place without shifting any other line.

    Args:
        function: The closed function being replaced
        fingerprint: Build fingerprint the bundle is cached under
        payload: Encoded bundle text
        mode: Host build mode, selects the compile optimize level

    Returns:
        One line of Python
    """
    runtime = f"__import__({RUNTIME_MODULE!r}, fromlist=('materialize',))"
    call = (
        f"{runtime}.materialize({fingerprint!r}, {payload!r}, optimize={mode.optimize_level})"
        f"({forward_arguments(function.arguments)})"
    )

    if function.kind is FunctionKind.ASYNC_GENERATOR:
        return f"async for {YIELD_NAME} in {call}: yield {YIELD_NAME}"
    if function.kind is FunctionKind.COROUTINE:
        return f"return await {call}"
    return f"return {call}"
