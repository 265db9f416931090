"""
Domain Services

Business logic services that don't naturally fit within entities or value objects.
"""

import ast
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from closed_function.domain.entities import (
    ExtractionResult,
    FunctionNode,
    HostModule,
    IsolatedFunction,
)
from closed_function.domain.errors import StructuralError
from closed_function.domain.value_objects import (
    DependencyEdge,
    FunctionKind,
    LineIndex,
)

MARKER_NAME = "__closed__"
ENTRY_NAME = "__closed_entry__"

SOLE_STATEMENT_MESSAGE = "marker must be the sole statement of a function body"
SINGLE_MARKER_MESSAGE = "marker may appear at most once per file"
BARE_MARKER_MESSAGE = "marker must be a bare `with __closed__:` statement"

_FUNCTION_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef)
_SCOPE_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)

# (node, parent, field name on the parent)
_Frame = Tuple[ast.AST, Optional[ast.AST], Optional[str]]


def _names_marker(item: ast.withitem) -> bool:
    expr = item.context_expr
    return isinstance(expr, ast.Name) and expr.id == MARKER_NAME


def _is_generator_body(body: List[ast.stmt]) -> bool:
    """True if `body` yields, ignoring nested function, lambda and class scopes."""
    stack: List[ast.AST] = [stmt for stmt in body if not isinstance(stmt, _SCOPE_TYPES)]
    while stack:
        node = stack.pop()
        if isinstance(node, (ast.Yield, ast.YieldFrom)):
            return True
        for child in ast.iter_child_nodes(node):
            if not isinstance(child, _SCOPE_TYPES):
                stack.append(child)
    return False


def absolute_import_name(module_id: str, is_package: bool, node: ast.ImportFrom) -> Optional[str]:
    """
    Absolute name of the module an ImportFrom statement reads from.

    Args:
        module_id: Dotted id of the importing module
        is_package: True when the importing module is a package's __init__.py
        node: The import statement

    Returns:
        The dotted name, or None when a relative import climbs above the
        top-level package
    """
    if not node.level:
        return node.module or ""
    base = module_id.split(".") if module_id else []
    if not is_package:
        base = base[:-1]
    drop = node.level - 1
    if drop >= len(base):
        return None
    base = base[: len(base) - drop]
    if node.module:
        base = base + node.module.split(".")
    return ".".join(base)


@dataclass
class _Accumulator:
    imports: List[ast.stmt] = field(default_factory=list)
    function: Optional[IsolatedFunction] = None
    markers_seen: int = 0
    errors: List[StructuralError] = field(default_factory=list)


class BlockExtractor:
    """
    Finds the single closed block of a host module.

    Walks the module depth first with an explicit stack, collecting the
    module-level imports and validating every `with __closed__:` statement.
    Problems are returned on the result, never raised.
    """

    def __init__(self, filename: str = "<unknown>"):
        self.filename = filename

    def extract(self, source: str, tree: Optional[ast.Module] = None) -> ExtractionResult:
        """
        Analyse a host module.

        Args:
            source: Host module text
            tree: Already parsed tree of `source`, parsed here when omitted

        Returns:
            ExtractionResult with imports, the isolated function (if any) and errors
        """
        if tree is None:
            try:
                tree = ast.parse(source, filename=self.filename)
            except SyntaxError as e:
                return ExtractionResult(
                    errors=[
                        StructuralError(
                            f"cannot parse {self.filename}",
                            detail=f"{e.msg} at line {e.lineno}",
                            filename=self.filename,
                        )
                    ]
                )

        index = LineIndex(source)
        acc = _Accumulator()
        stack: List[_Frame] = [(tree, None, None)]

        while stack:
            node, parent, field_name = stack.pop()

            if isinstance(parent, ast.Module) and isinstance(node, (ast.Import, ast.ImportFrom)):
                acc.imports.append(node)

            if isinstance(node, ast.With) and any(_names_marker(i) for i in node.items):
                self._visit_marker(node, parent, field_name, index, acc)
                # Never descend into a marker body
                for item in reversed(node.items):
                    stack.append((item, node, "items"))
                continue

            children: List[_Frame] = []
            for name, value in ast.iter_fields(node):
                if isinstance(value, list):
                    children.extend((v, node, name) for v in value if isinstance(v, ast.AST))
                elif isinstance(value, ast.AST):
                    children.append((value, node, name))
            stack.extend(reversed(children))

        return ExtractionResult(
            imports=acc.imports,
            function=acc.function if not acc.errors else None,
            errors=list(acc.errors),
        )

    def _visit_marker(
        self,
        marker: ast.With,
        parent: Optional[ast.AST],
        field_name: Optional[str],
        index: LineIndex,
        acc: _Accumulator,
    ) -> None:
        acc.markers_seen += 1
        if acc.markers_seen > 1:
            acc.errors.append(self._error(SINGLE_MARKER_MESSAGE, marker))
            return

        if len(marker.items) != 1 or marker.items[0].optional_vars is not None:
            acc.errors.append(self._error(BARE_MARKER_MESSAGE, marker))
            return

        if (
            not isinstance(parent, _FUNCTION_TYPES)
            or field_name != "body"
            or len(parent.body) != 1
        ):
            acc.errors.append(self._error(SOLE_STATEMENT_MESSAGE, marker))
            return

        acc.function = self._isolate(parent, marker, index)

    def _isolate(self, node: FunctionNode, marker: ast.With, index: LineIndex) -> IsolatedFunction:
        if isinstance(node, ast.AsyncFunctionDef):
            is_generator = _is_generator_body(marker.body)
            kind = FunctionKind.ASYNC_GENERATOR if is_generator else FunctionKind.COROUTINE
        else:
            kind = FunctionKind.FUNCTION

        return IsolatedFunction(
            node=node,
            marker=marker,
            name=node.name,
            kind=kind,
            function_span=index.node_span(node),
            marker_span=index.node_span(marker),
            marker_line_count=marker.end_lineno - marker.lineno + 1,
        )

    def _error(self, message: str, node: Any) -> StructuralError:
        return StructuralError(
            message,
            detail=f"{self.filename}:{node.lineno}",
            filename=self.filename,
            line=node.lineno,
        )


class DependencyPruner:
    """
    Drops dependency edges whose recorded location no longer shows the request.

    Splicing rewrites the host text, so edges recorded against the original
    text may now point at the shim. An edge is stale when the current text at
    its location does not contain its request.
    """

    def find_stale(self, module: HostModule) -> List[DependencyEdge]:
        """
        Compute stale edges without mutating the module.

        Args:
            module: Host module with its final source text

        Returns:
            Stale edges, in dependency order
        """
        index = LineIndex(module.source_text)
        snapshot = list(module.dependencies)

        stale: List[DependencyEdge] = []
        for edge in snapshot:
            if edge.target is None:
                continue
            if edge.request not in index.slice(edge.loc):
                stale.append(edge)

        stale_starts = {edge.loc.start for edge in stale}
        stale_ids = {id(edge) for edge in stale}
        for edge in snapshot:
            if id(edge) not in stale_ids and edge.loc.start in stale_starts:
                stale.append(edge)
                stale_ids.add(id(edge))

        return stale

    def prune(self, module: HostModule) -> List[DependencyEdge]:
        """
        Remove stale edges from the module.

        Returns:
            The removed edges
        """
        removed = self.find_stale(module)
        for edge in removed:
            module.remove_dependency(edge)
        return removed
