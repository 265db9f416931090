"""
Closed Block Entities

Core domain entities for host modules and the closed functions extracted
from them.
"""

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from closed_function.domain.errors import ClosedBlockError
from closed_function.domain.value_objects import (
    BundleArtifact,
    DependencyEdge,
    FunctionKind,
    TextSpan,
)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


@dataclass(eq=False)
class HostModule:
    """
    A module owned by the host build pipeline.

    The plugin may redirect `resource_path` and rewrite `source_text`; the
    dependency list is ordered, may contain duplicates and is only ever
    shrunk through `remove_dependency`.
    """

    module_id: str
    resource_path: Path
    source_text: str = ""
    build_fingerprint: str = ""
    dependencies: List[DependencyEdge] = field(default_factory=list)

    def remove_dependency(self, edge: DependencyEdge) -> bool:
        """
        Remove one edge by identity.

        Returns:
            True if the edge was present and removed
        """
        for index, candidate in enumerate(self.dependencies):
            if candidate is edge:
                del self.dependencies[index]
                return True
        return False

    @property
    def is_python_source(self) -> bool:
        return self.resource_path.suffix == ".py"


@dataclass
class IsolatedFunction:
    """
    The function whose body is the closed block.

    Spans are character offsets into the original host text. `function_span`
    starts at `def`/`async` (decorators are outside of it) and
    `marker_span` covers the whole `with __closed__:` statement.
    """

    node: FunctionNode
    marker: ast.With
    name: str
    kind: FunctionKind
    function_span: TextSpan
    marker_span: TextSpan
    marker_line_count: int

    @property
    def is_async(self) -> bool:
        return isinstance(self.node, ast.AsyncFunctionDef)

    @property
    def arguments(self) -> ast.arguments:
        return self.node.args


@dataclass
class ExtractionResult:
    """Imports, the closed function if any, and the structural errors found."""

    imports: List[ast.stmt] = field(default_factory=list)
    function: Optional[IsolatedFunction] = None
    errors: List[ClosedBlockError] = field(default_factory=list)

    @property
    def has_closed_block(self) -> bool:
        return self.function is not None and not self.errors


@dataclass
class SatelliteUnit:
    """
    Synthetic module holding the imports and the closed function.

    Attributes:
        resource_path: Where the satellite text was written
        source_text: Satellite text
        placeholder: Identifier spliced into the host where the marker was
        function: The function the satellite was built from
        host_resource: Original host resource, restored after mounting
        build_fingerprint: Fingerprint of the host module
        emitted_path: Checked and emitted copy, set by the build step
    """

    resource_path: Path
    source_text: str
    placeholder: str
    function: IsolatedFunction
    host_resource: Path
    build_fingerprint: str
    emitted_path: Optional[Path] = None

    @property
    def host_label(self) -> str:
        return self.host_resource.name


@dataclass
class BuildOutcome:
    """Result of one nested build: an artifact, or the errors that prevented it."""

    artifact: Optional[BundleArtifact] = None
    errors: List[ClosedBlockError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None and not self.errors
