"""
Closed Block Value Objects

Immutable value objects shared by the extraction, build, splice and pruning
stages.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple


class BuildMode(str, Enum):
    """Build mode of the host pipeline, forwarded to the nested build."""

    NONE = "none"
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @property
    def optimize_level(self) -> int:
        """`compile()` optimize level used when the bundle is materialized."""
        return {
            BuildMode.NONE: -1,
            BuildMode.DEVELOPMENT: 0,
            BuildMode.PRODUCTION: 1,
        }[self]


class FunctionKind(str, Enum):
    """How the closed function must be re-invoked by the shim."""

    FUNCTION = "function"
    COROUTINE = "coroutine"
    ASYNC_GENERATOR = "async_generator"


class DiagnosticCategory(str, Enum):
    """Checker diagnostic categories relevant to the closed-block build."""

    UNRESOLVED_NAME = "unresolved_name"
    OTHER = "other"


@dataclass(frozen=True, order=True)
class Position:
    """
    A point in a source text.

    Attributes:
        line: 1-based line number
        column: 0-based character column
    """

    line: int
    column: int

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True)
class SourceLocation:
    """A contiguous range of a source text, from start to end (exclusive column)."""

    start: Position
    end: Position

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError("SourceLocation end cannot precede start")

    @property
    def is_single_line(self) -> bool:
        return self.start.line == self.end.line

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


@dataclass(frozen=True)
class TextSpan:
    """Half-open character offset range [start, end) into one text."""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class DependencyEdge:
    """
    One static reference from a host module to another module.

    Attributes:
        request: Raw token written at `loc` (module name or bound import name)
        loc: Where the reference was recorded, against the text it was scanned from
        target: Resolved target module id, None for external/unresolved references
    """

    request: str
    loc: SourceLocation
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "request": self.request,
            "loc": self.loc.to_dict(),
            "target": self.target,
        }


@dataclass(frozen=True)
class Diagnostic:
    """
    A checker finding on a satellite unit.

    Attributes:
        code: Checker-specific code (e.g. the pyflakes message class name)
        category: Whether this is an unresolved name or anything else
        message: Human readable message
        filename: File the checker was run against
        line: 1-based line
        column: 0-based column
    """

    code: str
    category: DiagnosticCategory
    message: str
    filename: str
    line: int = 0
    column: int = 0

    @property
    def is_unresolved_name(self) -> bool:
        return self.category is DiagnosticCategory.UNRESOLVED_NAME

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}: {self.message}"


@dataclass(frozen=True)
class BundleOptions:
    """
    Configuration derived from the host build for a nested build.

    Attributes:
        python_paths: Roots used to resolve the satellite's imports
        mode: Host build mode
        plugins: Host plugins, never including the closed-function plugin itself
    """

    python_paths: Tuple[str, ...] = ()
    mode: BuildMode = BuildMode.NONE
    plugins: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class BundleRequest:
    """Input handed to the bundler port."""

    entry_path: Path
    output_path: Path
    options: BundleOptions = field(default_factory=BundleOptions)


@dataclass(frozen=True)
class BundleResult:
    """
    Output of the bundler port.

    Attributes:
        success: True when the bundler produced an artifact
        output_path: Where the artifact was written
        diagnostics: Bundler messages, non-empty on failure
    """

    success: bool
    output_path: Optional[Path] = None
    diagnostics: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BundleArtifact:
    """Self-contained bundle text, addressed by the host module's fingerprint."""

    build_fingerprint: str
    text: str
    path: Optional[Path] = None


_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class LineIndex:
    """
    Line/column arithmetic over one source text.

    Lines are split the way the Python tokenizer splits them (\\r\\n, \\r, \\n),
    which `str.splitlines` does not do.
    """

    def __init__(self, text: str):
        self.text = text
        self._starts: List[int] = [0]
        self._lines: List[str] = []
        position = 0
        for match in _LINE_BREAK.finditer(text):
            self._lines.append(text[position:match.start()])
            position = match.end()
            self._starts.append(position)
        self._lines.append(text[position:])

    def __len__(self) -> int:
        return len(self._lines)

    def line(self, lineno: int) -> str:
        """Return line `lineno` (1-based) without its line break, '' when out of range."""
        if 1 <= lineno <= len(self._lines):
            return self._lines[lineno - 1]
        return ""

    def char_column(self, lineno: int, byte_column: int) -> int:
        """Convert an `ast` UTF-8 byte column to a character column."""
        encoded = self.line(lineno).encode("utf-8")
        return len(encoded[:byte_column].decode("utf-8", errors="replace"))

    def offset(self, lineno: int, byte_column: int) -> int:
        """Character offset of an `ast` (lineno, col_offset) pair."""
        if not 1 <= lineno <= len(self._starts):
            raise IndexError(f"line {lineno} outside of text with {len(self._starts)} lines")
        return self._starts[lineno - 1] + self.char_column(lineno, byte_column)

    def position(self, lineno: int, byte_column: int) -> Position:
        return Position(line=lineno, column=self.char_column(lineno, byte_column))

    def node_span(self, node: Any) -> TextSpan:
        """Character span covered by an `ast` node with location info."""
        return TextSpan(
            start=self.offset(node.lineno, node.col_offset),
            end=self.offset(node.end_lineno, node.end_col_offset),
        )

    def node_location(self, node: Any) -> SourceLocation:
        return SourceLocation(
            start=self.position(node.lineno, node.col_offset),
            end=self.position(node.end_lineno, node.end_col_offset),
        )

    def slice(self, loc: SourceLocation) -> str:
        """
        Text covered by `loc`.

        A single-line location yields the column sub-string. A multi-line one
        joins the first line's tail, the full middle lines and the last line's
        head with '\\n'. Lines past the end of the text contribute ''.
        """
        if loc.is_single_line:
            return self.line(loc.start.line)[loc.start.column:loc.end.column]
        parts = [self.line(loc.start.line)[loc.start.column:]]
        for lineno in range(loc.start.line + 1, loc.end.line):
            parts.append(self.line(lineno))
        parts.append(self.line(loc.end.line)[:loc.end.column])
        return "\n".join(parts)
