"""
Unit tests for Domain Value Objects and Entities.

Tests the immutable value objects and the host module entity.
"""

import ast

import pytest

from closed_function.domain.entities import HostModule
from closed_function.domain.value_objects import (
    BuildMode,
    DependencyEdge,
    Diagnostic,
    DiagnosticCategory,
    LineIndex,
    Position,
    SourceLocation,
    TextSpan,
)


def loc(start_line, start_col, end_line, end_col):
    return SourceLocation(Position(start_line, start_col), Position(end_line, end_col))


class TestBuildMode:
    """Tests for BuildMode value object."""

    def test_optimize_levels(self):
        assert BuildMode.NONE.optimize_level == -1
        assert BuildMode.DEVELOPMENT.optimize_level == 0
        assert BuildMode.PRODUCTION.optimize_level == 1

    def test_from_string(self):
        assert BuildMode("production") is BuildMode.PRODUCTION


class TestLocations:
    """Tests for Position, SourceLocation and TextSpan."""

    def test_positions_order_by_line_then_column(self):
        assert Position(1, 9) < Position(2, 0)
        assert Position(2, 1) > Position(2, 0)

    def test_location_end_cannot_precede_start(self):
        with pytest.raises(ValueError):
            loc(3, 0, 2, 0)

    def test_invalid_span(self):
        with pytest.raises(ValueError):
            TextSpan(5, 4)
        with pytest.raises(ValueError):
            TextSpan(-1, 4)

    def test_span_length(self):
        assert len(TextSpan(3, 10)) == 7

    def test_edge_to_dict(self):
        edge = DependencyEdge(request="dates", loc=loc(1, 0, 1, 12), target="dates")

        assert edge.to_dict() == {
            "request": "dates",
            "loc": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 12}},
            "target": "dates",
        }


class TestDiagnostic:
    """Tests for Diagnostic value object."""

    def test_unresolved_name(self):
        diagnostic = Diagnostic(
            code="UndefinedName",
            category=DiagnosticCategory.UNRESOLVED_NAME,
            message="undefined name 'x'",
            filename="sat.py",
            line=4,
            column=11,
        )

        assert diagnostic.is_unresolved_name
        assert str(diagnostic) == "sat.py:4:11: undefined name 'x'"

    def test_other_category(self):
        diagnostic = Diagnostic("UnusedImport", DiagnosticCategory.OTHER, "unused", "sat.py")
        assert not diagnostic.is_unresolved_name


class TestLineIndex:
    """Tests for LineIndex."""

    def test_splits_on_every_line_break_style(self):
        index = LineIndex("a\r\nb\rc\nd")

        assert len(index) == 4
        assert [index.line(n) for n in range(1, 5)] == ["a", "b", "c", "d"]

    def test_out_of_range_line_is_empty(self):
        index = LineIndex("only")
        assert index.line(0) == ""
        assert index.line(2) == ""

    def test_byte_columns_become_character_columns(self):
        text = "é = 'ü'\nx = 1\n"
        tree = ast.parse(text)
        value = tree.body[0].value

        span = LineIndex(text).node_span(value)

        assert text[span.start:span.end] == "'ü'"

    def test_offsets_on_later_lines(self):
        text = "a = 1\r\nbb = 2\n"
        tree = ast.parse(text)
        span = LineIndex(text).node_span(tree.body[1])

        assert text[span.start:span.end] == "bb = 2"

    def test_single_line_slice(self):
        index = LineIndex("import dates\nprint(dates.x)\n")
        assert index.slice(loc(2, 6, 2, 11)) == "dates"

    def test_multi_line_slice(self):
        index = LineIndex("from pkg import (\n    a,\n    b,\n)\n")
        assert index.slice(loc(1, 5, 4, 1)) == "pkg import (\n    a,\n    b,\n)"

    def test_slice_past_end_is_empty(self):
        index = LineIndex("x = 1\n")
        assert index.slice(loc(7, 0, 8, 4)) == "\n"
        assert index.slice(loc(7, 0, 7, 4)) == ""


class TestHostModule:
    """Tests for HostModule entity."""

    def test_remove_dependency_by_identity(self, tmp_path):
        first = DependencyEdge("dates", loc(1, 0, 1, 5), "dates")
        duplicate = DependencyEdge("dates", loc(1, 0, 1, 5), "dates")
        module = HostModule("host", tmp_path / "host.py", dependencies=[first, duplicate])

        assert module.remove_dependency(duplicate) is True

        assert len(module.dependencies) == 1
        assert module.dependencies[0] is first

    def test_remove_missing_dependency(self, tmp_path):
        module = HostModule("host", tmp_path / "host.py")
        assert module.remove_dependency(DependencyEdge("x", loc(1, 0, 1, 1))) is False

    def test_is_python_source(self, tmp_path):
        assert HostModule("a", tmp_path / "a.py").is_python_source
        assert not HostModule("a", tmp_path / "a.txt").is_python_source
