"""
Satellite Synthesizer

Turns an extracted closed function into a standalone satellite module and
strips its body out of the host.
"""

import ast
import re
import uuid
from pathlib import Path
from typing import List

import structlog

from closed_function.application.services.splice_service import replace_span
from closed_function.domain.entities import ExtractionResult, HostModule, SatelliteUnit
from closed_function.domain.errors import InternalInvariantError
from closed_function.domain.services import ENTRY_NAME, absolute_import_name
from closed_function.domain.value_objects import LineIndex


logger = structlog.get_logger(__name__)

MARKER_PATTERN = re.compile(r"^\s*with(?:\s+|\s*\()\s*__closed__\b", re.MULTILINE)
PLACEHOLDER_PREFIX = "__closed_placeholder_"

SATELLITE_INDENT = "    "


def may_contain_marker(resource_path: Path, text: str) -> bool:
    """Cheap textual gate run before any parsing."""
    return resource_path.suffix == ".py" and MARKER_PATTERN.search(text) is not None


def new_placeholder() -> str:
    return f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}__"


class SatelliteSynthesizer:
    """
    Builds satellite units for host modules.

    Each synthesis writes two files to the work directory: the satellite
    itself and the stripped host, whose path replaces the host module's
    resource for the rest of the build.
    """

    def __init__(self, work_dir: Path):
        """
        Initialize the synthesizer.

        Args:
            work_dir: Private directory of the current plugin run
        """
        self.work_dir = work_dir

    def build_satellite_text(
        self,
        source: str,
        extraction: ExtractionResult,
        module_id: str = "",
        is_package: bool = False,
    ) -> str:
        """
        Compose the satellite module text.

        Relative imports are rewritten to absolute ones, since the satellite
        is built as a top-level script outside the host's package.

        Args:
            source: Original host text
            extraction: Successful extraction of that text
            module_id: Dotted id of the host module
            is_package: True when the host is a package's __init__.py

        Returns:
            Imports, function header, unwrapped body and the entry binding
        """
        function = extraction.function
        if function is None:
            raise InternalInvariantError("no isolated function to synthesize")

        index = LineIndex(source)
        parts: List[str] = []

        imports = [
            self._import_text(source, index, node, module_id, is_package)
            for node in extraction.imports
            if not (isinstance(node, ast.ImportFrom) and node.module == "__future__")
        ]
        if imports:
            parts.append("\n".join(imports) + "\n\n")

        header = source[function.function_span.start:function.marker_span.start].rstrip()
        parts.append(header + "\n")
        parts.append(self._unwrap_body(source, index, function.marker) + "\n")
        parts.append(f"\n\n{ENTRY_NAME} = {function.name}\n")
        return "".join(parts)

    def _import_text(
        self,
        source: str,
        index: LineIndex,
        node: ast.stmt,
        module_id: str,
        is_package: bool,
    ) -> str:
        span = index.node_span(node)
        if not isinstance(node, ast.ImportFrom) or not node.level:
            return source[span.start:span.end]

        absolute = absolute_import_name(module_id, is_package, node)
        if not absolute:
            # Left as written; the nested build reports it
            return source[span.start:span.end]
        names = ", ".join(
            f"{alias.name} as {alias.asname}" if alias.asname else alias.name
            for alias in node.names
        )
        return f"from {absolute} import {names}"

    def _unwrap_body(self, source: str, index: LineIndex, marker: ast.With) -> str:
        first, last = marker.body[0], marker.body[-1]
        if first.lineno == marker.lineno:
            # `with __closed__: return x` style
            start = index.offset(first.lineno, first.col_offset)
            end = index.offset(last.end_lineno, last.end_col_offset)
            return SATELLITE_INDENT + source[start:end]
        return "\n".join(index.line(n) for n in range(first.lineno, last.end_lineno + 1))

    def strip_host(self, source: str, extraction: ExtractionResult, placeholder: str) -> str:
        """Replace the marker with the placeholder, keeping the line count."""
        function = extraction.function
        padding = "\n" * (function.marker_line_count - 1)
        return replace_span(source, function.marker_span, placeholder + padding)

    def synthesize(
        self,
        module: HostModule,
        source: str,
        extraction: ExtractionResult,
        build_fingerprint: str,
    ) -> SatelliteUnit:
        """
        Write the satellite and the stripped host, and redirect the module.

        Args:
            module: Host module, mutated in place
            source: Original host text
            extraction: Successful extraction of `source`
            build_fingerprint: Fingerprint the bundle will be keyed by

        Returns:
            SatelliteUnit remembering the host's original resource
        """
        satellite_text = self.build_satellite_text(
            source,
            extraction,
            module_id=module.module_id,
            is_package=module.resource_path.name == "__init__.py",
        )
        placeholder = new_placeholder()
        stripped_text = self.strip_host(source, extraction, placeholder)

        unit_id = uuid.uuid4().hex
        self.work_dir.mkdir(parents=True, exist_ok=True)
        satellite_path = self.work_dir / f"satellite-{unit_id}.py"
        stripped_path = self.work_dir / f"stripped-{unit_id}.py"
        satellite_path.write_text(satellite_text, encoding="utf-8")
        stripped_path.write_text(stripped_text, encoding="utf-8")

        host_resource = module.resource_path
        module.resource_path = stripped_path
        module.source_text = stripped_text

        logger.debug(
            "Satellite synthesized",
            module=module.module_id,
            function=extraction.function.name,
            kind=extraction.function.kind.value,
            satellite=str(satellite_path),
        )

        return SatelliteUnit(
            resource_path=satellite_path,
            source_text=satellite_text,
            placeholder=placeholder,
            function=extraction.function,
            host_resource=host_resource,
            build_fingerprint=build_fingerprint,
        )
