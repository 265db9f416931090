"""
Splice Engine

Puts a bundled closed function back into its host behind a runtime shim.
"""

import structlog

from closed_function.domain.entities import SatelliteUnit
from closed_function.domain.errors import InternalInvariantError
from closed_function.domain.value_objects import BuildMode, BundleArtifact, TextSpan
from closed_function.infrastructure.injection.code_wrapper import generate_python_shim
from closed_function.runtime import encode_bundle


logger = structlog.get_logger(__name__)


def replace_span(text: str, span: TextSpan, replacement: str) -> str:
    """Replace exactly the characters covered by `span`."""
    if span.end > len(text):
        raise InternalInvariantError(
            "span outside of text",
            detail=f"[{span.start}, {span.end}) in text of length {len(text)}",
        )
    return text[:span.start] + replacement + text[span.end:]


class SpliceEngine:
    """
    Replaces a satellite's placeholder in the current host text.

    The host text may have been rewritten since the placeholder was
    inserted, so the placeholder is located by name rather than by the
    offsets recorded at extraction time.
    """

    def locate(self, text: str, placeholder: str) -> TextSpan:
        """
        Find the placeholder statement.

        Raises:
            InternalInvariantError: Unless the placeholder occurs exactly once,
                preceded only by whitespace on its line
        """
        count = text.count(placeholder)
        if count != 1:
            raise InternalInvariantError(
                "placeholder must occur exactly once in the host text",
                detail=f"{placeholder} found {count} times",
            )

        start = text.index(placeholder)
        line_start = max(text.rfind("\n", 0, start), text.rfind("\r", 0, start)) + 1
        if text[line_start:start].strip(" \t"):
            raise InternalInvariantError(
                "placeholder is not a statement of its own",
                detail=placeholder,
            )
        return TextSpan(start, start + len(placeholder))

    def inject(
        self,
        text: str,
        satellite: SatelliteUnit,
        artifact: BundleArtifact,
        mode: BuildMode,
    ) -> str:
        """
        Splice the shim for `artifact` into `text`.

        Args:
            text: Current host text, containing the satellite's placeholder
            satellite: Satellite the artifact was built from
            artifact: Bundle artifact
            mode: Host build mode

        Returns:
            Final host text

        Raises:
            InternalInvariantError: On fingerprint mismatch or a bad placeholder
        """
        if artifact.build_fingerprint != satellite.build_fingerprint:
            raise InternalInvariantError(
                "artifact does not belong to this satellite",
                detail=f"{artifact.build_fingerprint} != {satellite.build_fingerprint}",
            )

        span = self.locate(text, satellite.placeholder)
        shim = generate_python_shim(
            satellite.function,
            fingerprint=artifact.build_fingerprint,
            payload=encode_bundle(artifact.text),
            mode=mode,
        )
        logger.debug(
            "Shim spliced",
            function=satellite.function.name,
            fingerprint=artifact.build_fingerprint,
            shim_length=len(shim),
        )
        return replace_span(text, span, shim)
