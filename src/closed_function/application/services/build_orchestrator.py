"""
Nested Build Orchestrator

Compiles a satellite unit in isolation and bundles it into one
self-contained artifact.
"""

import time
from pathlib import Path
from typing import List

import structlog

from closed_function.domain.entities import BuildOutcome, SatelliteUnit
from closed_function.domain.errors import (
    CaptureViolationError,
    ClosedBlockError,
    NestedBuildError,
)
from closed_function.domain.ports import IBundlerPort, ITypeCheckerPort
from closed_function.domain.value_objects import (
    BundleArtifact,
    BundleOptions,
    BundleRequest,
)


logger = structlog.get_logger(__name__)

CAPTURE_MESSAGE = (
    'closed block of "{file}": {message}; '
    "a closed block cannot capture anything outside its scope"
)


class NestedBuildOrchestrator:
    """
    Runs the compile and bundle steps for one satellite.

    Only unresolved names fail the compile step; every other checker finding
    is ignored since the satellite is mechanical output, not authored code.
    Errors are returned on the outcome, never raised.
    """

    def __init__(
        self,
        checker: ITypeCheckerPort,
        bundler: IBundlerPort,
        work_dir: Path,
    ):
        """
        Initialize the orchestrator.

        Args:
            checker: Port used to parse, diagnose and emit the satellite
            bundler: Port used to bundle the emitted satellite
            work_dir: Private directory of the mount command
        """
        self._checker = checker
        self._bundler = bundler
        self.work_dir = work_dir

    def compile(self, satellite: SatelliteUnit) -> List[ClosedBlockError]:
        """
        Check the satellite for captures and emit it.

        Sets `satellite.emitted_path` on success.

        Returns:
            Capture violations or emit failures, empty on success
        """
        filename = str(satellite.resource_path)
        host_file = str(satellite.host_resource)

        try:
            tree = self._checker.parse(filename, satellite.source_text)
        except SyntaxError as e:
            return [
                NestedBuildError(
                    f'closed block of "{host_file}" does not compile',
                    detail=f"{e.msg} at line {e.lineno}",
                )
            ]

        violations: List[ClosedBlockError] = [
            CaptureViolationError(
                CAPTURE_MESSAGE.format(file=host_file, message=diagnostic.message),
                name=diagnostic.code,
                line=diagnostic.line,
            )
            for diagnostic in self._checker.diagnostics(tree, filename)
            if diagnostic.is_unresolved_name
        ]
        if violations:
            logger.info(
                "Capture violations found",
                module=host_file,
                count=len(violations),
            )
            return violations

        emit_path = self.work_dir / "emit" / f"{satellite.host_resource.stem}.py"
        try:
            satellite.emitted_path = self._checker.emit(satellite.source_text, emit_path)
        except (SyntaxError, OSError) as e:
            return [NestedBuildError(f'cannot emit closed block of "{host_file}"', detail=str(e))]
        return []

    async def bundle(self, satellite: SatelliteUnit, options: BundleOptions) -> BuildOutcome:
        """
        Bundle an emitted satellite.

        Every bundler failure collapses into one NestedBuildError.

        Args:
            satellite: Satellite with `emitted_path` set
            options: Derived nested build options

        Returns:
            BuildOutcome with the artifact or a single error
        """
        host_file = str(satellite.host_resource)
        output_path = self.work_dir / "dist" / f"bundle-{satellite.build_fingerprint}.py"
        output_path.parent.mkdir(parents=True, exist_ok=True)

        request = BundleRequest(
            entry_path=satellite.emitted_path,
            output_path=output_path,
            options=options,
        )

        try:
            result = await self._bundler.bundle(request)
        except Exception as e:
            logger.error("Bundler raised", module=host_file, error=str(e))
            return BuildOutcome(
                errors=[NestedBuildError(f'bundling closed block of "{host_file}" failed', detail=str(e))]
            )

        if not result.success:
            return BuildOutcome(
                errors=[
                    NestedBuildError(
                        f'bundling closed block of "{host_file}" failed',
                        detail="; ".join(result.diagnostics) or None,
                    )
                ]
            )

        artifact_path = result.output_path or output_path
        if not artifact_path.is_file():
            return BuildOutcome(
                errors=[
                    NestedBuildError(
                        f'bundling closed block of "{host_file}" produced no output',
                        detail=str(artifact_path),
                    )
                ]
            )

        return BuildOutcome(
            artifact=BundleArtifact(
                build_fingerprint=satellite.build_fingerprint,
                text=artifact_path.read_text(encoding="utf-8"),
                path=artifact_path,
            )
        )

    async def build(self, satellite: SatelliteUnit, options: BundleOptions) -> BuildOutcome:
        """
        Compile then bundle; bundling is skipped when compiling fails.

        Args:
            satellite: Satellite to build
            options: Derived nested build options

        Returns:
            BuildOutcome
        """
        started = time.perf_counter()
        errors = self.compile(satellite)
        if errors:
            return BuildOutcome(errors=errors)

        outcome = await self.bundle(satellite, options)
        logger.info(
            "Nested build finished",
            module=str(satellite.host_resource),
            fingerprint=satellite.build_fingerprint,
            success=outcome.succeeded,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return outcome
