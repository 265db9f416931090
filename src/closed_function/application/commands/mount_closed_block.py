"""
Mount Closed Block Command

Per-module use case: extract and synthesize during module build, then
build and splice once all modules are known.
"""

import shutil
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import structlog

from closed_function.application.services.build_orchestrator import NestedBuildOrchestrator
from closed_function.application.services.splice_service import SpliceEngine
from closed_function.application.services.synthesizer import (
    SatelliteSynthesizer,
    may_contain_marker,
)
from closed_function.domain.entities import HostModule, SatelliteUnit
from closed_function.domain.errors import ClosedBlockError, InternalInvariantError
from closed_function.domain.ports import IBundlerPort, ITypeCheckerPort
from closed_function.domain.services import BlockExtractor
from closed_function.domain.value_objects import BuildMode, BundleOptions


logger = structlog.get_logger(__name__)


class MountClosedBlockCommand:
    """
    Command handler for mounting the closed block of one host module.

    Orchestrates the flow:
    1. Gate on a cheap marker pre-check
    2. Extract the closed function and synthesize the satellite
    3. Compile and bundle the satellite
    4. Splice the bundle back into the host text
    5. Restore the host's original resource
    """

    def __init__(
        self,
        module: HostModule,
        checker_port: ITypeCheckerPort,
        bundler_port: IBundlerPort,
        work_dir: Path,
        keep_intermediates: bool = False,
    ):
        """
        Initialize the mount command.

        Args:
            module: Host module to mount
            checker_port: Port for the compile step
            bundler_port: Port for the bundle step
            work_dir: Private directory of this command
            keep_intermediates: Leave work_dir in place after mounting
        """
        self.module = module
        self.work_dir = work_dir
        self.keep_intermediates = keep_intermediates
        self.satellite: Optional[SatelliteUnit] = None
        self._synthesizer = SatelliteSynthesizer(work_dir)
        self._orchestrator = NestedBuildOrchestrator(checker_port, bundler_port, work_dir)
        self._splice = SpliceEngine()

    @property
    def is_pending(self) -> bool:
        """True once a satellite waits to be mounted."""
        return self.satellite is not None

    def import_root(self) -> Path:
        """Directory the host's top-level package lives in."""
        resource = self.satellite.host_resource if self.satellite else self.module.resource_path
        depth = self.module.module_id.count(".")
        if resource.name == "__init__.py":
            depth += 1
        parents = resource.parents
        return parents[min(depth, len(parents) - 1)]

    def prepare(self, source: str) -> List[ClosedBlockError]:
        """
        Extract and synthesize, mutating the host module on success.

        Args:
            source: Original host text

        Returns:
            Structural errors; the module is left untouched when non-empty
        """
        if not may_contain_marker(self.module.resource_path, source):
            return []

        extractor = BlockExtractor(filename=str(self.module.resource_path))
        extraction = extractor.extract(source)
        if extraction.errors:
            logger.info(
                "Closed block rejected",
                module=self.module.module_id,
                errors=len(extraction.errors),
            )
            return list(extraction.errors)
        if extraction.function is None:
            return []

        self.satellite = self._synthesizer.synthesize(
            self.module,
            source,
            extraction,
            build_fingerprint=self.module.build_fingerprint,
        )
        return []

    async def mount(self, options: BundleOptions, mode: BuildMode) -> List[ClosedBlockError]:
        """
        Build the satellite and splice it into the host's current text.

        The original resource is restored whether mounting succeeds or not.

        Args:
            options: Nested build options derived from the host build
            mode: Host build mode

        Returns:
            Module-scoped errors, empty on success

        Raises:
            InternalInvariantError: If called before synthesis or the splice
                state is inconsistent
        """
        satellite = self.satellite
        if satellite is None:
            raise InternalInvariantError(
                "mount called before synthesis",
                detail=self.module.module_id,
            )

        extra_paths = [
            str(path)
            for path in dict.fromkeys((satellite.host_resource.parent, self.import_root()))
            if str(path) not in options.python_paths
        ]
        if extra_paths:
            options = replace(options, python_paths=(*options.python_paths, *extra_paths))

        try:
            outcome = await self._orchestrator.build(satellite, options)
            if outcome.errors:
                return list(outcome.errors)
            self.module.source_text = self._splice.inject(
                self.module.source_text,
                satellite,
                outcome.artifact,
                mode,
            )
            logger.info(
                "Closed block mounted",
                module=self.module.module_id,
                fingerprint=satellite.build_fingerprint,
            )
            return []
        finally:
            self.module.resource_path = satellite.host_resource
            if not self.keep_intermediates:
                shutil.rmtree(self.work_dir, ignore_errors=True)
