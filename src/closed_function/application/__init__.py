"""
Application Layer

Orchestrates domain objects to mount closed blocks.
Contains commands and services.
"""

from .commands.mount_closed_block import MountClosedBlockCommand
from .services.build_orchestrator import NestedBuildOrchestrator
from .services.splice_service import SpliceEngine
from .services.synthesizer import SatelliteSynthesizer

__all__ = [
    # Commands
    "MountClosedBlockCommand",
    # Services
    "NestedBuildOrchestrator",
    "SpliceEngine",
    "SatelliteSynthesizer",
]
