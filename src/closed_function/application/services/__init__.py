"""
Application Services

Service classes for handling use cases.
"""

from .build_orchestrator import NestedBuildOrchestrator
from .splice_service import SpliceEngine, replace_span
from .synthesizer import SatelliteSynthesizer, may_contain_marker, new_placeholder

__all__ = [
    "NestedBuildOrchestrator",
    "SpliceEngine",
    "SatelliteSynthesizer",
    "may_contain_marker",
    "new_placeholder",
    "replace_span",
]
