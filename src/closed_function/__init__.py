"""
Closed Function

Hexagonal implementation of the closed-block build transform.
"""

__version__ = "0.1.0"

from .domain.entities import HostModule, IsolatedFunction, SatelliteUnit
from .domain.errors import (
    ClosedBlockError,
    StructuralError,
    CaptureViolationError,
    NestedBuildError,
    InternalInvariantError,
    ConfigurationError,
)
from .domain.value_objects import (
    BuildMode,
    DependencyEdge,
    Position,
    SourceLocation,
)

__all__ = [
    "HostModule",
    "IsolatedFunction",
    "SatelliteUnit",
    "ClosedBlockError",
    "StructuralError",
    "CaptureViolationError",
    "NestedBuildError",
    "InternalInvariantError",
    "ConfigurationError",
    "BuildMode",
    "DependencyEdge",
    "Position",
    "SourceLocation",
]
