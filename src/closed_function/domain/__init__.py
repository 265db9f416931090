"""
Closed Function Domain Layer

This module contains the core domain logic of the closed-block transform,
including host module entities, value objects, and the extraction and
pruning services.
"""

from .entities import (
    BuildOutcome,
    ExtractionResult,
    HostModule,
    IsolatedFunction,
    SatelliteUnit,
)
from .value_objects import BuildMode, DependencyEdge, FunctionKind, LineIndex

__all__ = [
    "BuildOutcome",
    "ExtractionResult",
    "HostModule",
    "IsolatedFunction",
    "SatelliteUnit",
    "BuildMode",
    "DependencyEdge",
    "FunctionKind",
    "LineIndex",
]
