"""
Domain Errors

Error taxonomy for the closed-block transform. Module-scoped errors are
collected and handed to the host pipeline; only invariant errors are raised.
"""

import json
from typing import Optional, Dict, Any


class ClosedBlockError(Exception):
    """Base error for the closed-block transform with message, detail and extra context."""

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        **kwargs: Any
    ):
        self.message = message
        self.detail = detail
        self.extra = kwargs
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        error_dict = {
            "type": type(self).__name__,
            "message": self.message,
            "detail": self.detail,
        }
        error_dict.update(self.extra)
        # Remove None values
        return {k: v for k, v in error_dict.items() if v is not None}

    def to_json(self) -> str:
        """Convert error to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message='{self.message}', detail='{self.detail}', extra={self.extra})"


class StructuralError(ClosedBlockError):
    """The marker is misplaced, malformed or duplicated."""


class CaptureViolationError(ClosedBlockError):
    """The closed block references a name outside its imports and locals."""


class NestedBuildError(ClosedBlockError):
    """Emitting or bundling the satellite unit failed."""


class InternalInvariantError(ClosedBlockError):
    """
    Required intermediate state is missing or inconsistent.

    Signals broken orchestration rather than bad input, so it aborts the
    whole build instead of being collected per module.
    """


class ConfigurationError(ClosedBlockError):
    """Project options could not be located, parsed or validated."""
