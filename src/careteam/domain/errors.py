from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    NOT_FOUND = "NotFound"
    DUPLICATE_ROLE = "DuplicateRole"
    TARGET_NOT_ASSIGNED = "TargetNotAssigned"
    VALIDATION_ERROR = "ValidationError"
    UNAUTHORIZED = "Unauthorized"
    INVALID_TRANSITION = "InvalidTransition"


class OperationResult(BaseModel):
    """Discriminated outcome of a mutating operation.

    Services return these instead of raising for expected domain failures, so
    callers branch on ``success`` and inspect ``error`` when it is false.
    """

    success: bool
    error: Optional[ErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, **kwargs) -> "OperationResult":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, error: ErrorCode, message: Optional[str] = None, **kwargs) -> "OperationResult":
        return cls(success=False, error=error, message=message, **kwargs)


class CareTeamValidationError(ValueError):
    """Raised by entity-returning calls when a required field is missing."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field
        self.code = ErrorCode.VALIDATION_ERROR


class InvalidProviderId(ValueError):
    """Raised when text does not follow the ``<role_type>_<sequence>`` shape."""
