"""Structured errors for pipe misuse and task failures.

The pipe itself never inspects the error values flowing through the
continuation chain. These types cover the cases where the pipe has to
produce an error of its own: an invalid concurrency limit, a continuation
acknowledged twice, or a task function that raised instead of calling its
continuation.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ErrorCode(StrEnum):
    """Error codes produced by the pipe."""
    TASK_FAILED = "TASK_FAILED"
    ALREADY_ACKNOWLEDGED = "ALREADY_ACKNOWLEDGED"
    INVALID_CONCURRENCY = "INVALID_CONCURRENCY"
    UNKNOWN = "UNKNOWN"


class PipeError(BaseModel):
    """Structured error description.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Optional detailed information (e.g., stack trace)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Pipe Error",
            "examples": [{
                "message": "producer_done called more than once",
                "code": "ALREADY_ACKNOWLEDGED",
            }],
        },
    )

    message: Annotated[str, Field(min_length=1, description="Human-readable error message")]
    code: ErrorCode = Field(default=ErrorCode.UNKNOWN, description="Machine-readable error classification")
    details: str | None = Field(default=None, description="Optional detailed error info")

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Accept Exception objects and extract message."""
        return (str(v) or type(v).__name__) if isinstance(v, Exception) else v

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        context: str = "",
    ) -> Self:
        """Create a TASK_FAILED error from an exception, with its traceback."""
        text = str(exc) or type(exc).__name__
        return cls(
            message=f"{context}: {text}" if context else text,
            code=ErrorCode.TASK_FAILED,
            details="".join(traceback.format_exception(exc)),
        )


class PipeException(Exception):
    """Exception wrapping a PipeError for raising."""

    __slots__ = ("error",)

    def __init__(self, error: PipeError) -> None:
        self.error = error
        super().__init__(error.message)

    @classmethod
    def create(cls, message: str, code: ErrorCode = ErrorCode.UNKNOWN) -> Self:
        """Create pipe exception."""
        return cls(PipeError(message=message, code=code))
