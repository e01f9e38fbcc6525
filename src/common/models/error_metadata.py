"""Structured error metadata models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from common.errors.error_codes import ErrorCode


class ErrorCategory(str, Enum):
    """Canonical error categories."""

    SYNTAX = "syntax"
    INVALID_REQUEST = "invalid_request"
    INTERNAL = "internal"


class SQLSyntaxIssue(BaseModel):
    """A single SQL syntax error reported back to the query editor.

    ``line`` is 1-based and ``column`` is the position reported by the
    recognizer for the offending token.
    """

    model_config = ConfigDict(frozen=True)

    line: int = Field(..., description="Line number where the error occurred")
    column: int = Field(..., description="Column where the error occurred")
    message: str = Field(
        ..., max_length=2048, description="Recognizer diagnostic, safe to show next to the editor"
    )
    code: ErrorCode = Field(ErrorCode.SQL_SYNTAX_ERROR, description="Stable error code")
    category: ErrorCategory = Field(ErrorCategory.SYNTAX, description="Error category")

    def __str__(self) -> str:
        return f"line: {self.line}, column: {self.column}, msg: {self.message}"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses/telemetry."""
        return self.model_dump(mode="json")
