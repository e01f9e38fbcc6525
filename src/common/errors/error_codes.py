"""Canonical error-code taxonomy for SQL cleaning flows."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Bounded canonical error codes for external contracts and observability."""

    SQL_SYNTAX_ERROR = "SQL_SYNTAX_ERROR"
    SQL_MULTIPLE_STATEMENTS = "SQL_MULTIPLE_STATEMENTS"
    SQL_EMPTY_STATEMENT = "SQL_EMPTY_STATEMENT"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CODE_GROUPS: dict[ErrorCode, str] = {
    ErrorCode.SQL_SYNTAX_ERROR: "SYNTAX",
    ErrorCode.SQL_MULTIPLE_STATEMENTS: "SYNTAX",
    ErrorCode.SQL_EMPTY_STATEMENT: "SYNTAX",
    ErrorCode.INVALID_CONFIGURATION: "CONFIG",
    ErrorCode.INTERNAL_ERROR: "INTERNAL",
}


def parse_error_code(
    value: Any,
    *,
    fallback: ErrorCode = ErrorCode.INTERNAL_ERROR,
) -> ErrorCode:
    """Parse string-like values to `ErrorCode` with safe fallback."""
    if isinstance(value, ErrorCode):
        return value
    if value is None:
        return fallback
    try:
        return ErrorCode(str(value).strip())
    except ValueError:
        return fallback


def error_code_group(value: Any) -> str:
    """Return a stable coarse grouping for telemetry dimensions."""
    parsed = parse_error_code(value)
    return _CODE_GROUPS.get(parsed, "INTERNAL")
