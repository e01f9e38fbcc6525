"""Common error taxonomy helpers."""

from common.errors.error_codes import ErrorCode, error_code_group, parse_error_code

__all__ = [
    "ErrorCode",
    "error_code_group",
    "parse_error_code",
]
