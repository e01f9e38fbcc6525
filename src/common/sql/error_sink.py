"""First-error-wins collection of SQL syntax diagnostics."""

from __future__ import annotations

import logging
from typing import Any, Generic, Optional, TypeVar

from common.errors.error_codes import ErrorCode
from common.models.error_metadata import SQLSyntaxIssue

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_MESSAGE_LENGTH = 2048


class WriteOnceCell(Generic[T]):
    """Holds at most one value; every write after the first is rejected."""

    __slots__ = ("_value", "_is_set")

    def __init__(self) -> None:
        self._value: Optional[T] = None
        self._is_set = False

    @property
    def is_set(self) -> bool:
        return self._is_set

    def set(self, value: T) -> bool:
        """Store ``value`` if the cell is empty. Returns True when stored."""
        if self._is_set:
            return False
        self._value = value
        self._is_set = True
        return True

    def get(self) -> Optional[T]:
        return self._value


class SyntaxErrorSink:
    """Error listener attached to the SQL front-end for one parse.

    Only the first reported error is kept. A sink must not be reused across
    parses because its state is sticky.
    """

    def __init__(self) -> None:
        self._cell: WriteOnceCell[SQLSyntaxIssue] = WriteOnceCell()
        self.reported = 0

    def syntax_error(
        self,
        recognizer: Any,
        offending_symbol: Any,
        line: int,
        column: int,
        exc: Optional[BaseException],
        message: str,
    ) -> None:
        """Recognizer callback invoked once per syntax error."""
        self.reported += 1
        code = getattr(exc, "code", None)
        issue = SQLSyntaxIssue(
            line=int(line),
            column=int(column),
            message=str(message)[:_MAX_MESSAGE_LENGTH],
            code=code if isinstance(code, ErrorCode) else ErrorCode.SQL_SYNTAX_ERROR,
        )
        if not self._cell.set(issue):
            logger.debug("Discarding additional syntax error: %s", issue)

    def has_error(self) -> bool:
        return self._cell.is_set

    def get_error(self) -> Optional[SQLSyntaxIssue]:
        return self._cell.get()
