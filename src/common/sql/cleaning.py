"""Clean console SQL before it is sent to Presto.

One call trims the statement terminator, syntax-checks the statement, works
out whether it is a top-level query, and caps its row limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from common.models.error_metadata import SQLSyntaxIssue
from common.observability.metrics import cleaning_outcomes
from common.policy.row_limit_policy import DEFAULT_MAX_ROWS, RowLimitPolicy
from common.sql.error_sink import SyntaxErrorSink
from common.sql.grammar import parse_statement
from common.sql.limit_rewriter import (
    RewriteOutcome,
    enforce_row_limit,
    trim_statement_terminator,
)
from common.sql.query_shape import QueryShape, detect_query_shape

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[SQLSyntaxIssue], None]


@dataclass(frozen=True)
class CleaningResult:
    """Cleaned SQL, or the syntax error that prevented cleaning."""

    sql: Optional[str]
    outcome: RewriteOutcome
    error: Optional[SQLSyntaxIssue] = None
    shape: Optional[QueryShape] = None
    substituted: bool = True

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses/telemetry."""
        return {
            "sql": self.sql,
            "outcome": self.outcome.value,
            "error": self.error.to_dict() if self.error else None,
            "shape": self.shape.to_dict() if self.shape else None,
            "substituted": self.substituted,
        }


def _record(result: CleaningResult) -> CleaningResult:
    cleaning_outcomes.record(result.outcome.value, result.substituted)
    return result


def _failed(issue: SQLSyntaxIssue) -> CleaningResult:
    logger.info("Rejected SQL with syntax error: %s", issue)
    return _record(CleaningResult(sql=None, outcome=RewriteOutcome.ERROR, error=issue))


def clean_with_policy(sql: str, policy: RowLimitPolicy) -> CleaningResult:
    """Trim, syntax-check, and apply ``policy`` to one statement."""
    working = trim_statement_terminator(sql or "")

    sink = SyntaxErrorSink()
    try:
        statement = parse_statement(working, sink)
    except Exception as exc:
        logger.exception("SQL front-end failed unexpectedly")
        sink.syntax_error(None, None, 1, 0, exc, str(exc) or type(exc).__name__)
        statement = None

    issue = sink.get_error()
    if issue is not None:
        return _failed(issue)

    shape = detect_query_shape(statement)
    rewrite = enforce_row_limit(working, shape, policy)
    logger.debug(
        "Cleaned SQL outcome=%s shape=%s max_rows=%s",
        rewrite.outcome.value,
        shape.to_dict(),
        policy.max_rows,
    )
    return _record(
        CleaningResult(
            sql=rewrite.sql,
            outcome=rewrite.outcome,
            shape=shape,
            substituted=rewrite.substituted,
        )
    )


def classify_and_rewrite(
    sql: str,
    max_rows: int = DEFAULT_MAX_ROWS,
    limit_enforcement_disabled: bool = False,
) -> CleaningResult:
    """Clean ``sql`` so a top-level query returns at most ``max_rows`` rows.

    Raises:
        pydantic.ValidationError: ``max_rows`` is not a positive integer.
    """
    policy = RowLimitPolicy(
        max_rows=max_rows,
        limit_enforcement_disabled=limit_enforcement_disabled,
    )
    return clean_with_policy(sql, policy)


def clean_sql(
    sql: str,
    error_handler: Optional[ErrorHandler] = None,
    max_rows: int = DEFAULT_MAX_ROWS,
    disable_limit: bool = False,
) -> Optional[str]:
    """Callback-style cleaning used by the console's Run action.

    Returns the SQL to submit, or None. Blank input returns None without
    calling ``error_handler``; a syntax error is passed to ``error_handler``.
    """
    if not sql or not sql.strip():
        return None

    result = classify_and_rewrite(sql, max_rows=max_rows, limit_enforcement_disabled=disable_limit)
    if result.error is not None:
        if error_handler is not None:
            error_handler(result.error)
        return None
    return result.sql
