"""Row-limit enforcement for console queries.

The rewrite works on the user's original text. Only the trailing limit clause
is touched, so formatting and comments elsewhere in the statement survive.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from common.policy.row_limit_policy import RowLimitPolicy
from common.sql.query_shape import QueryShape

logger = logging.getLogger(__name__)

STATEMENT_TERMINATOR_RE = re.compile(r"\s*;\s*\Z")
LIMIT_CLAUSE_RE = re.compile(r"(?P<lead>\s+)LIMIT\s+(?:\d+|ALL)\Z", re.IGNORECASE)
FETCH_FIRST_CLAUSE_RE = re.compile(r"\bFETCH\s+FIRST\s+\d+\s+ROWS\s+ONLY\Z", re.IGNORECASE)
TRAILING_LINE_COMMENT_RE = re.compile(r"--[^\n]*\Z")


class RewriteOutcome(str, Enum):
    """Terminal state of one cleaning pass."""

    ERROR = "error"
    PASSTHROUGH = "passthrough"
    TIGHTEN_LIMIT = "tighten_limit"
    TIGHTEN_FETCH = "tighten_fetch"
    INJECT_LIMIT = "inject_limit"
    WITHIN_BOUNDS = "within_bounds"


@dataclass(frozen=True)
class LimitRewrite:
    """Rewritten SQL plus the branch that produced it.

    ``substituted`` is False when a tightening branch was chosen but the
    clause could not be located in the text, in which case ``sql`` is the
    input unchanged.
    """

    sql: str
    outcome: RewriteOutcome
    substituted: bool = True


def trim_statement_terminator(sql: str) -> str:
    """Drop one trailing ``;`` (with its surrounding whitespace) and strip."""
    return STATEMENT_TERMINATOR_RE.sub("", sql, count=1).strip()


def _as_int(text: Optional[str]) -> Optional[int]:
    if text is None:
        return None
    candidate = text.strip()
    if not candidate.isdigit():
        return None
    return int(candidate)


def _limit_exceeds(limit_text: str, max_rows: int) -> bool:
    value = _as_int(limit_text)
    # ALL, or anything else that is not a plain integer, is unbounded.
    return value is None or value > max_rows


def _fetch_first_exceeds(fetch_first_text: str, max_rows: int) -> bool:
    value = _as_int(fetch_first_text)
    return value is not None and value > max_rows


def _substitute(
    pattern: re.Pattern, replacement, sql: str, outcome: RewriteOutcome
) -> LimitRewrite:
    rewritten, count = pattern.subn(replacement, sql, count=1)
    if count == 0:
        logger.warning(
            "Row clause detected by the parser was not found at the end of the text; "
            "leaving statement unchanged (outcome=%s)",
            outcome.value,
        )
        return LimitRewrite(sql=sql, outcome=outcome, substituted=False)
    return LimitRewrite(sql=rewritten, outcome=outcome)


def _inject(sql: str, max_rows: int) -> LimitRewrite:
    separator = " "
    if TRAILING_LINE_COMMENT_RE.search(sql):
        # A clause appended on the same line would be commented out.
        logger.warning("Statement ends in a line comment; injecting LIMIT on a new line")
        separator = "\n"
    return LimitRewrite(
        sql=f"{sql}{separator}LIMIT {max_rows}", outcome=RewriteOutcome.INJECT_LIMIT
    )


def enforce_row_limit(sql: str, shape: QueryShape, policy: RowLimitPolicy) -> LimitRewrite:
    """Apply ``policy`` to an already trimmed, syntactically valid statement."""
    if not shape.is_top_level_query or policy.limit_enforcement_disabled:
        return LimitRewrite(sql=sql, outcome=RewriteOutcome.PASSTHROUGH)

    max_rows = policy.max_rows

    if shape.limit_text is not None and _limit_exceeds(shape.limit_text, max_rows):
        return _substitute(
            LIMIT_CLAUSE_RE,
            lambda match: f"{match.group('lead')}LIMIT {max_rows}",
            sql,
            RewriteOutcome.TIGHTEN_LIMIT,
        )

    if shape.fetch_first_text is not None and _fetch_first_exceeds(
        shape.fetch_first_text, max_rows
    ):
        return _substitute(
            FETCH_FIRST_CLAUSE_RE,
            f"FETCH FIRST {max_rows} ROWS ONLY",
            sql,
            RewriteOutcome.TIGHTEN_FETCH,
        )

    if shape.limit_text is None and shape.fetch_first_text is None:
        return _inject(sql, max_rows)

    return LimitRewrite(sql=sql, outcome=RewriteOutcome.WITHIN_BOUNDS)
