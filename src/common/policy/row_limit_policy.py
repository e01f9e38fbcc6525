"""Row-limit policy applied to queries submitted from the SQL console."""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from common.config.env import get_env_bool, get_env_int

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 100

MAX_ROWS_ENV_VAR = "SQL_CLEANING_MAX_ROWS"
DISABLE_LIMIT_ENV_VAR = "SQL_CLEANING_DISABLE_LIMIT"

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


class RowLimitPolicy(BaseModel):
    """Maximum number of rows a top-level query may return.

    When ``limit_enforcement_disabled`` is set, statements are only trimmed
    and syntax-checked; no limit clause is tightened or added.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    max_rows: int = Field(DEFAULT_MAX_ROWS, gt=0, description="Row cap for top-level queries")
    limit_enforcement_disabled: bool = Field(
        False, description="Skip limit enforcement entirely"
    )

    @classmethod
    def from_env(cls) -> "RowLimitPolicy":
        """Build the policy from SQL_CLEANING_* environment variables."""
        max_rows = get_env_int(MAX_ROWS_ENV_VAR, DEFAULT_MAX_ROWS)
        disabled = get_env_bool(DISABLE_LIMIT_ENV_VAR, False)
        return cls(max_rows=max_rows, limit_enforcement_disabled=disabled)


def coerce_max_rows(raw: Any, default: int = DEFAULT_MAX_ROWS) -> int:
    """Turn free-form limit input into a usable row cap.

    Mirrors the console's limit box: blank, unparsable, or non-positive
    input falls back to ``default``; otherwise the leading integer of the
    text is used, so ``"250 rows"`` becomes 250.
    """
    if isinstance(raw, bool):
        return default
    if isinstance(raw, int):
        return raw if raw > 0 else default
    if raw is None:
        return default

    match = _LEADING_INT_RE.match(str(raw))
    if not match:
        logger.debug("Ignoring non-numeric row limit input %r", raw)
        return default

    value = int(match.group(1))
    if value < 1:
        return default
    return value
