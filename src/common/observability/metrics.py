"""Outcome counter for SQL cleaning, emitted through the OpenTelemetry API."""

from __future__ import annotations

import logging
from typing import Any, Optional

from opentelemetry import metrics

from common.config.env import get_env_bool, get_env_str

logger = logging.getLogger(__name__)

METRICS_ENABLED_ENV = "SQL_CLEANING_METRICS_ENABLED"


def metrics_enabled() -> bool:
    """Explicit flag first; otherwise on when an OTLP endpoint is configured."""
    try:
        flag = get_env_bool(METRICS_ENABLED_ENV)
    except ValueError:
        logger.warning("Invalid %s value; metrics disabled.", METRICS_ENABLED_ENV)
        return False
    if flag is not None:
        return flag
    return bool((get_env_str("OTEL_EXPORTER_OTLP_ENDPOINT") or "").strip())


class OutcomeCounter:
    """Counts cleaning passes by outcome. The OTEL counter is created on first use."""

    def __init__(self, name: str, meter_name: str = "sql-cleaning"):
        self.name = name
        self.meter_name = meter_name
        self._counter: Optional[Any] = None

    def record(self, outcome: str, substituted: bool) -> None:
        """Add one pass. Emission failures are logged at debug level and never raised."""
        if not metrics_enabled():
            return
        try:
            if self._counter is None:
                self._counter = metrics.get_meter(self.meter_name).create_counter(
                    name=self.name,
                    description="SQL cleaning passes by outcome",
                    unit="1",
                )
            self._counter.add(
                1, {"outcome": outcome, "substituted": "true" if substituted else "false"}
            )
        except Exception as exc:
            logger.debug("Counter metric emission failed for %s: %s", self.name, exc)


cleaning_outcomes = OutcomeCounter("sql_cleaning.outcomes")
