"""Unit test environment helpers."""

import pytest

_CLEANING_ENV_VARS = (
    "SQL_CLEANING_MAX_ROWS",
    "SQL_CLEANING_DISABLE_LIMIT",
    "SQL_CLEANING_METRICS_ENABLED",
    "OTEL_EXPORTER_OTLP_ENDPOINT",
)


@pytest.fixture(autouse=True)
def _minimal_env(monkeypatch):
    """Start every unit test without cleaning or OTEL configuration."""
    for name in _CLEANING_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
