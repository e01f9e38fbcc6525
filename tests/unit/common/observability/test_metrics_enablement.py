"""Tests for the cleaning outcome counter and its enablement."""

from unittest.mock import MagicMock, patch

from common.observability.metrics import METRICS_ENABLED_ENV, OutcomeCounter, metrics_enabled


def test_metrics_disabled_without_exporter_or_flag():
    """No exporter and no explicit flag means no metrics."""
    assert metrics_enabled() is False


def test_metrics_enabled_when_exporter_configured(monkeypatch):
    """An OTLP endpoint enables metrics by default."""
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://otel-collector:4317")

    assert metrics_enabled() is True


def test_explicit_false_overrides_exporter(monkeypatch):
    """Explicit false disables metrics even when an exporter is configured."""
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://otel-collector:4317")
    monkeypatch.setenv(METRICS_ENABLED_ENV, "false")

    assert metrics_enabled() is False


def test_invalid_flag_disables(monkeypatch):
    """A malformed flag is treated as disabled rather than raising."""
    monkeypatch.setenv(METRICS_ENABLED_ENV, "maybe")

    assert metrics_enabled() is False


def test_counter_is_created_once_and_reused(monkeypatch):
    monkeypatch.setenv(METRICS_ENABLED_ENV, "true")
    counter = OutcomeCounter("sql_cleaning.test", meter_name="test-cleaning")
    fake_meter = MagicMock()
    fake_counter = MagicMock()
    fake_meter.create_counter.return_value = fake_counter

    with patch("common.observability.metrics.metrics.get_meter", return_value=fake_meter):
        counter.record("error", substituted=True)
        counter.record("tighten_limit", substituted=False)

    fake_meter.create_counter.assert_called_once()
    assert fake_counter.add.call_args_list[0].args == (
        1,
        {"outcome": "error", "substituted": "true"},
    )
    assert fake_counter.add.call_args_list[1].args == (
        1,
        {"outcome": "tighten_limit", "substituted": "false"},
    )


def test_disabled_counter_never_initializes_a_meter():
    counter = OutcomeCounter("sql_cleaning.test")

    with patch("common.observability.metrics.metrics.get_meter") as get_meter:
        counter.record("inject_limit", substituted=True)

    get_meter.assert_not_called()


def test_emission_failures_do_not_propagate(monkeypatch):
    monkeypatch.setenv(METRICS_ENABLED_ENV, "true")
    counter = OutcomeCounter("sql_cleaning.test")

    with patch(
        "common.observability.metrics.metrics.get_meter", side_effect=RuntimeError("down")
    ):
        counter.record("passthrough", substituted=True)
