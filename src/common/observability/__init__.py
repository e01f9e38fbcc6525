"""Shared observability helpers."""

from common.observability.metrics import cleaning_outcomes

__all__ = ["cleaning_outcomes"]
