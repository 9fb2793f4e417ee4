"""Observability helpers for the OSINT API gateway."""

from .logging import configure_app_logging, configure_structured_logging  # noqa: F401
from .metrics import MetricsRegistry, configure_metrics  # noqa: F401

__all__ = [
    "configure_app_logging",
    "configure_structured_logging",
    "configure_metrics",
    "MetricsRegistry",
]
