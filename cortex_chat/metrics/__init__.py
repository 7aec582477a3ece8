"""Session metrics."""

from .collector import MetricsCollector

__all__ = ["MetricsCollector"]
