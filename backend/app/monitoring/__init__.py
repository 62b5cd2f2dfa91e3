"""Metric registry and the notification pipeline's metric definitions."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
