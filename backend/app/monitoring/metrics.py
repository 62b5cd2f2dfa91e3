"""Metric definitions for the join notification pipeline."""

from __future__ import annotations

from .registry import registry


notify_outcomes_total = registry.counter(
    "notify_outcomes_total",
    "Join notification gateway results by outcome.",
    label_names=("outcome",),
)

platform_requests_total = registry.counter(
    "platform_requests_total",
    "Calls made to the hosting platform API.",
    label_names=("operation", "result"),
)

directory_cache_total = registry.counter(
    "directory_cache_total",
    "Room directory cache lookups.",
    label_names=("result",),
)

join_broadcasts_total = registry.counter(
    "join_broadcasts_total",
    "Server-side join broadcasts sent through the platform.",
    label_names=("result",),
)
