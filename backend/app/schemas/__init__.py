"""Pydantic schemas for API payloads."""

from .notifications import (
    BroadcastJoinRequest,
    JoinBroadcast,
    JoinBroadcastData,
    NotifyJoinRequest,
)

__all__ = [
    "NotifyJoinRequest",
    "BroadcastJoinRequest",
    "JoinBroadcast",
    "JoinBroadcastData",
]
