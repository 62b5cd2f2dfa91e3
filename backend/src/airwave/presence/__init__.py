"""Presence sessions announcing listeners joining a room."""

from .notifier import (  # noqa: F401
    HttpJoinNotifier,
    JoinNotifier,
    NotificationState,
    NotifyResult,
)
from .session import (  # noqa: F401
    ChannelListener,
    ConnectionStatus,
    NotificationDiagnostics,
    PresenceSession,
    RealtimeChannel,
    SessionClosedError,
    build_join_payload,
    decode_message,
)

__all__ = [
    "PresenceSession",
    "ConnectionStatus",
    "NotificationDiagnostics",
    "SessionClosedError",
    "RealtimeChannel",
    "ChannelListener",
    "build_join_payload",
    "decode_message",
    "JoinNotifier",
    "HttpJoinNotifier",
    "NotificationState",
    "NotifyResult",
]
