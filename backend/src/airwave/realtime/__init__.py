"""Real-time room channel transports."""

from .channel import ChannelNotConnectedError, WebsocketRoomChannel  # noqa: F401

__all__ = ["WebsocketRoomChannel", "ChannelNotConnectedError"]
