"""Per-client presence session.

A session tracks the real-time connection to one room and announces the
local listener exactly once, the first time playback starts. The
announcement goes out on two independent channels: a best-effort broadcast
to connected peers and a call into the notification gateway. Neither can
affect playback; the gateway result only feeds diagnostics.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Protocol

from .notifier import JoinNotifier, NotificationState, NotifyResult

logger = logging.getLogger(__name__)

USER_JOINED = "user_joined"
DEFAULT_JOIN_MESSAGE = "🎵 someone joined the radio station"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class SessionClosedError(RuntimeError):
    """Raised when a torn down session is used again."""


class ChannelListener(Protocol):
    def connection_acknowledged(self) -> None: ...

    def connection_dropped(self) -> None: ...

    def message_received(self, message: Any) -> None: ...


class RealtimeChannel(Protocol):
    """Connect/disconnect/send primitive of the real-time transport."""

    def set_listener(self, listener: ChannelListener | None) -> None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def send(self, payload: dict[str, Any]) -> None: ...


@dataclass(frozen=True, slots=True)
class NotificationDiagnostics:
    state: NotificationState = NotificationState.IDLE
    detail: str | None = None
    updated_at: float | None = None


def build_join_payload(message: str, timestamp_ms: int) -> dict[str, Any]:
    return {"type": USER_JOINED, "data": {"message": message, "timestamp": timestamp_ms}}


def decode_message(message: Any) -> dict[str, Any] | None:
    """Normalise an inbound channel message to a dict payload.

    Platform envelopes carry the application payload as a JSON string under
    ``json``; raw strings and plain dicts are accepted as well.
    """

    if isinstance(message, dict) and isinstance(message.get("json"), str):
        message = message["json"]
    if isinstance(message, (bytes, bytearray)):
        message = message.decode("utf-8", errors="replace")
    if isinstance(message, str):
        try:
            message = json.loads(message)
        except json.JSONDecodeError:
            return None
    return message if isinstance(message, dict) else None


class PresenceSession:
    """State machine for one client attached to one room."""

    def __init__(
        self,
        room_id: str,
        channel: RealtimeChannel,
        notifier: JoinNotifier,
        *,
        notify_timeout: float = 5.0,
        join_message: str = DEFAULT_JOIN_MESSAGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.room_id = room_id
        self._channel = channel
        self._notifier = notifier
        self._notify_timeout = notify_timeout
        self._join_message = join_message
        self._clock = clock

        self._status = ConnectionStatus.DISCONNECTED
        self._has_announced_join = False
        self._listener_estimate = 1
        self._notification = NotificationDiagnostics()
        self._closed = False
        self._tasks: set[asyncio.Task[Any]] = set()

        channel.set_listener(self)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def has_announced_join(self) -> bool:
        return self._has_announced_join

    @property
    def listener_estimate(self) -> int:
        return self._listener_estimate

    @property
    def notification(self) -> NotificationDiagnostics:
        return self._notification

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def __aenter__(self) -> "PresenceSession":
        await self.attach()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.teardown()

    async def attach(self) -> None:
        """Start connecting to the room's real-time channel."""

        if self._closed:
            raise SessionClosedError("session has been torn down")
        if self._status is not ConnectionStatus.DISCONNECTED:
            return
        self._transition(ConnectionStatus.CONNECTING)
        try:
            await self._channel.connect()
        except Exception:
            if not self._closed:
                self._transition(ConnectionStatus.DISCONNECTED)
            raise

    async def teardown(self) -> None:
        """Detach from the room. In-flight work is cancelled and its results dropped."""

        if self._closed:
            return
        self._closed = True
        self._transition(ConnectionStatus.DISCONNECTED)
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._channel.set_listener(None)
        try:
            await self._channel.disconnect()
        except Exception:
            logger.warning(
                "Channel disconnect failed during teardown",
                exc_info=logger.isEnabledFor(logging.DEBUG),
                extra={"room_id": self.room_id},
            )

    async def drain(self) -> None:
        """Wait for the broadcast and gateway call to settle."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Channel callbacks
    # ------------------------------------------------------------------
    def connection_acknowledged(self) -> None:
        if self._status in (ConnectionStatus.CONNECTING, ConnectionStatus.RECONNECTING):
            self._transition(ConnectionStatus.CONNECTED)
        else:
            logger.debug("Ignoring connection ack in state %s", self._status.value)

    def connection_dropped(self) -> None:
        if self._status in (ConnectionStatus.CONNECTED, ConnectionStatus.CONNECTING):
            self._transition(ConnectionStatus.RECONNECTING)
        else:
            logger.debug("Ignoring connection drop in state %s", self._status.value)

    def message_received(self, message: Any) -> None:
        if self._closed:
            return
        payload = decode_message(message)
        if payload is None:
            logger.debug("Discarded undecodable realtime message")
            return
        if payload.get("type") == USER_JOINED:
            # approximate: one increment per announcement, never decremented
            self._listener_estimate += 1

    # ------------------------------------------------------------------
    # Playback trigger
    # ------------------------------------------------------------------
    def start_playback(self) -> bool:
        """Record that the local user started listening.

        Returns ``True`` only for the call that announced the join.
        """

        if self._closed or self._has_announced_join:
            return False
        self._has_announced_join = True

        if self._status is ConnectionStatus.CONNECTED:
            self._spawn(self._broadcast_join(), "broadcast")
        self._notification = NotificationDiagnostics(NotificationState.PENDING, updated_at=self._clock())
        self._spawn(self._notify_gateway(), "notify")
        logger.info("Join announced", extra={"room_id": self.room_id})
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _transition(self, target: ConnectionStatus) -> None:
        if target is self._status:
            return
        logger.debug(
            "Presence session %s -> %s", self._status.value, target.value, extra={"room_id": self.room_id}
        )
        self._status = target

    def _spawn(self, coro: Coroutine[Any, Any, None], label: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=f"presence-{label}-{self.room_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _broadcast_join(self) -> None:
        payload = build_join_payload(self._join_message, int(self._clock() * 1000))
        try:
            await self._channel.send(payload)
        except Exception as exc:
            logger.warning(
                "Join broadcast failed: %s", exc, extra={"room_id": self.room_id}
            )

    async def _notify_gateway(self) -> None:
        try:
            result = await asyncio.wait_for(
                self._notifier.notify_join(self.room_id), timeout=self._notify_timeout
            )
        except asyncio.TimeoutError:
            result = NotifyResult(NotificationState.FAILED, detail="timed out")
        except Exception as exc:
            logger.warning("Join notification request failed: %s", exc, extra={"room_id": self.room_id})
            result = NotifyResult(NotificationState.FAILED, detail=str(exc) or type(exc).__name__)

        if self._closed:
            logger.debug("Dropping gateway result received after teardown")
            return
        self._notification = NotificationDiagnostics(result.state, result.detail, self._clock())
