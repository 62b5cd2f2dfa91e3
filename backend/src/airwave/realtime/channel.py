"""Websocket implementation of the room real-time channel."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, TYPE_CHECKING

import websockets
from websockets.exceptions import WebSocketException

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from airwave.presence.session import ChannelListener


logger = logging.getLogger(__name__)

_RECONNECT_BASE_DELAY = 0.5
_RECONNECT_MAX_DELAY = 30.0


class ChannelNotConnectedError(RuntimeError):
    """Raised when sending while no connection is open."""


class WebsocketRoomChannel:
    """Keeps a websocket to the room open, reconnecting with backoff.

    Connection state changes and inbound messages are reported to the bound
    listener; the channel itself never retries a failed :meth:`send`.
    """

    def __init__(
        self,
        url: str,
        *,
        open_timeout: float = 10.0,
        reconnect_base_delay: float | None = None,
        reconnect_max_delay: float | None = None,
    ) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._base_delay = _RECONNECT_BASE_DELAY if reconnect_base_delay is None else reconnect_base_delay
        self._max_delay = _RECONNECT_MAX_DELAY if reconnect_max_delay is None else reconnect_max_delay
        self._listener: ChannelListener | None = None
        self._websocket: Any | None = None
        self._runner: asyncio.Task[None] | None = None
        self._stopping = False

    @property
    def connected(self) -> bool:
        return self._websocket is not None

    def set_listener(self, listener: "ChannelListener | None") -> None:
        self._listener = listener

    async def connect(self) -> None:
        if self._runner is not None and not self._runner.done():
            return
        self._stopping = False
        self._runner = asyncio.create_task(self._run(), name=f"room-channel-{self._url}")

    async def disconnect(self) -> None:
        self._stopping = True
        websocket = self._websocket
        if websocket is not None:
            with contextlib.suppress(Exception):
                await websocket.close()
        runner = self._runner
        self._runner = None
        if runner is not None and not runner.done():
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner

    async def send(self, payload: dict[str, Any]) -> None:
        websocket = self._websocket
        if websocket is None:
            raise ChannelNotConnectedError("room channel is not connected")
        await websocket.send(json.dumps(payload))

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        attempt = 0
        while not self._stopping:
            try:
                async with websockets.connect(self._url, open_timeout=self._open_timeout) as websocket:
                    self._websocket = websocket
                    attempt = 0
                    self._emit("connection_acknowledged")
                    async for raw in websocket:
                        self._emit("message_received", raw)
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                logger.warning("Room channel connection lost: %s", exc, extra={"url": self._url})
            finally:
                self._websocket = None

            if self._stopping:
                break
            self._emit("connection_dropped")
            delay = min(self._base_delay * (2**attempt), self._max_delay)
            attempt += 1
            logger.info("Reconnecting room channel", extra={"delay": delay, "attempt": attempt})
            await asyncio.sleep(delay)

    def _emit(self, event: str, *args: Any) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            getattr(listener, event)(*args)
        except Exception:
            logger.exception("Room channel listener failed handling %s", event)
