"""Simulate listeners joining a room to exercise the join notification pipeline.

Each simulated listener attaches a presence session to the room's real-time
channel, starts playback once, stays for the configured duration and
reports what it observed: whether it connected, the gateway outcome of its
join announcement and how many peer joins it saw.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from airwave.presence import ConnectionStatus, HttpJoinNotifier, PresenceSession
from airwave.realtime import WebsocketRoomChannel


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ListenerResult:
    """What a single simulated listener observed."""

    connected: bool
    connect_latency: float | None = None
    announced: bool = False
    notification: str = "idle"
    notification_detail: str | None = None
    listener_estimate: int = 1
    duration: float = 0.0
    error: str | None = None


async def _wait_connected(session: PresenceSession, timeout: float) -> bool:
    deadline = time.perf_counter() + timeout
    while time.perf_counter() < deadline:
        if session.status is ConnectionStatus.CONNECTED:
            return True
        await asyncio.sleep(0.05)
    return session.status is ConnectionStatus.CONNECTED


async def _listener(index: int, args: argparse.Namespace) -> ListenerResult:
    """Attach, start playback and linger for the session duration."""

    start_time = time.perf_counter()
    result = ListenerResult(connected=False)
    notifier = HttpJoinNotifier(args.api_url, token=args.token, timeout=args.notify_timeout)
    session = PresenceSession(
        args.room,
        WebsocketRoomChannel(args.ws_url, open_timeout=args.open_timeout),
        notifier,
        notify_timeout=args.notify_timeout,
    )
    try:
        async with session:
            result.connected = await _wait_connected(session, args.open_timeout)
            if result.connected:
                result.connect_latency = time.perf_counter() - start_time
            await asyncio.sleep(args.stagger * index)
            result.announced = session.start_playback()
            await session.drain()
            await asyncio.sleep(args.session_duration)
            result.notification = session.notification.state.value
            result.notification_detail = session.notification.detail
            result.listener_estimate = session.listener_estimate
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # pragma: no cover - network failures are non-deterministic
        result.error = f"{type(exc).__name__}: {exc}"
        logger.warning("listener %s failed: %s", index, result.error)
    finally:
        await notifier.aclose()
        result.duration = time.perf_counter() - start_time
    return result


def _aggregate(results: Iterable[ListenerResult]) -> dict[str, Any]:
    results = list(results)
    connected = [item for item in results if item.connected]
    latencies = sorted(item.connect_latency for item in connected if item.connect_latency)
    estimates = [item.listener_estimate for item in results if item.error is None]

    return {
        "attempted": len(results),
        "connected": len(connected),
        "announced": sum(1 for item in results if item.announced),
        "notifications": dict(Counter(item.notification for item in results)),
        "notification_details": dict(
            Counter(item.notification_detail for item in results if item.notification_detail)
        ),
        "connect_latency_max": latencies[-1] if latencies else None,
        "listener_estimate_min": min(estimates, default=None),
        "listener_estimate_max": max(estimates, default=None),
        "errors": dict(Counter(item.error for item in results if item.error)),
        "wall_clock_seconds": max((item.duration for item in results), default=0.0),
    }


async def run_simulation(args: argparse.Namespace) -> dict[str, Any]:
    logger.info(
        "starting simulation: room=%s listeners=%s duration=%ss",
        args.room,
        args.listeners,
        args.session_duration,
    )
    tasks = [
        asyncio.create_task(_listener(index, args), name=f"listener-{index}")
        for index in range(args.listeners)
    ]

    def _cancel(signum: int, _frame: Any) -> None:  # pragma: no cover - signal handling
        logger.warning("received signal %s, cancelling simulation", signum)
        for task in tasks:
            task.cancel()

    handlers: dict[int, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):  # pragma: no cover - platform specific
        with contextlib.suppress(ValueError):
            handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, _cancel)

    try:
        results = await asyncio.gather(*tasks)
    finally:
        for signum, previous in handlers.items():  # pragma: no cover - best effort cleanup
            with contextlib.suppress(ValueError):
                signal.signal(signum, previous)

    summary = _aggregate(results)
    logger.info("simulation finished: %s connected, %s announced", summary["connected"], summary["announced"])
    return summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("room", help="Room (experience) identifier")
    parser.add_argument("--ws-url", required=True, help="Websocket URL of the room's real-time channel")
    parser.add_argument("--api-url", default="http://localhost:8000", help="Base URL of the Airwave API")
    parser.add_argument("--token", default=None, help="Platform user token sent to the gateway")
    parser.add_argument("--listeners", type=int, default=5, help="Number of simulated listeners")
    parser.add_argument(
        "--session-duration",
        type=float,
        default=10.0,
        help="How long each listener stays after announcing (seconds)",
    )
    parser.add_argument(
        "--stagger",
        type=float,
        default=0.5,
        help="Delay between consecutive listeners starting playback (seconds)",
    )
    parser.add_argument("--open-timeout", type=float, default=10.0)
    parser.add_argument("--notify-timeout", type=float, default=5.0)
    parser.add_argument("--json", action="store_true", help="Emit the summary as JSON")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log verbosity level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        summary = asyncio.run(run_simulation(args))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("interrupted by user")
        return 130

    if args.json:
        print(json.dumps(summary, indent=2, sort_keys=True))
    else:
        print("\n=== Listener Simulation Summary ===")
        for key, value in summary.items():
            print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
