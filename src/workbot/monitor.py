"""Scheduling domain tying membership, sessions and announcements together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping

from .membership import MembershipChange, MembershipTracker, RosterSource
from .notifier import MessageSink, Notifier
from .quotes import QuoteBackend, QuoteProvider, RetryPolicy
from .sessions import CompletedSession, SessionEngine, SignalReader, signal_from_presence

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run a coroutine callback every ``interval`` seconds on the event loop.

    Callback failures are logged and the loop carries on. ``stop`` suppresses
    further firings and lets an in-flight callback finish.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._active = False
        self._in_callback = False
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._active = True
        self._task = asyncio.create_task(self._run(), name=f"workbot-{self.name}")

    async def _run(self) -> None:
        while self._active:
            await self._sleep(self.interval)
            if not self._active:
                break
            self._in_callback = True
            try:
                await self._callback()
            except Exception as exc:
                logger.error(
                    "Periodic task failed",
                    extra={"task": self.name, "error": str(exc) or type(exc).__name__},
                )
            finally:
                self._in_callback = False
                self.runs += 1

    async def stop(self) -> None:
        self._active = False
        task, self._task = self._task, None
        if task is None:
            return
        if not self._in_callback:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class ShiftMonitor:
    """Own the timers and route signals into the session engine."""

    def __init__(
        self,
        tracker: MembershipTracker,
        engine: SessionEngine,
        quotes: QuoteProvider,
        *,
        read_signal: SignalReader,
        activity_name: str = "Satisfactory",
        polling_interval: float = 10,
        member_check_interval: float = 300,
        metrics_interval: float = 60,
        preload_count: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.tracker = tracker
        self.engine = engine
        self.quotes = quotes
        self._read_signal = read_signal
        self._activity_name = activity_name
        self._preload_count = preload_count
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._started_at: datetime | None = None
        self._stopping = False
        self._stopped = False
        self.tasks = [
            PeriodicTask("poll", polling_interval, self.poll_once),
            PeriodicTask("members", member_check_interval, self.refresh_members),
            PeriodicTask("metrics", metrics_interval, self.log_metrics),
        ]

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def start(self) -> None:
        if self.started or self._stopping:
            return
        self._started_at = self._clock()
        await self.refresh_members()
        if self._stopping:
            return
        if self._preload_count:
            await self.quotes.preload(self._preload_count)
        # stop() may have run while the startup awaits were pending
        if self._stopping:
            logger.info("Monitor stopped during startup; timers not started")
            return
        for task in self.tasks:
            task.start()
        logger.info(
            "Presence monitoring started",
            extra={
                "monitored_users": len(self.tracker),
                "intervals": {task.name: task.interval for task in self.tasks},
            },
        )

    async def handle_presence(self, payload: Any) -> CompletedSession | None:
        """Push path entry point for presence update payloads."""

        if self._stopping:
            return None
        signal = signal_from_presence(payload, self._activity_name)
        if signal is None:
            logger.debug("Rejected presence payload without a user id")
            return None
        if not self.engine.is_tracked(signal.user_id):
            return None
        logger.debug(
            "Presence update",
            extra={"user_id": signal.user_id, "is_playing": signal.is_active},
        )
        return await self.engine.observe(signal)

    async def poll_once(self) -> list[CompletedSession]:
        return await self.engine.reconcile(self._read_signal)

    async def refresh_members(self) -> MembershipChange | None:
        return await self.tracker.refresh()

    def metrics(self) -> dict[str, Any]:
        status = self.quotes.cache_status()
        uptime = (self._clock() - self._started_at).total_seconds() if self._started_at else 0.0
        return {
            "monitored_users": len(self.tracker),
            "active_sessions": self.engine.active_count,
            "completed_sessions": self.engine.completed_total,
            "cached_quotes": status.cached,
            "cache_percentage": status.percentage,
            "uptime_seconds": round(uptime, 1),
        }

    async def log_metrics(self) -> None:
        logger.debug("Performance metrics", extra=self.metrics())

    async def stop(self) -> list[CompletedSession]:
        """Suppress timers, then end and announce every running session."""

        if self._stopping:
            return []
        self._stopping = True
        for task in self.tasks:
            await task.stop()
        ended = await self.engine.drain()
        self._stopped = True
        logger.info("Monitor stopped", extra={"sessions_ended": len(ended)})
        return ended


def create_monitor(
    *,
    roster: RosterSource,
    sink: MessageSink,
    read_signal: SignalReader,
    quote_backend: QuoteBackend,
    role_labels: Mapping[str, str] | None = None,
    activity_name: str = "Satisfactory",
    polling_interval: float = 10,
    member_check_interval: float = 300,
    metrics_interval: float = 60,
    max_cached_quotes: int = 10,
    preload_count: int = 5,
    roster_timeout: float = 30.0,
    delivery_timeout: float = 30.0,
    retry_policy: RetryPolicy | None = None,
    clock: Callable[[], datetime] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ShiftMonitor:
    """Wire tracker, engine, quote provider and notifier into a monitor."""

    quotes = QuoteProvider(
        quote_backend,
        capacity=max_cached_quotes,
        retry_policy=retry_policy,
        clock=clock,
        sleep=sleep,
    )
    tracker = MembershipTracker(roster, role_labels=role_labels, timeout=roster_timeout)
    notifier = Notifier(tracker, sink, quotes, delivery_timeout=delivery_timeout)
    engine = SessionEngine(notifier.notify, clock=clock)
    tracker.attach(engine)
    return ShiftMonitor(
        tracker,
        engine,
        quotes,
        read_signal=read_signal,
        activity_name=activity_name,
        polling_interval=polling_interval,
        member_check_interval=member_check_interval,
        metrics_interval=metrics_interval,
        preload_count=preload_count,
        clock=clock,
    )


__all__ = ["PeriodicTask", "ShiftMonitor", "create_monitor"]
