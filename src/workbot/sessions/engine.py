"""Per-identity session state machine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..formatting import format_duration
from ..membership import TrackedIdentity
from .models import CompletedSession, EndReason, SessionState, Signal

logger = logging.getLogger(__name__)

SessionEndHandler = Callable[[CompletedSession], Awaitable[Any]]
SignalReader = Callable[[str], Any]


class SessionEngine:
    """Derive session start/end transitions from activity signals.

    Every state change goes through :meth:`apply_signal` or the forced-end
    paths, all of which read and write a record without awaiting in between.
    Side effects (``on_session_end``) run afterwards; their failures are
    logged and never roll a transition back.
    """

    def __init__(
        self,
        on_session_end: SessionEndHandler | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._on_session_end = on_session_end
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._states: dict[str, SessionState] = {}
        self._closed = False
        self._completed_total = 0
        self._in_flight: set[asyncio.Task[None]] = set()

    def set_session_end_handler(self, handler: SessionEndHandler) -> None:
        self._on_session_end = handler

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tracked_count(self) -> int:
        return len(self._states)

    @property
    def active_count(self) -> int:
        return sum(1 for state in self._states.values() if state.is_active)

    @property
    def completed_total(self) -> int:
        return self._completed_total

    def is_tracked(self, user_id: str) -> bool:
        return user_id in self._states

    def state_for(self, user_id: str) -> SessionState | None:
        state = self._states.get(user_id)
        return replace(state) if state is not None else None

    def active_user_ids(self) -> list[str]:
        return [user_id for user_id, state in self._states.items() if state.is_active]

    # Identity lifecycle

    def track(self, user_id: str) -> bool:
        if user_id in self._states:
            return False
        self._states[user_id] = SessionState()
        return True

    async def untrack(self, user_id: str) -> CompletedSession | None:
        """Drop a record, ending its session first when one is running."""

        state = self._states.get(user_id)
        if state is None:
            return None
        completed = None
        if state.is_active:
            completed = self._end(user_id, state, self._clock(), "removed")
        del self._states[user_id]
        if completed is not None:
            await self._dispatch(completed)
        return completed

    def identity_added(self, identity: TrackedIdentity) -> None:
        self.track(identity.user_id)

    async def identity_removed(self, identity: TrackedIdentity) -> None:
        await self.untrack(identity.user_id)

    # Transitions

    def apply_signal(self, user_id: str, is_active: Any) -> CompletedSession | None:
        """Apply one activity reading and return the session it completed, if any.

        Anything other than a literal ``True`` counts as inactive.
        """

        state = self._states.get(user_id)
        if state is None:
            logger.debug("Ignoring signal for untracked user", extra={"user_id": user_id})
            return None

        active = is_active is True
        now = self._clock()
        state.last_signal_time = now

        if active and not state.is_active:
            if self._closed:
                return None
            state.is_active = True
            state.start_time = now
            logger.info("Session started", extra={"user_id": user_id})
            return None

        if not active and state.is_active:
            return self._end(user_id, state, now, "signal")

        return None

    def _end(
        self,
        user_id: str,
        state: SessionState,
        now: datetime,
        reason: EndReason,
    ) -> CompletedSession:
        start_time = state.start_time or now
        state.is_active = False
        state.start_time = None
        completed = CompletedSession(
            user_id=user_id,
            start_time=start_time,
            end_time=now,
            reason=reason,
        )
        self._completed_total += 1
        logger.info(
            "Session ended",
            extra={
                "user_id": user_id,
                "duration_ms": completed.duration_ms,
                "formatted_duration": format_duration(completed.duration_ms),
                "reason": reason,
            },
        )
        return completed

    @property
    def pending_dispatches(self) -> int:
        return len(self._in_flight)

    async def _dispatch(self, completed: CompletedSession) -> None:
        """Run the end handler as a tracked task so ``drain`` can wait for it.

        The task is shielded: cancelling the caller does not abort an
        announcement that is already under way.
        """

        if self._on_session_end is None:
            return
        task = asyncio.create_task(self._invoke_handler(completed))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        await asyncio.shield(task)

    async def _invoke_handler(self, completed: CompletedSession) -> None:
        try:
            await self._on_session_end(completed)
        except Exception as exc:
            logger.error(
                "Session end handler failed",
                extra={"user_id": completed.user_id, "error": str(exc)},
            )

    # Input channels

    async def observe(self, signal: Signal) -> CompletedSession | None:
        """Push path: apply a fresh signal for one identity."""

        completed = self.apply_signal(signal.user_id, signal.is_active)
        if completed is not None:
            await self._dispatch(completed)
        return completed

    async def reconcile(self, read_signal: SignalReader) -> list[CompletedSession]:
        """Poll path: re-derive the activity flag for every tracked identity.

        A failing read for one identity counts as inactive and does not stop
        the pass. Transitions are applied for all identities before any
        notification is awaited.
        """

        completed_sessions: list[CompletedSession] = []
        for user_id in list(self._states):
            try:
                reading = read_signal(user_id)
            except Exception as exc:
                logger.warning(
                    "Failed to read activity; treating as inactive",
                    extra={"user_id": user_id, "error": str(exc)},
                )
                reading = False
            completed = self.apply_signal(user_id, reading)
            if completed is not None:
                completed_sessions.append(completed)

        for completed in completed_sessions:
            await self._dispatch(completed)
        return completed_sessions

    async def drain(self) -> list[CompletedSession]:
        """End every running session for shutdown and await each notification in turn.

        Announcements already in flight from the push or poll paths finish
        before the shutdown announcements are sent.
        """

        self._closed = True
        now = self._clock()
        ended = [
            self._end(user_id, state, now, "shutdown")
            for user_id, state in self._states.items()
            if state.is_active
        ]
        in_flight = list(self._in_flight)
        if in_flight:
            logger.info(
                "Waiting for in-flight announcements before shutdown",
                extra={"count": len(in_flight)},
            )
            await asyncio.gather(*in_flight, return_exceptions=True)
        if ended:
            logger.info("Handling active sessions during shutdown", extra={"count": len(ended)})
        for completed in ended:
            await self._dispatch(completed)
        return ended


__all__ = ["SessionEndHandler", "SessionEngine", "SignalReader"]
