from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from workbot.membership import TrackedIdentity
from workbot.sessions import CompletedSession, SessionEngine, Signal

START = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
ALICE = "111111111111111111"
BOB = "222222222222222222"


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class Recorder:
    def __init__(self) -> None:
        self.completed: list[CompletedSession] = []

    async def __call__(self, completed: CompletedSession) -> None:
        self.completed.append(completed)


def _engine(*user_ids: str) -> tuple[SessionEngine, Recorder, FakeClock]:
    recorder = Recorder()
    clock = FakeClock()
    engine = SessionEngine(recorder, clock=clock)
    for user_id in user_ids:
        engine.track(user_id)
    return engine, recorder, clock


@pytest.mark.parametrize("sequence", list(itertools.product([False, True], repeat=5)))
def test_each_falling_edge_completes_exactly_one_session(sequence: tuple[bool, ...]) -> None:
    engine, recorder, clock = _engine(ALICE)

    async def scenario() -> None:
        for reading in sequence:
            clock.advance(seconds=1)
            await engine.observe(Signal(ALICE, reading))

    asyncio.run(scenario())

    falling_edges = sum(
        1 for previous, current in zip((False,) + sequence, sequence) if previous and not current
    )
    assert len(recorder.completed) == falling_edges
    assert engine.state_for(ALICE).is_active is sequence[-1]


def test_duration_matches_clock_exactly() -> None:
    engine, recorder, clock = _engine(ALICE)

    engine.apply_signal(ALICE, True)
    clock.advance(milliseconds=11_565_000)
    completed = engine.apply_signal(ALICE, False)

    assert completed is not None
    assert completed.duration_ms == 11_565_000
    assert completed.reason == "signal"
    assert completed.start_time == START


def test_self_transitions_are_noops() -> None:
    engine, _, clock = _engine(ALICE)

    engine.apply_signal(ALICE, True)
    clock.advance(minutes=5)
    engine.apply_signal(ALICE, True)

    state = engine.state_for(ALICE)
    assert state.start_time == START
    assert state.last_signal_time == START + timedelta(minutes=5)
    assert engine.apply_signal(BOB, True) is None
    assert not engine.is_tracked(BOB)


@pytest.mark.parametrize("reading", [None, 1, "true", "yes", object()])
def test_non_boolean_readings_count_as_inactive(reading: object) -> None:
    engine, _, _ = _engine(ALICE)

    engine.apply_signal(ALICE, reading)

    assert engine.state_for(ALICE).is_active is False


def test_state_for_returns_copy() -> None:
    engine, _, _ = _engine(ALICE)

    engine.state_for(ALICE).is_active = True

    assert engine.state_for(ALICE).is_active is False
    assert engine.state_for(BOB) is None


def test_untrack_active_identity_completes_session() -> None:
    engine, recorder, clock = _engine(ALICE, BOB)
    engine.apply_signal(ALICE, True)
    clock.advance(minutes=30)

    completed = asyncio.run(engine.untrack(ALICE))
    idle = asyncio.run(engine.untrack(BOB))

    assert completed is not None and completed.reason == "removed"
    assert completed.duration_ms == 30 * 60_000
    assert idle is None
    assert [session.user_id for session in recorder.completed] == [ALICE]
    assert engine.tracked_count == 0
    assert asyncio.run(engine.untrack(ALICE)) is None


def test_identity_listener_hooks() -> None:
    engine, _, _ = _engine()
    identity = TrackedIdentity(user_id=ALICE, display_name="Alice")

    engine.identity_added(identity)
    engine.identity_added(identity)
    assert engine.tracked_count == 1

    asyncio.run(engine.identity_removed(identity))
    assert not engine.is_tracked(ALICE)


def test_drain_ends_every_active_session_and_blocks_new_ones() -> None:
    engine, recorder, clock = _engine(ALICE, BOB, "333333333333333333")
    engine.apply_signal(ALICE, True)
    engine.apply_signal(BOB, True)
    clock.advance(hours=1)

    ended = asyncio.run(engine.drain())

    assert {session.user_id for session in ended} == {ALICE, BOB}
    assert all(session.reason == "shutdown" for session in ended)
    assert len(recorder.completed) == 2
    assert engine.closed
    assert engine.active_count == 0
    assert engine.apply_signal(ALICE, True) is None
    assert engine.active_count == 0
    assert asyncio.run(engine.drain()) == []


def test_drain_waits_for_in_flight_announcements() -> None:
    delivered: list[tuple[str, str]] = []

    async def scenario() -> bool:
        release = asyncio.Event()

        async def handler(completed: CompletedSession) -> None:
            if completed.reason == "signal":
                await release.wait()
            delivered.append((completed.user_id, completed.reason))

        engine = SessionEngine(handler, clock=FakeClock())
        for user_id in (ALICE, BOB):
            engine.track(user_id)
            engine.apply_signal(user_id, True)

        pushed = asyncio.create_task(engine.observe(Signal(ALICE, False)))
        await asyncio.sleep(0)
        assert engine.pending_dispatches == 1

        draining = asyncio.create_task(engine.drain())
        await asyncio.sleep(0)
        waited = not draining.done()
        release.set()
        await draining
        await pushed
        assert engine.pending_dispatches == 0
        return waited

    assert asyncio.run(scenario()) is True
    assert delivered == [(ALICE, "signal"), (BOB, "shutdown")]


def test_cancelled_caller_does_not_abort_announcement() -> None:
    delivered: list[str] = []

    async def scenario() -> None:
        release = asyncio.Event()

        async def handler(completed: CompletedSession) -> None:
            await release.wait()
            delivered.append(completed.user_id)

        engine = SessionEngine(handler, clock=FakeClock())
        engine.track(ALICE)
        engine.apply_signal(ALICE, True)

        pushed = asyncio.create_task(engine.observe(Signal(ALICE, False)))
        await asyncio.sleep(0)
        pushed.cancel()
        await asyncio.sleep(0)
        assert pushed.cancelled()

        draining = asyncio.create_task(engine.drain())
        await asyncio.sleep(0)
        release.set()
        await draining

    asyncio.run(scenario())

    assert delivered == [ALICE]


def test_handler_failure_does_not_roll_back_transition(caplog: pytest.LogCaptureFixture) -> None:
    async def failing(completed: CompletedSession) -> None:
        raise RuntimeError("discord down")

    engine = SessionEngine(failing, clock=FakeClock())
    engine.track(ALICE)
    engine.apply_signal(ALICE, True)

    completed = asyncio.run(engine.observe(Signal(ALICE, False)))

    assert completed is not None
    assert engine.state_for(ALICE).is_active is False
    assert engine.completed_total == 1
    assert "Session end handler failed" in caplog.text


def test_reconcile_isolates_reader_failures() -> None:
    engine, recorder, _ = _engine(ALICE, BOB)
    engine.apply_signal(ALICE, True)

    def reader(user_id: str) -> bool:
        if user_id == ALICE:
            raise LookupError("member vanished")
        return True

    completed = asyncio.run(engine.reconcile(reader))

    assert [session.user_id for session in completed] == [ALICE]
    assert recorder.completed == completed
    assert engine.state_for(BOB).is_active is True


def test_reconcile_applies_all_transitions_before_dispatch() -> None:
    seen_active_counts: list[int] = []
    engine = SessionEngine(clock=FakeClock())

    async def handler(completed: CompletedSession) -> None:
        seen_active_counts.append(engine.active_count)

    engine.set_session_end_handler(handler)
    for user_id in (ALICE, BOB):
        engine.track(user_id)
        engine.apply_signal(user_id, True)

    asyncio.run(engine.reconcile(lambda user_id: False))

    assert seen_active_counts == [0, 0]


def test_push_and_poll_agree_without_duplicates() -> None:
    engine, recorder, clock = _engine(ALICE)

    async def scenario() -> None:
        await engine.observe(Signal(ALICE, True))
        await engine.reconcile(lambda user_id: True)
        clock.advance(minutes=10)
        await engine.observe(Signal(ALICE, False))
        await engine.reconcile(lambda user_id: False)

    asyncio.run(scenario())

    assert len(recorder.completed) == 1
    assert recorder.completed[0].duration_ms == 10 * 60_000
