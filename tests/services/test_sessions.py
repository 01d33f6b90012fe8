from __future__ import annotations

import asyncio

import pytest

from learnx.models.session import LessonSession
from learnx.services.lesson_engine import LessonEngine
from learnx.services.sessions import SessionRegistry
from tests.fakes import make_module


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _session(user_id: str = "u1") -> LessonSession:
    return LessonSession.new(
        user_id=user_id,
        course_id="c1",
        course_title="Test Course",
        module=make_module("A"),
    )


def test_session_visible_only_to_owner(clock: FakeClock) -> None:
    registry = SessionRegistry(60, clock=clock)
    session = registry.put(_session())

    assert registry.get(session.session_id, "u1") is session
    assert registry.get(session.session_id, "u2") is None
    assert registry.get("missing", "u1") is None


def test_idle_sessions_expire(clock: FakeClock) -> None:
    evicted: list[str] = []
    registry = SessionRegistry(
        60, clock=clock, on_evict=lambda s: evicted.append(s.session_id)
    )
    idle = registry.put(_session())
    clock.now += 30
    busy = registry.put(_session("u2"))

    clock.now += 40
    # idle was last touched 70s ago, busy 40s ago
    assert registry.get(idle.session_id, "u1") is None
    assert registry.get(busy.session_id, "u2") is busy
    assert evicted == [idle.session_id]
    assert len(registry) == 1


def test_access_keeps_a_session_alive(clock: FakeClock) -> None:
    registry = SessionRegistry(60, clock=clock)
    session = registry.put(_session())

    for _ in range(5):
        clock.now += 50
        assert registry.get(session.session_id, "u1") is session


def test_removed_sessions_are_not_evicted(clock: FakeClock) -> None:
    evicted: list[LessonSession] = []
    registry = SessionRegistry(60, clock=clock, on_evict=evicted.append)
    session = registry.put(_session())
    registry.remove(session.session_id)

    clock.now += 120
    registry.put(_session("u2"))
    assert evicted == []


def test_eviction_releases_engine_state(engine: LessonEngine, clock: FakeClock) -> None:
    registry = SessionRegistry(60, clock=clock, on_evict=engine.forget)

    async def scenario() -> None:
        module = make_module("A", "B")
        for n in range(50):
            registry.put(await engine.start(module, "c1", "Test Course", f"u{n}"))

    asyncio.run(scenario())
    assert len(engine._active_tokens) == 50

    clock.now += 61
    registry.put(_session("late"))

    assert len(registry) == 1
    assert engine._active_tokens == {}
