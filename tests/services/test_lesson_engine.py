"""Tests for the lesson progression engine.

Each test drives the engine directly with asyncio.run against the recording
FakeContent and an in-memory store.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from learnx.models.progress import LessonContent, ProgressRecord
from learnx.models.session import LessonSession, LessonState
from learnx.repos.kv_store import InMemoryKeyValueStore
from learnx.services.lesson_engine import (
    EmptyModuleError,
    InvalidTransitionError,
    LessonEngine,
    QuizValidationError,
    StaleStepError,
    checkpoint_titles,
    is_checkpoint,
)
from learnx.services.lesson_store import CONTENT_NAMESPACE, LessonStore
from learnx.services.placeholders import (
    CONTENT_ERROR_REASON,
    PLACEHOLDER_REMEDIAL_TEXT,
    PLACEHOLDER_VIDEO,
)
from tests.fakes import FAKE_VIDEO, BrokenKeyValueStore, FakeContent, make_module

USER = "u1"
COURSE = "c1"
TITLE = "Test Course"


def _perfect(session: LessonSession) -> list[int]:
    assert session.quiz is not None
    return [q.correct_answer_index for q in session.quiz.questions]


async def _walk(engine: LessonEngine, session: LessonSession) -> tuple[LessonSession, list[int]]:
    """Advance to completion, passing every checkpoint on the first try."""
    quizzed: list[int] = []
    while session.state is not LessonState.COMPLETED:
        session = await engine.advance(session)
        if session.state is LessonState.AWAITING_CHECKPOINT:
            quizzed.append(session.current_step_index)
            session = await engine.submit_checkpoint(session, _perfect(session))
    return session, quizzed


# ---- checkpoint placement ----


@pytest.mark.parametrize(
    ("index", "expected"),
    [(0, False), (1, False), (2, True), (3, False), (5, True), (8, True), (9, False)],
)
def test_is_checkpoint(index: int, expected: bool) -> None:
    assert is_checkpoint(index) is expected


def test_checkpoint_titles_cover_step_and_two_before() -> None:
    module = make_module("A", "B", "C", "D", "E", "F")
    assert checkpoint_titles(module, 2) == ["A", "B", "C"]
    assert checkpoint_titles(module, 5) == ["D", "E", "F"]


# ---- start ----


def test_start_presents_first_step(engine: LessonEngine, content: FakeContent) -> None:
    session = asyncio.run(engine.start(make_module("A", "B"), COURSE, TITLE, USER))

    assert session.state is LessonState.PRESENTING
    assert session.current_step_index == 0
    assert session.content == LessonContent(text="Lesson on A", video_reference=FAKE_VIDEO)
    assert content.args_of("generate_step_text") == [(TITLE, "Module m1", "A")]
    assert content.args_of("find_video") == [(f"{TITLE} A",)]


def test_start_rejects_empty_module(engine: LessonEngine, content: FakeContent) -> None:
    with pytest.raises(EmptyModuleError):
        asyncio.run(engine.start(make_module(), COURSE, TITLE, USER))
    assert content.calls == []


def test_start_resumes_saved_progress(engine: LessonEngine, store: LessonStore) -> None:
    module = make_module("A", "B", "C", "D")

    async def scenario() -> LessonSession:
        await store.save_progress(
            USER, COURSE, "m1", ProgressRecord(2, frozenset({"s1", "s2"}))
        )
        return await engine.start(module, COURSE, TITLE, USER)

    session = asyncio.run(scenario())

    assert session.current_step_index == 2
    assert [s.is_completed for s in session.module.steps] == [True, True, False, False]
    assert session.content is not None
    assert session.content.text == "Lesson on C"


def test_start_discards_progress_outside_module(
    engine: LessonEngine, store: LessonStore
) -> None:
    module = make_module("A", "B", "C")

    async def scenario() -> LessonSession:
        await store.save_progress(USER, COURSE, "m1", ProgressRecord(7, frozenset({"s1"})))
        return await engine.start(module, COURSE, TITLE, USER)

    session = asyncio.run(scenario())

    assert session.current_step_index == 0
    assert session.module.completed_step_ids == ()


def test_start_ignores_completed_ids_from_other_modules(
    engine: LessonEngine, store: LessonStore
) -> None:
    module = make_module("A", "B", "C")

    async def scenario() -> LessonSession:
        await store.save_progress(
            USER, COURSE, "m1", ProgressRecord(1, frozenset({"s1", "s99"}))
        )
        return await engine.start(module, COURSE, TITLE, USER)

    session = asyncio.run(scenario())

    assert session.current_step_index == 1
    assert session.module.completed_step_ids == ("s1",)


def test_progress_is_per_user(engine: LessonEngine, store: LessonStore) -> None:
    module = make_module("A", "B", "C")

    async def scenario() -> LessonSession:
        await store.save_progress("someone-else", COURSE, "m1", ProgressRecord(2))
        return await engine.start(module, COURSE, TITLE, USER)

    assert asyncio.run(scenario()).current_step_index == 0


# ---- advancing ----


def test_advancing_without_checkpoint_completes_every_step(
    engine: LessonEngine, content: FakeContent, store: LessonStore
) -> None:
    module = make_module("A", "B")

    async def scenario():
        session = await engine.start(module, COURSE, TITLE, USER)
        session = await engine.advance(session)
        assert session.state is LessonState.PRESENTING
        assert session.current_step_index == 1
        session = await engine.advance(session)
        finished = await engine.finish(session)
        record = await store.get_progress(USER, COURSE, "m1")
        return session, finished, record

    session, finished, record = asyncio.run(scenario())

    assert session.state is LessonState.COMPLETED
    assert finished.is_completed
    assert all(s.is_completed for s in finished.steps)
    assert record == ProgressRecord(1, frozenset({"s1", "s2"}))
    assert content.count("generate_checkpoint_quiz") == 0


def test_checkpoints_occur_at_every_third_step(
    engine: LessonEngine, content: FakeContent
) -> None:
    module = make_module("A", "B", "C", "D", "E", "F", "G")

    async def scenario():
        session = await engine.start(module, COURSE, TITLE, USER)
        return await _walk(engine, session)

    session, quizzed = asyncio.run(scenario())

    assert quizzed == [2, 5]
    assert content.args_of("generate_checkpoint_quiz") == [
        (TITLE, ("A", "B", "C")),
        (TITLE, ("D", "E", "F")),
    ]
    assert session.module.is_completed


def test_three_step_module_walkthrough(engine: LessonEngine, content: FakeContent) -> None:
    module = make_module("A", "B", "C")

    async def scenario():
        session = await engine.start(module, COURSE, TITLE, USER)

        session = await engine.advance(session)
        assert session.module.completed_step_ids == ("s1",)
        assert session.current_step_index == 1

        session = await engine.advance(session)
        assert session.module.completed_step_ids == ("s1", "s2")
        assert session.current_step_index == 2
        assert content.count("generate_checkpoint_quiz") == 0

        session = await engine.advance(session)
        assert session.state is LessonState.AWAITING_CHECKPOINT
        assert session.answers == (None, None, None)

        session = await engine.submit_checkpoint(session, _perfect(session))
        await engine.finish(session)
        return session

    session = asyncio.run(scenario())

    assert content.args_of("generate_checkpoint_quiz") == [(TITLE, ("A", "B", "C"))]
    assert session.state is LessonState.COMPLETED
    assert session.last_score == 3
    assert session.module.is_completed


def test_completed_checkpoint_step_is_not_quizzed_again(
    engine: LessonEngine, content: FakeContent, store: LessonStore
) -> None:
    module = make_module("A", "B", "C", "D")

    async def scenario() -> LessonSession:
        await store.save_progress(
            USER, COURSE, "m1", ProgressRecord(2, frozenset({"s1", "s2", "s3"}))
        )
        session = await engine.start(module, COURSE, TITLE, USER)
        return await engine.advance(session)

    session = asyncio.run(scenario())

    assert session.state is LessonState.PRESENTING
    assert session.current_step_index == 3
    assert content.count("generate_checkpoint_quiz") == 0


def test_advance_persists_next_index(engine: LessonEngine, store: LessonStore) -> None:
    module = make_module("A", "B", "C")

    async def scenario():
        session = await engine.start(module, COURSE, TITLE, USER)
        session = await engine.advance(session)
        await engine.flush(session)
        return await store.get_progress(USER, COURSE, "m1")

    assert asyncio.run(scenario()) == ProgressRecord(1, frozenset({"s1"}))


def test_progress_survives_a_new_session(engine: LessonEngine) -> None:
    module = make_module("A", "B", "C")

    async def scenario() -> LessonSession:
        first = await engine.start(module, COURSE, TITLE, USER)
        first = await engine.advance(first)
        first = await engine.advance(first)
        await engine.abandon(first)
        return await engine.start(module, COURSE, TITLE, USER)

    session = asyncio.run(scenario())

    assert session.current_step_index == 2
    assert session.module.completed_step_ids == ("s1", "s2")


# ---- checkpoint submission ----


async def _at_checkpoint(engine: LessonEngine) -> LessonSession:
    session = await engine.start(make_module("A", "B", "C"), COURSE, TITLE, USER)
    session = await engine.advance(session)
    session = await engine.advance(session)
    return await engine.advance(session)


@pytest.mark.parametrize(
    "answers",
    [
        [0, None, 2],
        [0, -1, 2],
        [None, None, None],
        [0, 1],
        [0, 1, 2, 3],
        [0, 1, 9],
    ],
)
def test_invalid_submission_is_rejected(
    engine: LessonEngine, content: FakeContent, answers: list[int | None]
) -> None:
    async def scenario():
        session = await _at_checkpoint(engine)
        calls_before = len(content.calls)
        with pytest.raises(QuizValidationError):
            await engine.submit_checkpoint(session, answers)
        return session, calls_before

    session, calls_before = asyncio.run(scenario())

    assert session.state is LessonState.AWAITING_CHECKPOINT
    assert len(content.calls) == calls_before


def test_rejected_submission_can_be_corrected(engine: LessonEngine) -> None:
    async def scenario() -> LessonSession:
        session = await _at_checkpoint(engine)
        with pytest.raises(QuizValidationError):
            await engine.submit_checkpoint(session, [0, None, 2])
        return await engine.submit_checkpoint(session, [0, 1, 2])

    assert asyncio.run(scenario()).state is LessonState.COMPLETED


def test_imperfect_score_enters_remedial(
    engine: LessonEngine, content: FakeContent
) -> None:
    async def scenario() -> LessonSession:
        session = await _at_checkpoint(engine)
        return await engine.submit_checkpoint(session, [0, 1, 0])

    session = asyncio.run(scenario())

    assert session.state is LessonState.REMEDIAL
    assert session.last_score == 2
    assert session.remedial_text == "Let's review A, B, C"
    assert content.args_of("generate_remedial_text") == [(TITLE, "A, B, C")]
    assert not session.module.steps[2].is_completed


def test_retake_issues_fresh_quiz_then_pass_completes(
    engine: LessonEngine, content: FakeContent
) -> None:
    async def scenario():
        session = await _at_checkpoint(engine)
        session = await engine.submit_checkpoint(session, [2, 2, 2])
        assert session.last_score == 1

        session = await engine.retake_checkpoint(session)
        assert session.state is LessonState.AWAITING_CHECKPOINT
        assert session.answers == (None, None, None)
        assert session.last_score is None
        assert session.remedial_text is None

        session = await engine.submit_checkpoint(session, [0, 0, 0])
        session = await engine.retake_checkpoint(session)
        return await engine.submit_checkpoint(session, _perfect(session))

    session = asyncio.run(scenario())

    assert content.count("generate_checkpoint_quiz") == 3
    assert session.state is LessonState.COMPLETED
    assert session.module.is_completed


def test_remedial_text_falls_back_to_placeholder(
    engine: LessonEngine, content: FakeContent
) -> None:
    content.failing.add("generate_remedial_text")

    async def scenario() -> LessonSession:
        session = await _at_checkpoint(engine)
        return await engine.submit_checkpoint(session, [1, 0, 2])

    session = asyncio.run(scenario())

    assert session.state is LessonState.REMEDIAL
    assert session.remedial_text == PLACEHOLDER_REMEDIAL_TEXT


def test_unavailable_quiz_does_not_gate_progress(
    engine: LessonEngine, content: FakeContent
) -> None:
    content.failing.add("generate_checkpoint_quiz")

    async def scenario() -> LessonSession:
        return await _at_checkpoint(engine)

    session = asyncio.run(scenario())

    assert session.state is LessonState.COMPLETED
    assert session.module.is_completed


def test_empty_quiz_does_not_gate_progress(
    engine: LessonEngine, content: FakeContent
) -> None:
    content.empty_quiz = True
    assert asyncio.run(_at_checkpoint(engine)).state is LessonState.COMPLETED


def test_unavailable_retake_quiz_advances(
    engine: LessonEngine, content: FakeContent
) -> None:
    async def scenario() -> LessonSession:
        session = await _at_checkpoint(engine)
        session = await engine.submit_checkpoint(session, [1, 1, 1])
        content.failing.add("generate_checkpoint_quiz")
        return await engine.retake_checkpoint(session)

    assert asyncio.run(scenario()).state is LessonState.COMPLETED


# ---- content loading ----


def test_step_content_is_fetched_once_per_step(
    engine: LessonEngine, content: FakeContent
) -> None:
    module = make_module("A", "B")

    async def scenario():
        first = await engine.start(module, COURSE, TITLE, USER)
        await engine.abandon(first)
        return first, await engine.start(module, COURSE, TITLE, "u2")

    first, second = asyncio.run(scenario())

    assert content.count("generate_step_text") == 1
    assert content.count("find_video") == 1
    assert first.content is not None and not first.content.from_cache
    assert second.content is not None and second.content.from_cache
    assert second.content.text == first.content.text


def test_step_text_failure_enters_error_and_retry_recovers(
    engine: LessonEngine, content: FakeContent, kv: InMemoryKeyValueStore
) -> None:
    content.failing.add("generate_step_text")

    async def scenario():
        session = await engine.start(make_module("A"), COURSE, TITLE, USER)
        assert session.state is LessonState.ERROR
        assert session.error == CONTENT_ERROR_REASON
        assert kv.keys(CONTENT_NAMESPACE) == []

        content.failing.clear()
        return await engine.retry(session)

    session = asyncio.run(scenario())

    assert session.state is LessonState.PRESENTING
    assert session.error is None
    assert kv.keys(CONTENT_NAMESPACE) == ["c1:s1"]


def test_video_failure_caches_text_with_placeholder(
    engine: LessonEngine, content: FakeContent, kv: InMemoryKeyValueStore
) -> None:
    content.failing.add("find_video")
    module = make_module("A")

    async def scenario():
        first = await engine.start(module, COURSE, TITLE, USER)
        await engine.abandon(first)
        content.failing.clear()
        return first, await engine.start(module, COURSE, TITLE, USER)

    first, second = asyncio.run(scenario())

    assert first.state is LessonState.PRESENTING
    assert first.content is not None
    assert first.content.text == "Lesson on A"
    assert first.content.video_reference == PLACEHOLDER_VIDEO
    assert kv.keys(CONTENT_NAMESPACE) == ["c1:s1"]

    # the revisit is served from the cache: one text call, same placeholder
    assert content.count("generate_step_text") == 1
    assert second.content is not None and second.content.from_cache
    assert second.content.video_reference == PLACEHOLDER_VIDEO


def test_late_content_is_discarded_after_abandon(
    engine: LessonEngine, content: FakeContent, store: LessonStore
) -> None:
    module = make_module("A", "B")

    async def scenario():
        session = await engine.start(module, COURSE, TITLE, USER)
        content.step_text_gate = asyncio.Event()
        pending = asyncio.create_task(engine.advance(session))
        while content.count("find_video") < 2:
            await asyncio.sleep(0)

        await engine.abandon(session)
        content.step_text_gate.set()
        with pytest.raises(StaleStepError):
            await pending
        return await store.get_progress(USER, COURSE, "m1")

    record = asyncio.run(scenario())

    # the advance itself happened; only the late content was dropped
    assert record == ProgressRecord(1, frozenset({"s1"}))


# ---- persistence outages ----


def test_lesson_completes_with_store_down(content: FakeContent) -> None:
    broken = BrokenKeyValueStore()
    engine = LessonEngine(content, LessonStore(broken))

    async def scenario():
        session = await engine.start(make_module("A", "B", "C"), COURSE, TITLE, USER)
        session, _ = await _walk(engine, session)
        return await engine.finish(session)

    module = asyncio.run(scenario())

    assert module.is_completed
    assert broken.attempts > 0


# ---- invalid transitions ----


def test_operations_from_wrong_state_are_rejected(engine: LessonEngine) -> None:
    async def scenario():
        session = await engine.start(make_module("A", "B"), COURSE, TITLE, USER)
        with pytest.raises(InvalidTransitionError):
            await engine.submit_checkpoint(session, [0])
        with pytest.raises(InvalidTransitionError):
            await engine.retake_checkpoint(session)
        with pytest.raises(InvalidTransitionError):
            await engine.retry(session)
        with pytest.raises(InvalidTransitionError):
            await engine.finish(session)

        session = await engine.advance(session)
        session = await engine.advance(session)
        assert session.state is LessonState.COMPLETED
        with pytest.raises(InvalidTransitionError):
            await engine.advance(session)

    asyncio.run(scenario())


def test_checkpoint_without_quiz_is_rejected(engine: LessonEngine) -> None:
    session = asyncio.run(engine.start(make_module("A"), COURSE, TITLE, USER))
    broken = replace(session, state=LessonState.AWAITING_CHECKPOINT, quiz=None)

    with pytest.raises(InvalidTransitionError):
        asyncio.run(engine.submit_checkpoint(broken, []))


def test_forget_discards_late_content(engine: LessonEngine) -> None:
    session = asyncio.run(engine.start(make_module("A"), COURSE, TITLE, USER))
    engine.forget(session)

    assert engine._active_tokens == {}
    with pytest.raises(StaleStepError):
        engine._check_token(session)


# ---- audio ----


def test_synthesize_audio_returns_base64(engine: LessonEngine, content: FakeContent) -> None:
    async def scenario():
        session = await engine.start(make_module("A"), COURSE, TITLE, USER)
        return await engine.synthesize_audio(session)

    assert asyncio.run(scenario()) == "UklGRg=="
    assert content.args_of("synthesize_audio") == [("Lesson on A",)]


def test_synthesize_audio_failure_returns_none(
    engine: LessonEngine, content: FakeContent
) -> None:
    content.failing.add("synthesize_audio")

    async def scenario():
        session = await engine.start(make_module("A"), COURSE, TITLE, USER)
        return await engine.synthesize_audio(session)

    assert asyncio.run(scenario()) is None
