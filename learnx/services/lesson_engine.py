"""Lesson progression engine.

Walks one learner through one module, step by step:

    loading -> presenting -> (advance) -> loading -> presenting -> ...
                    |
                    +-> awaiting_checkpoint -> evaluating_quiz -> advancing
                                 ^                    |
                                 |                    v
                                 +----(retake)---- remedial

Every third step (indices 2, 5, 8, ...) is a mastery checkpoint: before the
step can be completed the learner must answer every question of a quiz over
that step and the two before it, and only a perfect score passes.  A
failed attempt shows remedial prose and allows unlimited retakes.

The engine is stateless apart from two small per-session tables:

  - the active step token, so content that arrives for a step the learner
    has already left (or a session they abandoned) is discarded
  - the tail of the progress-write chain, so fire-and-forget writes land
    in order and can be awaited before a module is reported finished

Sessions themselves are immutable LessonSession snapshots; every operation
takes one and returns the next.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import replace

from learnx.core.logging import lesson_log_context
from learnx.core.metrics import (
    CHECKPOINT_RESULTS,
    LESSON_CACHE_OPERATIONS,
    LESSON_TRANSITIONS,
)
from learnx.models.course import Module
from learnx.models.progress import LessonContent, ProgressRecord
from learnx.models.quiz import UNANSWERED, Quiz
from learnx.models.session import LessonSession, LessonState
from learnx.services.content import ContentCollaborator, ContentUnavailable
from learnx.services.lesson_store import LessonStore
from learnx.services.placeholders import (
    CONTENT_ERROR_REASON,
    PLACEHOLDER_REMEDIAL_TEXT,
    PLACEHOLDER_VIDEO,
)

logger = logging.getLogger(__name__)

CHECKPOINT_INTERVAL = 3


class LessonError(Exception):
    """Base class for lesson engine errors."""


class InvalidTransitionError(LessonError):
    def __init__(self, operation: str, state: LessonState) -> None:
        super().__init__(f"cannot {operation} while {state.value}")
        self.operation = operation
        self.state = state


class QuizValidationError(LessonError):
    """Checkpoint answers were incomplete or out of range."""


class EmptyModuleError(LessonError):
    """The module has no steps to present."""


class StaleStepError(LessonError):
    """A result arrived for a step the session is no longer on."""


def is_checkpoint(index: int) -> bool:
    return (index + 1) % CHECKPOINT_INTERVAL == 0


def checkpoint_titles(module: Module, index: int) -> list[str]:
    """Titles of the steps a checkpoint at ``index`` covers."""
    start = max(0, index - (CHECKPOINT_INTERVAL - 1))
    return [s.title for s in module.steps[start : index + 1]]


def _log_extra(session: LessonSession) -> dict[str, object]:
    return lesson_log_context(
        user_id=session.user_id,
        session_id=session.session_id,
        course_id=session.course_id,
        module_id=session.module.id,
        step_index=session.current_step_index,
        state=session.state.value,
    )


class LessonEngine:
    def __init__(self, content: ContentCollaborator, store: LessonStore) -> None:
        self._content = content
        self._store = store
        self._active_tokens: dict[str, str] = {}
        self._write_tails: dict[str, asyncio.Task[None]] = {}

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    async def start(
        self, module: Module, course_id: str, course_title: str, user_id: str
    ) -> LessonSession:
        """Open a session on ``module``, resuming saved progress if any."""
        if not module.steps:
            raise EmptyModuleError(f"module {module.id!r} has no steps")

        record = await self._store.get_progress(user_id, course_id, module.id)
        index, completed = self._restore(module, record)
        if completed is not None:
            module = module.with_completed(completed)

        session = replace(
            LessonSession.new(
                user_id=user_id,
                course_id=course_id,
                course_title=course_title,
                module=module,
            ),
            current_step_index=index,
        )
        logger.info(
            "Lesson started at step %d/%d%s",
            index + 1,
            len(module.steps),
            " (resumed)" if completed is not None else "",
            extra=_log_extra(session),
        )
        LESSON_TRANSITIONS.labels(state=LessonState.LOADING.value).inc()
        return await self.load_step(session)

    async def finish(self, session: LessonSession) -> Module:
        """Return the completed module once every progress write has landed."""
        self._require(session, "finish", LessonState.COMPLETED)
        await self.flush(session)
        self.forget(session)
        self._write_tails.pop(session.session_id, None)
        logger.info("Lesson finished", extra=_log_extra(session))
        return session.module

    async def abandon(self, session: LessonSession) -> Module:
        """Leave the lesson from any state.

        Content still in flight for this session is discarded when it
        arrives.  Progress already scheduled is written before returning.
        """
        self.forget(session)
        await self.flush(session)
        self._write_tails.pop(session.session_id, None)
        logger.info("Lesson abandoned", extra=_log_extra(session))
        return session.module

    async def flush(self, session: LessonSession) -> None:
        tail = self._write_tails.get(session.session_id)
        if tail is not None:
            await tail

    # -------------------------------------------------------------------------
    # Step content
    # -------------------------------------------------------------------------

    async def load_step(self, session: LessonSession) -> LessonSession:
        """Fetch (or serve cached) text and video for the current step."""
        self._require(session, "load_step", LessonState.LOADING, LessonState.ERROR)

        token = uuid.uuid4().hex
        self._active_tokens[session.session_id] = token
        session = replace(
            session,
            state=LessonState.LOADING,
            step_token=token,
            content=None,
            quiz=None,
            answers=(),
            remedial_text=None,
            last_score=None,
            error=None,
        )
        step = session.current_step

        cached = await self._store.get_lesson_content(session.course_id, step.id)
        if cached is not None:
            LESSON_CACHE_OPERATIONS.labels(operation="hit").inc()
            self._check_token(session)
            return self._transition(
                session,
                LessonState.PRESENTING,
                content=replace(cached, from_cache=True),
            )
        LESSON_CACHE_OPERATIONS.labels(operation="miss").inc()

        text, video = await asyncio.gather(
            self._content.generate_step_text(
                session.course_title, session.module.title, step.title
            ),
            self._content.find_video(f"{session.course_title} {step.title}"),
            return_exceptions=True,
        )
        self._check_token(session)

        if isinstance(text, BaseException):
            if not isinstance(text, ContentUnavailable):
                raise text
            logger.warning(
                "Step text unavailable: %s", text, extra=_log_extra(session)
            )
            return self._transition(
                session, LessonState.ERROR, error=CONTENT_ERROR_REASON
            )

        if isinstance(video, BaseException):
            if not isinstance(video, ContentUnavailable):
                raise video
            logger.warning(
                "Video unavailable, using placeholder: %s",
                video,
                extra=_log_extra(session),
            )
            video = PLACEHOLDER_VIDEO

        # cached once, placeholder video included
        content = LessonContent(text=text, video_reference=video)
        await self._store.save_lesson_content(session.course_id, step.id, content)
        return self._transition(session, LessonState.PRESENTING, content=content)

    async def retry(self, session: LessonSession) -> LessonSession:
        self._require(session, "retry", LessonState.ERROR)
        return await self.load_step(session)

    async def synthesize_audio(self, session: LessonSession) -> str | None:
        """Base64 narration of the current lesson text, or None."""
        if session.content is None:
            raise InvalidTransitionError("synthesize_audio", session.state)
        try:
            return await self._content.synthesize_audio(session.content.text)
        except ContentUnavailable as e:
            logger.warning("Audio unavailable: %s", e, extra=_log_extra(session))
            return None

    # -------------------------------------------------------------------------
    # Progression
    # -------------------------------------------------------------------------

    async def advance(self, session: LessonSession) -> LessonSession:
        self._require(session, "advance", LessonState.PRESENTING)

        index = session.current_step_index
        if is_checkpoint(index) and not session.current_step.is_completed:
            quiz = await self._fetch_quiz(session)
            if quiz is not None:
                return self._transition(
                    session,
                    LessonState.AWAITING_CHECKPOINT,
                    quiz=quiz,
                    answers=(None,) * len(quiz.questions),
                    remedial_text=None,
                    last_score=None,
                )
        return await self._complete_step(session)

    async def submit_checkpoint(
        self, session: LessonSession, answers: Sequence[int | None]
    ) -> LessonSession:
        self._require(session, "submit_checkpoint", LessonState.AWAITING_CHECKPOINT)
        quiz = session.quiz
        if quiz is None:
            raise InvalidTransitionError("submit_checkpoint", session.state)

        problem = _answers_problem(quiz, answers)
        if problem is not None:
            CHECKPOINT_RESULTS.labels(result="rejected").inc()
            raise QuizValidationError(problem)

        submitted = tuple(int(a) for a in answers if a is not None)
        session = self._transition(
            session, LessonState.EVALUATING_QUIZ, answers=submitted
        )
        score = quiz.score(submitted)
        total = len(quiz.questions)

        if quiz.is_perfect(submitted):
            CHECKPOINT_RESULTS.labels(result="pass").inc()
            session = self._transition(session, LessonState.ADVANCING, last_score=score)
            return await self._complete_step(session)

        CHECKPOINT_RESULTS.labels(result="fail").inc()
        logger.info(
            "Checkpoint failed %d/%d", score, total, extra=_log_extra(session)
        )
        topic = ", ".join(checkpoint_titles(session.module, session.current_step_index))
        try:
            remedial = await self._content.generate_remedial_text(
                session.course_title, topic
            )
        except ContentUnavailable as e:
            logger.warning(
                "Remedial text unavailable, using placeholder: %s",
                e,
                extra=_log_extra(session),
            )
            remedial = PLACEHOLDER_REMEDIAL_TEXT
        self._check_token(session)
        return self._transition(
            session, LessonState.REMEDIAL, remedial_text=remedial, last_score=score
        )

    async def retake_checkpoint(self, session: LessonSession) -> LessonSession:
        self._require(session, "retake_checkpoint", LessonState.REMEDIAL)

        quiz = await self._fetch_quiz(session)
        if quiz is None:
            session = self._transition(session, LessonState.ADVANCING)
            return await self._complete_step(session)
        return self._transition(
            session,
            LessonState.AWAITING_CHECKPOINT,
            quiz=quiz,
            answers=(None,) * len(quiz.questions),
            remedial_text=None,
            last_score=None,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _fetch_quiz(self, session: LessonSession) -> Quiz | None:
        """Checkpoint quiz for the current step, or None to skip the checkpoint."""
        titles = checkpoint_titles(session.module, session.current_step_index)
        try:
            quiz = await self._content.generate_checkpoint_quiz(
                session.course_title, titles
            )
        except ContentUnavailable as e:
            quiz = None
            reason = str(e)
        else:
            reason = "empty quiz"
        self._check_token(session)

        if quiz is None or quiz.is_empty:
            CHECKPOINT_RESULTS.labels(result="skipped").inc()
            logger.warning(
                "Checkpoint skipped: %s", reason, extra=_log_extra(session)
            )
            return None
        return quiz

    async def _complete_step(self, session: LessonSession) -> LessonSession:
        index = session.current_step_index
        module = session.module.with_step_completed(index)
        completed = frozenset(module.completed_step_ids)

        if session.is_last_step:
            module = replace(module, is_completed=True)
            # earlier writes must not land after the completion record
            await self.flush(session)
            await self._store.save_progress(
                session.user_id,
                session.course_id,
                module.id,
                ProgressRecord(current_step_index=index, completed_step_ids=completed),
            )
            return self._transition(
                session,
                LessonState.COMPLETED,
                module=module,
                content=None,
                quiz=None,
                answers=(),
                remedial_text=None,
            )

        self._schedule_progress_write(
            session,
            ProgressRecord(current_step_index=index + 1, completed_step_ids=completed),
        )
        session = self._transition(
            session,
            LessonState.LOADING,
            module=module,
            current_step_index=index + 1,
        )
        return await self.load_step(session)

    def _schedule_progress_write(
        self, session: LessonSession, record: ProgressRecord
    ) -> None:
        session_id = session.session_id
        previous = self._write_tails.get(session_id)

        async def write() -> None:
            if previous is not None:
                await previous
            await self._store.save_progress(
                session.user_id, session.course_id, session.module.id, record
            )

        task = asyncio.create_task(write())
        self._write_tails[session_id] = task

        def done(t: asyncio.Task[None]) -> None:
            if self._write_tails.get(session_id) is t:
                del self._write_tails[session_id]

        task.add_done_callback(done)

    def _restore(
        self, module: Module, record: ProgressRecord | None
    ) -> tuple[int, frozenset[str] | None]:
        if record is None:
            return 0, None
        if not 0 <= record.current_step_index < len(module.steps):
            logger.warning(
                "Discarding progress with index %d outside module %s (%d steps)",
                record.current_step_index,
                module.id,
                len(module.steps),
            )
            return 0, None
        return record.current_step_index, record.completed_step_ids & module.step_ids

    def _check_token(self, session: LessonSession) -> None:
        if self._active_tokens.get(session.session_id) != session.step_token:
            logger.info("Discarding late result", extra=_log_extra(session))
            raise StaleStepError(
                f"session {session.session_id} moved on from step "
                f"{session.current_step_index}"
            )

    def forget(self, session: LessonSession) -> None:
        """Release the step token of a session nobody will drive again.

        Progress writes already scheduled still run and remove themselves.
        """
        self._active_tokens.pop(session.session_id, None)

    @staticmethod
    def _require(
        session: LessonSession, operation: str, *states: LessonState
    ) -> None:
        if session.state not in states:
            raise InvalidTransitionError(operation, session.state)

    @staticmethod
    def _transition(
        session: LessonSession, state: LessonState, **changes: object
    ) -> LessonSession:
        LESSON_TRANSITIONS.labels(state=state.value).inc()
        updated = replace(session, state=state, **changes)
        logger.info(
            "Lesson %s -> %s",
            session.state.value,
            state.value,
            extra=_log_extra(updated),
        )
        return updated


def _answers_problem(quiz: Quiz, answers: Sequence[int | None]) -> str | None:
    if len(answers) != len(quiz.questions):
        return f"expected {len(quiz.questions)} answers, got {len(answers)}"
    for n, (question, answer) in enumerate(zip(quiz.questions, answers), start=1):
        if answer is None or answer == UNANSWERED:
            return f"question {n} is unanswered"
        if isinstance(answer, bool) or not isinstance(answer, int):
            return f"answer to question {n} must be an option index"
        if not 0 <= answer < len(question.options):
            return f"answer to question {n} is out of range"
    return None
