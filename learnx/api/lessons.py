"""Lesson session endpoints.

A session is one learner working through one module.  Every mutating
call returns the full session snapshot so the client can render whatever
state the engine landed in:

  POST /v1/lessons                    start (or resume) a module
  GET  /v1/lessons/{sid}              current snapshot
  POST /v1/lessons/{sid}/advance      complete the step or open its checkpoint
  POST /v1/lessons/{sid}/checkpoint   submit checkpoint answers
  POST /v1/lessons/{sid}/retake       fresh quiz after a failed checkpoint
  POST /v1/lessons/{sid}/retry        reload a step whose content failed
  POST /v1/lessons/{sid}/finish       close a completed module
  POST /v1/lessons/{sid}/abandon      leave the module from any state
  GET  /v1/lessons/{sid}/audio        narrated lesson text (base64)

Engine errors map to HTTP as: invalid transition / stale step -> 409,
quiz validation / empty module -> 422.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from learnx.api.courses import ModuleOut, StepOut
from learnx.api.dependencies import get_context, require_user
from learnx.models.session import LessonSession
from learnx.services.content import youtube_embed_url
from learnx.services.context import AppContext
from learnx.services.lesson_engine import (
    EmptyModuleError,
    InvalidTransitionError,
    QuizValidationError,
    StaleStepError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/lessons", tags=["lessons"])


class LessonStartIn(BaseModel):
    course_id: str
    module_id: str


class CheckpointIn(BaseModel):
    # null or -1 marks an unanswered question
    answers: list[int | None]


class LessonContentOut(BaseModel):
    text: str
    video_reference: str
    embed_url: str | None
    from_cache: bool


class QuizQuestionOut(BaseModel):
    """A checkpoint question as the learner sees it (no answer key)."""

    id: str | None
    text: str
    options: list[str]


class LessonOut(BaseModel):
    session_id: str
    course_id: str
    course_title: str
    state: str
    current_step_index: int
    current_step: StepOut
    progress_percent: int
    module: ModuleOut
    content: LessonContentOut | None = None
    quiz: list[QuizQuestionOut] | None = None
    answers: list[int | None] = Field(default_factory=list)
    remedial_text: str | None = None
    last_score: int | None = None
    error: str | None = None

    @staticmethod
    def of(session: LessonSession) -> LessonOut:
        content = None
        if session.content is not None:
            content = LessonContentOut(
                text=session.content.text,
                video_reference=session.content.video_reference,
                embed_url=youtube_embed_url(session.content.video_reference),
                from_cache=session.content.from_cache,
            )
        quiz = None
        if session.quiz is not None:
            quiz = [
                QuizQuestionOut(id=q.id, text=q.text, options=list(q.options))
                for q in session.quiz.questions
            ]
        return LessonOut(
            session_id=session.session_id,
            course_id=session.course_id,
            course_title=session.course_title,
            state=session.state.value,
            current_step_index=session.current_step_index,
            current_step=StepOut.of(session.current_step),
            progress_percent=session.progress_percent,
            module=ModuleOut.of(session.module),
            content=content,
            quiz=quiz,
            answers=list(session.answers),
            remedial_text=session.remedial_text,
            last_score=session.last_score,
            error=session.error,
        )


class ModuleResultOut(BaseModel):
    session_id: str
    module: ModuleOut


class AudioOut(BaseModel):
    session_id: str
    audio_base64: str


@contextmanager
def _engine_errors() -> Iterator[None]:
    """Translate LessonError subclasses into HTTP responses."""
    try:
        yield
    except (InvalidTransitionError, StaleStepError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except (QuizValidationError, EmptyModuleError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e


def _session(ctx: AppContext, session_id: str, user_id: str) -> LessonSession:
    session = ctx.sessions.get(session_id, user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="lesson session not found")
    return session


@router.post("", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
async def start_lesson(
    body: LessonStartIn,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> LessonOut:
    course = ctx.catalog.get(body.course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    module = await ctx.syllabus.find_module(course, body.module_id)
    if module is None:
        raise HTTPException(status_code=404, detail="module not found")

    with _engine_errors():
        session = await ctx.engine.start(module, course.id, course.title, user_id)
    return LessonOut.of(ctx.sessions.put(session))


@router.get("/{session_id}", response_model=LessonOut)
def get_lesson(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> LessonOut:
    return LessonOut.of(_session(ctx, session_id, user_id))


@router.post("/{session_id}/advance", response_model=LessonOut)
async def advance_lesson(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> LessonOut:
    session = _session(ctx, session_id, user_id)
    with _engine_errors():
        session = await ctx.engine.advance(session)
    return LessonOut.of(ctx.sessions.put(session))


@router.post("/{session_id}/checkpoint", response_model=LessonOut)
async def submit_checkpoint(
    session_id: str,
    body: CheckpointIn,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> LessonOut:
    session = _session(ctx, session_id, user_id)
    with _engine_errors():
        session = await ctx.engine.submit_checkpoint(session, body.answers)
    return LessonOut.of(ctx.sessions.put(session))


@router.post("/{session_id}/retake", response_model=LessonOut)
async def retake_checkpoint(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> LessonOut:
    session = _session(ctx, session_id, user_id)
    with _engine_errors():
        session = await ctx.engine.retake_checkpoint(session)
    return LessonOut.of(ctx.sessions.put(session))


@router.post("/{session_id}/retry", response_model=LessonOut)
async def retry_step(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> LessonOut:
    session = _session(ctx, session_id, user_id)
    with _engine_errors():
        session = await ctx.engine.retry(session)
    return LessonOut.of(ctx.sessions.put(session))


@router.post("/{session_id}/finish", response_model=ModuleResultOut)
async def finish_lesson(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> ModuleResultOut:
    session = _session(ctx, session_id, user_id)
    with _engine_errors():
        module = await ctx.engine.finish(session)
    ctx.sessions.remove(session_id)
    return ModuleResultOut(session_id=session_id, module=ModuleOut.of(module))


@router.post("/{session_id}/abandon", response_model=ModuleResultOut)
async def abandon_lesson(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> ModuleResultOut:
    session = _session(ctx, session_id, user_id)
    ctx.sessions.remove(session_id)
    module = await ctx.engine.abandon(session)
    return ModuleResultOut(session_id=session_id, module=ModuleOut.of(module))


@router.get("/{session_id}/audio", response_model=AudioOut)
async def lesson_audio(
    session_id: str,
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> AudioOut:
    session = _session(ctx, session_id, user_id)
    with _engine_errors():
        audio = await ctx.engine.synthesize_audio(session)
    if audio is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="audio unavailable",
        )
    return AudioOut(session_id=session_id, audio_base64=audio)
