"""AI tutor endpoints: chat, course recommendation, roadmaps, remedial modules."""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from learnx.api.courses import CourseOut, ModuleOut
from learnx.api.dependencies import get_context, require_user
from learnx.models.guidance import ChatMessage
from learnx.services.content import ContentUnavailable
from learnx.services.context import AppContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tutor", tags=["tutor"])


class ChatMessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatIn(BaseModel):
    message: str = Field(min_length=1)
    history: list[ChatMessageIn] = Field(default_factory=list)


class ChatOut(BaseModel):
    reply: str


class RecommendIn(BaseModel):
    goal: str = Field(min_length=1)


class RecommendOut(BaseModel):
    course_id: str
    reason: str
    course: CourseOut


class RoadmapIn(BaseModel):
    career_goal: str = Field(min_length=1)


class RoadmapStageOut(BaseModel):
    title: str
    description: str
    courses: list[str]


class RoadmapOut(BaseModel):
    goal: str
    stages: list[RoadmapStageOut]


class RemedialModuleIn(BaseModel):
    topic: str = Field(min_length=1)
    # when set, the module is appended to that course's syllabus
    course_id: str | None = None


@router.post("/chat", response_model=ChatOut)
async def chat(
    body: ChatIn,
    _user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> ChatOut:
    history = [ChatMessage(role=m.role, content=m.content) for m in body.history]
    return ChatOut(reply=await ctx.tutor.chat(body.message, history))


@router.post("/recommend", response_model=RecommendOut)
async def recommend(
    body: RecommendIn,
    _user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> RecommendOut:
    result = await ctx.tutor.recommend(body.goal)
    if result is None:
        raise HTTPException(status_code=404, detail="no courses available")
    rec, course = result
    return RecommendOut(course_id=course.id, reason=rec.reason, course=CourseOut.of(course))


@router.post("/roadmap", response_model=RoadmapOut)
async def roadmap(
    body: RoadmapIn,
    _user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> RoadmapOut:
    plan = await ctx.tutor.roadmap(body.career_goal)
    return RoadmapOut(
        goal=plan.goal,
        stages=[
            RoadmapStageOut(
                title=s.title, description=s.description, courses=list(s.courses)
            )
            for s in plan.stages
        ],
    )


@router.post(
    "/remedial-module",
    response_model=ModuleOut,
    status_code=status.HTTP_201_CREATED,
)
async def remedial_module(
    body: RemedialModuleIn,
    _user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> ModuleOut:
    course = None
    if body.course_id is not None:
        course = ctx.catalog.get(body.course_id)
        if course is None:
            raise HTTPException(status_code=404, detail="course not found")

    try:
        module = await ctx.tutor.remedial_module(body.topic)
    except ContentUnavailable as e:
        logger.warning("Remedial module unavailable for %r: %s", body.topic, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="remedial module unavailable",
        ) from e

    if course is not None:
        await ctx.syllabus.extend(course, [module])
    return ModuleOut.of(module)
