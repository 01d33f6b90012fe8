"""Course catalog endpoints.

  GET  /v1/courses?q=                     list or search curated courses
  GET  /v1/courses/{id}                   course with the learner's mastery overlay
  GET  /v1/courses/{id}/summary           one-sentence generated summary
  POST /v1/courses/{id}/advanced-modules  append generated extension modules
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from learnx.api.dependencies import get_context, get_course, require_user
from learnx.models.course import Course, Module, Review, Step
from learnx.services.context import AppContext

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class StepOut(BaseModel):
    id: str
    title: str
    order: int
    is_completed: bool

    @staticmethod
    def of(step: Step) -> StepOut:
        return StepOut(
            id=step.id, title=step.title, order=step.order, is_completed=step.is_completed
        )


class ModuleOut(BaseModel):
    id: str
    title: str
    description: str
    is_completed: bool
    is_remedial: bool
    steps: list[StepOut]

    @staticmethod
    def of(module: Module) -> ModuleOut:
        return ModuleOut(
            id=module.id,
            title=module.title,
            description=module.description,
            is_completed=module.is_completed,
            is_remedial=module.is_remedial,
            steps=[StepOut.of(s) for s in module.steps],
        )


class ReviewOut(BaseModel):
    id: str
    user_name: str
    rating: int
    comment: str
    date: str

    @staticmethod
    def of(review: Review) -> ReviewOut:
        return ReviewOut(
            id=review.id,
            user_name=review.user_name,
            rating=review.rating,
            comment=review.comment,
            date=review.date,
        )


class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    category: str
    duration: str
    image_url: str

    @staticmethod
    def of(course: Course) -> CourseOut:
        return CourseOut(
            id=course.id,
            title=course.title,
            description=course.description,
            category=course.category,
            duration=course.duration,
            image_url=course.image_url,
        )


class CourseDetailOut(CourseOut):
    modules: list[ModuleOut]
    reviews: list[ReviewOut]
    progress_percent: int
    certificate_eligible: bool


class CourseSummaryOut(BaseModel):
    course_id: str
    summary: str


@router.get("", response_model=list[CourseOut])
def list_courses(
    ctx: Annotated[AppContext, Depends(get_context)],
    q: str | None = None,
) -> list[CourseOut]:
    return [CourseOut.of(c) for c in ctx.catalog.search(q)]


@router.get("/{course_id}", response_model=CourseDetailOut)
async def get_course_detail(
    course: Annotated[Course, Depends(get_course)],
    user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> CourseDetailOut:
    mastery = await ctx.syllabus.mastery(course, user_id)
    return CourseDetailOut(
        **CourseOut.of(course).model_dump(),
        modules=[ModuleOut.of(m) for m in mastery.modules],
        reviews=[ReviewOut.of(r) for r in course.reviews],
        progress_percent=mastery.progress_percent,
        certificate_eligible=mastery.certificate_eligible,
    )


@router.get("/{course_id}/summary", response_model=CourseSummaryOut)
async def get_course_summary(
    course: Annotated[Course, Depends(get_course)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> CourseSummaryOut:
    return CourseSummaryOut(course_id=course.id, summary=await ctx.syllabus.summary(course))


@router.post(
    "/{course_id}/advanced-modules",
    response_model=list[ModuleOut],
    status_code=status.HTTP_201_CREATED,
)
async def add_advanced_modules(
    course: Annotated[Course, Depends(get_course)],
    _user_id: Annotated[str, Depends(require_user)],
    ctx: Annotated[AppContext, Depends(get_context)],
) -> list[ModuleOut]:
    added = await ctx.syllabus.add_advanced_modules(course)
    return [ModuleOut.of(m) for m in added]
