"""Career pathway endpoints: categories and their generated course tracks."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from learnx.api.courses import CourseOut
from learnx.api.dependencies import get_context
from learnx.services.catalog import LEVELS_PER_CATEGORY
from learnx.services.context import AppContext

router = APIRouter(prefix="/v1/pathways", tags=["pathways"])


class PathwayOut(BaseModel):
    category: str
    course_count: int


@router.get("", response_model=list[PathwayOut])
def list_pathways(
    ctx: Annotated[AppContext, Depends(get_context)],
    q: str | None = None,
) -> list[PathwayOut]:
    return [
        PathwayOut(category=c, course_count=LEVELS_PER_CATEGORY)
        for c in ctx.catalog.categories(q)
    ]


@router.get("/{category}/courses", response_model=list[CourseOut])
def list_pathway_courses(
    category: str,
    ctx: Annotated[AppContext, Depends(get_context)],
) -> list[CourseOut]:
    courses = ctx.catalog.category_courses(category)
    if courses is None:
        raise HTTPException(status_code=404, detail="pathway not found")
    return [CourseOut.of(c) for c in courses]
