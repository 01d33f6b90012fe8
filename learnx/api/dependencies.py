from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from learnx.models.course import Course
from learnx.services.context import AppContext

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    """The AppContext built at startup (see main.lifespan)."""
    return request.app.state.context


def require_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Identify the learner from the X-User-Id header.

    Identity is simulated: whatever id the caller presents is trusted.
    Used as a FastAPI dependency on every learner-scoped endpoint.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        logger.warning("Request rejected: missing X-User-Id")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )
    return user_id


def get_course(
    course_id: str,
    ctx: Annotated[AppContext, Depends(get_context)],
) -> Course:
    course = ctx.catalog.get(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    return course

