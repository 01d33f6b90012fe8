"""Learner guidance outside a lesson: chat, recommendations, roadmaps.

Each operation degrades to a usable answer when the content service is
unavailable, except remedial module generation, which has nothing
sensible to fall back to and lets ContentUnavailable propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from learnx.models.course import Course, Module
from learnx.models.guidance import ChatMessage, CourseRecommendation, Roadmap
from learnx.services.catalog import CourseCatalog
from learnx.services.content import ContentCollaborator, ContentUnavailable
from learnx.services.placeholders import PLACEHOLDER_CHAT_REPLY

logger = logging.getLogger(__name__)


class TutorService:
    def __init__(self, content: ContentCollaborator, catalog: CourseCatalog) -> None:
        self._content = content
        self._catalog = catalog

    async def chat(self, message: str, history: Sequence[ChatMessage] = ()) -> str:
        try:
            return await self._content.chat(message, history)
        except ContentUnavailable as e:
            logger.warning("Chat reply unavailable: %s", e)
            return PLACEHOLDER_CHAT_REPLY

    async def recommend(self, goal: str) -> tuple[CourseRecommendation, Course] | None:
        """Best catalog course for ``goal``; the first course when unsure."""
        courses = self._catalog.courses()
        if not courses:
            return None
        try:
            rec = await self._content.recommend_course(goal, courses)
        except ContentUnavailable as e:
            logger.warning("Recommendation unavailable: %s", e)
            rec = CourseRecommendation(course_id=courses[0].id)
        course = self._catalog.get(rec.course_id) or courses[0]
        return rec, course

    async def roadmap(self, career_goal: str) -> Roadmap:
        try:
            return await self._content.build_roadmap(career_goal)
        except ContentUnavailable as e:
            logger.warning("Roadmap unavailable: %s", e)
            return Roadmap(goal=career_goal)

    async def remedial_module(self, topic: str) -> Module:
        return await self._content.generate_remedial_module(topic)
