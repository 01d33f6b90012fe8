"""Course syllabus and mastery.

A course's modules come from, in order of preference:

  1. the syllabus cached in the store (generated earlier, possibly extended
     with remedial or advanced modules)
  2. the modules authored into the catalog
  3. a freshly generated syllabus, which is then cached

Generation failure yields no modules and caches nothing, so the next visit
tries again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from learnx.models.course import Course, Module
from learnx.services.content import ContentCollaborator, ContentUnavailable
from learnx.services.lesson_store import LessonStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CourseMastery:
    """A course's modules as one learner sees them."""

    course: Course
    modules: tuple[Module, ...]

    @property
    def progress_percent(self) -> int:
        if not self.modules:
            return 0
        done = sum(1 for m in self.modules if m.is_completed)
        return round(done / len(self.modules) * 100)

    @property
    def certificate_eligible(self) -> bool:
        return self.progress_percent == 100


class SyllabusService:
    def __init__(self, content: ContentCollaborator, store: LessonStore) -> None:
        self._content = content
        self._store = store

    async def get_modules(self, course: Course) -> list[Module]:
        cached = await self._store.get_syllabus(course.id)
        if cached is not None:
            return cached
        if course.modules:
            return list(course.modules)

        try:
            modules = await self._content.generate_syllabus(course.title)
        except ContentUnavailable as e:
            logger.warning("Syllabus unavailable for course %s: %s", course.id, e)
            return []
        await self._store.save_syllabus(course.id, modules)
        logger.info("Generated %d modules for course %s", len(modules), course.id)
        return modules

    async def find_module(self, course: Course, module_id: str) -> Module | None:
        for module in await self.get_modules(course):
            if module.id == module_id:
                return module
        return None

    async def mastery(self, course: Course, user_id: str) -> CourseMastery:
        """Overlay the learner's saved progress onto every module."""
        modules = await self.get_modules(course)
        records = await asyncio.gather(
            *(self._store.get_progress(user_id, course.id, m.id) for m in modules)
        )
        overlaid = tuple(
            module if record is None
            else module.with_completed(record.completed_step_ids & module.step_ids)
            for module, record in zip(modules, records)
        )
        return CourseMastery(course=course, modules=overlaid)

    async def summary(self, course: Course) -> str:
        try:
            return await self._content.summarize_course(course.title, course.description)
        except ContentUnavailable as e:
            logger.warning("Summary unavailable for course %s: %s", course.id, e)
            return course.description

    async def add_advanced_modules(self, course: Course) -> list[Module]:
        """Generate extension modules and append them to the course syllabus."""
        try:
            extra = await self._content.generate_advanced_modules(course.title)
        except ContentUnavailable as e:
            logger.warning("Advanced modules unavailable for course %s: %s", course.id, e)
            return []
        return await self.extend(course, extra)

    async def extend(self, course: Course, extra: list[Module]) -> list[Module]:
        """Append ``extra`` to the course syllabus.

        Modules whose id is already in the syllabus are skipped.  Returns the
        modules actually added.
        """
        modules = await self.get_modules(course)
        known = {m.id for m in modules}
        added = [m for m in extra if m.id not in known]
        if added:
            await self._store.save_syllabus(course.id, modules + added)
        return added
