"""Typed access to the three lesson namespaces.

  lesson_content  "{course_id}:{step_id}"               -> {text, videoReference}
  progress        "{user_id}:{course_id}:{module_id}"   -> {currentStepIndex, completedStepIds}
  syllabus        "{course_id}"                         -> [Module, ...]

Everything here is best-effort.  A store that is down, or a value that no
longer decodes, reads as "absent"; a write that fails is logged and
dropped.  Progression never waits on, or fails because of, persistence.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from learnx.core.metrics import PERSISTENCE_FAILURES
from learnx.models.course import Module
from learnx.models.progress import LessonContent, ProgressRecord
from learnx.repos.kv_store import KeyValueStore, PersistenceUnavailable

logger = logging.getLogger(__name__)

CONTENT_NAMESPACE = "lesson_content"
PROGRESS_NAMESPACE = "progress"
SYLLABUS_NAMESPACE = "syllabus"


def content_key(course_id: str, step_id: str) -> str:
    return f"{course_id}:{step_id}"


def progress_key(user_id: str, course_id: str, module_id: str) -> str:
    return f"{user_id}:{course_id}:{module_id}"


def syllabus_key(course_id: str) -> str:
    return course_id


class LessonStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    # -------------------------------------------------------------------------
    # Raw JSON access
    # -------------------------------------------------------------------------

    async def _read(self, namespace: str, key: str) -> Any | None:
        try:
            raw = await self._kv.get(namespace, key)
        except PersistenceUnavailable as e:
            PERSISTENCE_FAILURES.labels(namespace=namespace, operation="get").inc()
            logger.warning("Store read failed ns=%s key=%s: %s", namespace, key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            PERSISTENCE_FAILURES.labels(namespace=namespace, operation="decode").inc()
            logger.warning("Discarding undecodable value ns=%s key=%s", namespace, key)
            return None

    async def _write(self, namespace: str, key: str, value: Any) -> bool:
        try:
            await self._kv.put(namespace, key, json.dumps(value))
        except PersistenceUnavailable as e:
            PERSISTENCE_FAILURES.labels(namespace=namespace, operation="put").inc()
            logger.warning("Store write dropped ns=%s key=%s: %s", namespace, key, e)
            return False
        return True

    # -------------------------------------------------------------------------
    # Cached lesson content
    # -------------------------------------------------------------------------

    async def get_lesson_content(
        self, course_id: str, step_id: str
    ) -> LessonContent | None:
        data = await self._read(CONTENT_NAMESPACE, content_key(course_id, step_id))
        if data is None:
            return None
        try:
            return LessonContent.from_dict(data)
        except (KeyError, TypeError, ValueError):
            PERSISTENCE_FAILURES.labels(
                namespace=CONTENT_NAMESPACE, operation="decode"
            ).inc()
            logger.warning("Malformed cached content course=%s step=%s", course_id, step_id)
            return None

    async def save_lesson_content(
        self, course_id: str, step_id: str, content: LessonContent
    ) -> bool:
        return await self._write(
            CONTENT_NAMESPACE, content_key(course_id, step_id), content.to_dict()
        )

    # -------------------------------------------------------------------------
    # Module progress
    # -------------------------------------------------------------------------

    async def get_progress(
        self, user_id: str, course_id: str, module_id: str
    ) -> ProgressRecord | None:
        data = await self._read(
            PROGRESS_NAMESPACE, progress_key(user_id, course_id, module_id)
        )
        if data is None:
            return None
        try:
            return ProgressRecord.from_dict(data)
        except (KeyError, TypeError, ValueError):
            PERSISTENCE_FAILURES.labels(
                namespace=PROGRESS_NAMESPACE, operation="decode"
            ).inc()
            logger.warning(
                "Malformed progress user=%s course=%s module=%s",
                user_id,
                course_id,
                module_id,
            )
            return None

    async def save_progress(
        self, user_id: str, course_id: str, module_id: str, record: ProgressRecord
    ) -> bool:
        return await self._write(
            PROGRESS_NAMESPACE,
            progress_key(user_id, course_id, module_id),
            record.to_dict(),
        )

    # -------------------------------------------------------------------------
    # Course syllabus
    # -------------------------------------------------------------------------

    async def get_syllabus(self, course_id: str) -> list[Module] | None:
        data = await self._read(SYLLABUS_NAMESPACE, syllabus_key(course_id))
        if data is None:
            return None
        try:
            return [Module.from_dict(m) for m in data]
        except (KeyError, TypeError, ValueError):
            PERSISTENCE_FAILURES.labels(
                namespace=SYLLABUS_NAMESPACE, operation="decode"
            ).inc()
            logger.warning("Malformed syllabus course=%s", course_id)
            return None

    async def save_syllabus(self, course_id: str, modules: list[Module]) -> bool:
        return await self._write(
            SYLLABUS_NAMESPACE,
            syllabus_key(course_id),
            [m.to_dict() for m in modules],
        )
