"""Application context: every collaborator a request handler needs.

Built once at startup from Settings and stored on ``app.state.context``;
handlers receive it through the ``get_context`` dependency.  Tests build
their own with in-memory backends instead of patching module globals.

Store selection:
  DATABASE_URL set -> SqlKeyValueStore
  REDIS_URL set    -> RedisKeyValueStore
  neither          -> InMemoryKeyValueStore

Content selection:
  GEMINI_API_KEY set -> GeminiContentService
  otherwise          -> TemplateContentService
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import redis.asyncio as aioredis
from google import genai
from sqlalchemy.ext.asyncio import AsyncEngine

from learnx.core.config import Settings
from learnx.db.engine import build_engine, build_session_factory
from learnx.db.redis import build_redis
from learnx.repos.kv_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
)
from learnx.repos.sql_kv_store import SqlKeyValueStore
from learnx.services.catalog import CourseCatalog
from learnx.services.content import ContentCollaborator, GeminiContentService
from learnx.services.content_template import TemplateContentService
from learnx.services.lesson_engine import LessonEngine
from learnx.services.lesson_store import LessonStore
from learnx.services.sessions import SessionRegistry
from learnx.services.syllabus import SyllabusService
from learnx.services.tutor import TutorService

logger = logging.getLogger(__name__)

_BACKEND_NAMES: dict[type, str] = {
    InMemoryKeyValueStore: "memory",
    RedisKeyValueStore: "redis",
    SqlKeyValueStore: "sql",
}


@dataclass
class AppContext:
    settings: Settings
    kv: KeyValueStore
    store: LessonStore
    content: ContentCollaborator
    engine: LessonEngine
    catalog: CourseCatalog
    syllabus: SyllabusService
    tutor: TutorService
    sessions: SessionRegistry = field(default_factory=SessionRegistry)
    store_backend: str = "memory"
    db_engine: AsyncEngine | None = None
    redis: aioredis.Redis | None = None  # type: ignore[type-arg]


def build_content(settings: Settings) -> ContentCollaborator:
    if settings.content_backend == "gemini":
        client = genai.Client(api_key=settings.gemini_api_key)
        return GeminiContentService(
            client,
            model=settings.gemini_model,
            tts_model=settings.gemini_tts_model,
            timeout_seconds=settings.content_timeout_seconds,
        )
    return TemplateContentService()


def build_context(
    settings: Settings,
    *,
    kv: KeyValueStore | None = None,
    content: ContentCollaborator | None = None,
    catalog: CourseCatalog | None = None,
) -> AppContext:
    """Wire the service graph.  Explicit ``kv``/``content`` skip env selection."""
    db_engine = None
    redis_client = None
    backend = "memory"

    if kv is None:
        if settings.database_url:
            db_engine = build_engine(settings.database_url)
            kv = SqlKeyValueStore(build_session_factory(db_engine))
            backend = "sql"
        elif settings.redis_url:
            redis_client = build_redis(settings.redis_url)
            kv = RedisKeyValueStore(redis_client)
            backend = "redis"
        else:
            kv = InMemoryKeyValueStore()
    else:
        backend = _BACKEND_NAMES.get(type(kv), "custom")

    if content is None:
        content = build_content(settings)

    store = LessonStore(kv)
    catalog = catalog or CourseCatalog()
    engine = LessonEngine(content, store)
    logger.info(
        "Context built  store=%s content=%s",
        backend,
        type(content).__name__,
    )
    return AppContext(
        settings=settings,
        kv=kv,
        store=store,
        content=content,
        engine=engine,
        catalog=catalog,
        syllabus=SyllabusService(content, store),
        tutor=TutorService(content, catalog),
        sessions=SessionRegistry(
            settings.session_idle_seconds, on_evict=engine.forget
        ),
        store_backend=backend,
        db_engine=db_engine,
        redis=redis_client,
    )
