from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import learnx` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from learnx.core.config import load_settings  # noqa: E402
from learnx.main import create_app  # noqa: E402
from learnx.repos.kv_store import InMemoryKeyValueStore  # noqa: E402
from learnx.services.context import AppContext, build_context  # noqa: E402
from learnx.services.lesson_engine import LessonEngine  # noqa: E402
from learnx.services.lesson_store import LessonStore  # noqa: E402
from tests.fakes import FakeContent  # noqa: E402

USER = "u1"


@pytest.fixture
def kv() -> Iterator[InMemoryKeyValueStore]:
    store = InMemoryKeyValueStore()
    yield store
    store.clear()


@pytest.fixture
def content() -> FakeContent:
    return FakeContent()


@pytest.fixture
def store(kv: InMemoryKeyValueStore) -> LessonStore:
    return LessonStore(kv)


@pytest.fixture
def engine(content: FakeContent, store: LessonStore) -> LessonEngine:
    return LessonEngine(content, store)


@pytest.fixture
def context(
    monkeypatch: pytest.MonkeyPatch, kv: InMemoryKeyValueStore, content: FakeContent
) -> AppContext:
    for name in ("DATABASE_URL", "REDIS_URL", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APP_ENV", "test")
    return build_context(load_settings(), kv=kv, content=content)


@pytest.fixture
def client(context: AppContext) -> Iterator[TestClient]:
    # Entering the client runs the lifespan and keeps one event loop for
    # the whole test, so background progress writes are not orphaned.
    with TestClient(create_app(context)) as c:
        yield c


@pytest.fixture
def headers() -> dict[str, str]:
    return {"X-User-Id": USER}
