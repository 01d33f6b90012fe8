"""Namespaced key-value storage backends.

The lesson service needs exactly two operations per namespace: read a
value by key and overwrite a value by key.  No transactions span
namespaces and every write is last-write-wins, so any store that can do
GET/SET can back it.

Backends:
  InMemoryKeyValueStore: tests and single-process dev
  RedisKeyValueStore: shared across API instances (this module)
  SqlKeyValueStore: SQLite or PostgreSQL (sql_kv_store.py)

Backends raise PersistenceUnavailable for infrastructure failures and
nothing else; deciding what a failure means is LessonStore's job.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError


class PersistenceUnavailable(Exception):
    """The backing store could not be read or written."""


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, namespace: str, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    async def put(self, namespace: str, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...


class InMemoryKeyValueStore:
    """Dict-backed store for tests and single-process dev."""

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], str] = {}

    async def get(self, namespace: str, key: str) -> str | None:
        return self._store.get((namespace, key))

    async def put(self, namespace: str, key: str, value: str) -> None:
        self._store[(namespace, key)] = value

    def keys(self, namespace: str) -> list[str]:
        return [k for ns, k in self._store if ns == namespace]

    def clear(self) -> None:
        self._store.clear()


class RedisKeyValueStore:
    """Redis-backed store.  One string key per entry, no expiry."""

    _PREFIX = "learnx:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _key(self, namespace: str, key: str) -> str:
        return f"{self._PREFIX}{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> str | None:
        try:
            return await self._redis.get(self._key(namespace, key))
        except RedisError as e:
            raise PersistenceUnavailable(f"redis get failed: {e}") from e

    async def put(self, namespace: str, key: str, value: str) -> None:
        try:
            await self._redis.set(self._key(namespace, key), value)
        except RedisError as e:
            raise PersistenceUnavailable(f"redis set failed: {e}") from e
