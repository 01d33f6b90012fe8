"""SQL implementation of KeyValueStore."""

from __future__ import annotations

import time

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from learnx.db.tables import KvEntryRow
from learnx.repos.kv_store import PersistenceUnavailable


class SqlKeyValueStore:
    """Satisfies the KeyValueStore Protocol using SQLAlchemy.

    Each call runs in its own short session; there is nothing to batch and
    no cross-namespace transaction to preserve.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, namespace: str, key: str) -> str | None:
        stmt = select(KvEntryRow.value).where(
            KvEntryRow.namespace == namespace, KvEntryRow.key == key
        )
        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"sql get failed: {e}") from e

    async def put(self, namespace: str, key: str, value: str) -> None:
        row = KvEntryRow(
            namespace=namespace, key=key, value=value, updated_at=int(time.time())
        )
        try:
            async with self._session_factory() as session:
                # merge() is a portable upsert on the primary key
                await session.merge(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceUnavailable(f"sql put failed: {e}") from e
