"""SQLAlchemy table definitions.

All three lesson namespaces (cached content, progress, syllabus) share
one table; the namespace is part of the primary key.  Values are the
JSON documents produced by LessonStore; the table does not interpret
them.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from learnx.db.engine import Base


class KvEntryRow(Base):
    __tablename__ = "kv_entries"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
