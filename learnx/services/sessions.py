"""In-process registry of live lesson sessions.

Sessions are short-lived and cheap to recreate (progress is persisted on
every advance), so they are held in memory only.  A session is visible
only to the user who started it.

A learner who closes the app mid-module never calls finish or abandon, so
sessions untouched for ``idle_seconds`` are dropped.  Expiry is checked
lazily on every get/put; entries are kept in last-touched order so a sweep
stops at the first live one.  ``on_evict`` lets the engine release its own
per-session state.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from learnx.models.session import LessonSession

logger = logging.getLogger(__name__)

DEFAULT_IDLE_SECONDS = 1800.0


class SessionRegistry:
    def __init__(
        self,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
        *,
        on_evict: Callable[[LessonSession], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._idle_seconds = idle_seconds
        self._on_evict = on_evict
        self._clock = clock
        # session_id -> (session, last touched)
        self._sessions: OrderedDict[str, tuple[LessonSession, float]] = OrderedDict()

    def get(self, session_id: str, user_id: str) -> LessonSession | None:
        now = self._clock()
        self._expire(now)
        entry = self._sessions.get(session_id)
        if entry is None or entry[0].user_id != user_id:
            return None
        self._touch(entry[0], now)
        return entry[0]

    def put(self, session: LessonSession) -> LessonSession:
        now = self._clock()
        self._expire(now)
        self._touch(session, now)
        return session

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def _touch(self, session: LessonSession, now: float) -> None:
        self._sessions[session.session_id] = (session, now)
        self._sessions.move_to_end(session.session_id)

    def _expire(self, now: float) -> None:
        while self._sessions:
            session_id, (session, touched) = next(iter(self._sessions.items()))
            if now - touched < self._idle_seconds:
                return
            del self._sessions[session_id]
            logger.info("Lesson session %s expired after idling", session_id)
            if self._on_evict is not None:
                self._on_evict(session)
