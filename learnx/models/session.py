from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum

from learnx.models.course import Module, Step
from learnx.models.progress import LessonContent
from learnx.models.quiz import Quiz


class LessonState(str, Enum):
    LOADING = "loading"
    PRESENTING = "presenting"
    AWAITING_CHECKPOINT = "awaiting_checkpoint"
    EVALUATING_QUIZ = "evaluating_quiz"
    REMEDIAL = "remedial"
    ADVANCING = "advancing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LessonSession:
    """Immutable snapshot of one learner working through one module.

    Every engine operation returns a new snapshot; nothing mutates in place.
    ``step_token`` changes on each step load and is how late results from
    an earlier load are recognised and dropped.
    """

    session_id: str
    user_id: str
    course_id: str
    course_title: str
    module: Module
    current_step_index: int = 0
    state: LessonState = LessonState.LOADING
    content: LessonContent | None = None
    quiz: Quiz | None = None
    answers: tuple[int | None, ...] = ()
    remedial_text: str | None = None
    last_score: int | None = None
    error: str | None = None
    step_token: str = ""

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: str,
        course_title: str,
        module: Module,
    ) -> LessonSession:
        return LessonSession(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            course_id=course_id,
            course_title=course_title,
            module=module,
        )

    @property
    def current_step(self) -> Step:
        return self.module.steps[self.current_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == len(self.module.steps) - 1

    @property
    def progress_percent(self) -> int:
        total = len(self.module.steps)
        if total == 0:
            return 0
        return round((self.current_step_index + 1) / total * 100)
