from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

UNANSWERED = -1


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    text: str
    options: tuple[str, ...]
    correct_answer_index: int
    id: str | None = None


@dataclass(frozen=True, slots=True)
class Quiz:
    """Checkpoint quiz.  Generated per checkpoint, never persisted."""

    questions: tuple[QuizQuestion, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.questions

    def score(self, answers: Sequence[int]) -> int:
        """Count answers that match the correct option index exactly."""
        return sum(
            1
            for question, answer in zip(self.questions, answers)
            if answer == question.correct_answer_index
        )

    def is_perfect(self, answers: Sequence[int]) -> bool:
        return self.score(answers) == len(self.questions)
