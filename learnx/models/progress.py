from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Resumable position of one learner inside one module.

    Keyed by (user_id, course_id, module_id) in the progress namespace.
    Overwritten on every advance, never appended to or deleted.
    """

    current_step_index: int
    completed_step_ids: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStepIndex": self.current_step_index,
            # sorted so identical progress always serialises identically
            "completedStepIds": sorted(self.completed_step_ids),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ProgressRecord:
        index = data["currentStepIndex"]
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValueError(f"currentStepIndex must be an integer (got {index!r})")
        completed = data.get("completedStepIds", [])
        if not isinstance(completed, list):
            raise ValueError("completedStepIds must be a list")
        return ProgressRecord(
            current_step_index=index,
            completed_step_ids=frozenset(str(i) for i in completed),
        )


@dataclass(frozen=True, slots=True)
class LessonContent:
    """Lesson prose and video reference for one step.

    Stored write-once under (course_id, step_id); ``from_cache`` is a
    runtime flag and is not persisted.
    """

    text: str
    video_reference: str
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "videoReference": self.video_reference}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> LessonContent:
        text = data["text"]
        video = data.get("videoReference", "")
        if not isinstance(text, str) or not isinstance(video, str):
            raise ValueError("cached lesson content must hold strings")
        return LessonContent(text=text, video_reference=video)
