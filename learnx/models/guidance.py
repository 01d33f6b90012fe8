from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CourseRecommendation:
    course_id: str
    reason: str = ""


@dataclass(frozen=True, slots=True)
class RoadmapStage:
    title: str
    description: str = ""
    courses: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Roadmap:
    """Ordered multi-course plan toward a career goal."""

    goal: str
    stages: tuple[RoadmapStage, ...] = ()


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str  # user|assistant
    content: str
