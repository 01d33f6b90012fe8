from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class Step:
    """Smallest orderable unit of a lesson module."""

    id: str
    title: str
    order: int
    is_completed: bool = False

    def completed(self) -> Step:
        return replace(self, is_completed=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "order": self.order,
            "isCompleted": self.is_completed,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Step:
        return Step(
            id=str(data["id"]),
            title=str(data["title"]),
            order=int(data["order"]),
            is_completed=bool(data.get("isCompleted", False)),
        )


@dataclass(frozen=True, slots=True)
class Module:
    id: str
    title: str
    description: str = ""
    steps: tuple[Step, ...] = ()
    is_completed: bool = False
    is_remedial: bool = False

    def __post_init__(self) -> None:
        orders = [s.order for s in self.steps]
        if any(b <= a for a, b in zip(orders, orders[1:])):
            raise ValueError(
                f"step order must be strictly increasing in module {self.id!r}"
            )

    @property
    def step_ids(self) -> frozenset[str]:
        return frozenset(s.id for s in self.steps)

    @property
    def completed_step_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.steps if s.is_completed)

    def with_completed(self, step_ids: set[str] | frozenset[str]) -> Module:
        """Return a copy whose completion flags match exactly ``step_ids``."""
        steps = tuple(
            replace(s, is_completed=s.id in step_ids) for s in self.steps
        )
        all_done = bool(steps) and all(s.is_completed for s in steps)
        return replace(self, steps=steps, is_completed=all_done)

    def with_step_completed(self, index: int) -> Module:
        steps = list(self.steps)
        steps[index] = steps[index].completed()
        return replace(self, steps=tuple(steps))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "isCompleted": self.is_completed,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.is_remedial:
            data["isRemedial"] = True
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Module:
        return Module(
            id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            steps=tuple(Step.from_dict(s) for s in data.get("steps", [])),
            is_completed=bool(data.get("isCompleted", False)),
            is_remedial=bool(data.get("isRemedial", False)),
        )


@dataclass(frozen=True, slots=True)
class Review:
    id: str
    user_name: str
    rating: int
    comment: str
    date: str


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str
    description: str
    category: str
    duration: str
    image_url: str = ""
    modules: tuple[Module, ...] = ()
    reviews: tuple[Review, ...] = field(default_factory=tuple)

    def find_module(self, module_id: str) -> Module | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None
