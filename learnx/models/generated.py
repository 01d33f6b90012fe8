"""Response schemas for structured generative output.

The generative service is asked for JSON matching these shapes (they are
passed as ``response_schema``) and every reply is validated against them
before anything downstream sees it.  A reply that fails validation is
treated exactly like a failed call.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator


class QuizQuestionOut(BaseModel):
    id: str | None = None
    text: str = Field(min_length=1)
    options: list[str] = Field(min_length=2)
    correctAnswerIndex: int = Field(ge=0)

    @model_validator(mode="after")
    def _answer_in_range(self) -> QuizQuestionOut:
        if self.correctAnswerIndex >= len(self.options):
            raise ValueError("correctAnswerIndex is outside the option list")
        return self


class QuizOut(BaseModel):
    questions: list[QuizQuestionOut] = Field(min_length=1)


class StepOutline(BaseModel):
    title: str = Field(min_length=1)


class ModuleOutline(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    steps: list[StepOutline]


class SyllabusOut(BaseModel):
    modules: list[ModuleOutline] = Field(min_length=1)


class AdvancedModulesOut(BaseModel):
    modules: list[ModuleOutline]


class CourseRecommendationOut(BaseModel):
    courseId: str = Field(min_length=1)
    reason: str = ""


class RoadmapStageOut(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    courses: list[str] = Field(default_factory=list)

    @field_validator("courses")
    @classmethod
    def _strip_blank(cls, value: list[str]) -> list[str]:
        return [c.strip() for c in value if c.strip()]


class RoadmapOut(BaseModel):
    goal: str = ""
    stages: list[RoadmapStageOut] = Field(min_length=1)
