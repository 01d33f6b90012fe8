"""Deterministic offline content.

Used when no GEMINI_API_KEY is configured, the same way the in-memory
store stands in for Redis.  Output is plain but shaped exactly like the
real service's, so every lesson path (including checkpoints and
remediation) can be walked end to end without network access.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from urllib.parse import quote_plus

from learnx.models.course import Course, Module
from learnx.models.generated import ModuleOutline, StepOutline
from learnx.models.guidance import ChatMessage, CourseRecommendation, Roadmap, RoadmapStage
from learnx.models.quiz import Quiz, QuizQuestion
from learnx.services.content import ContentUnavailable, modules_from_outline

_ORDINALS = ("first", "second", "third", "fourth", "fifth", "sixth")
_WORD = re.compile(r"[a-z0-9]+")
_SLUG = re.compile(r"[^a-z0-9]+")


def _words(text: str) -> set[str]:
    return {w for w in _WORD.findall(text.lower()) if len(w) > 2}


def _ordinal(i: int) -> str:
    return _ORDINALS[i] if i < len(_ORDINALS) else f"#{i + 1}"


class TemplateContentService:
    async def generate_step_text(
        self, course_title: str, module_title: str, step_title: str
    ) -> str:
        return (
            f"Have you ever wondered what {step_title} really means?\n"
            f"In {module_title}, it is the idea everything else in this part of "
            f"{course_title} leans on. Try explaining it to yourself in one "
            "sentence before moving on.\n"
            f"Aha: once {step_title} clicks, the next step will feel obvious."
        )

    async def generate_checkpoint_quiz(
        self, course_title: str, step_titles: Sequence[str]
    ) -> Quiz:
        titles = [t for t in step_titles if t]
        if not titles:
            raise ContentUnavailable("checkpoint_quiz: no step titles")
        options = tuple(titles) if len(titles) > 1 else (titles[0], "None of these")
        return Quiz(
            questions=tuple(
                QuizQuestion(
                    id=f"q{i + 1}",
                    text=f"Which topic came {_ordinal(i)} in this part of {course_title}?",
                    options=options,
                    correct_answer_index=i,
                )
                for i in range(len(titles))
            )
        )

    async def generate_remedial_text(self, course_title: str, topic: str) -> str:
        return (
            f"Let's revisit {topic} together.\n"
            f"Each of these ideas from {course_title} builds on the one before it. "
            "Walk through them in order, and say out loud what changed between "
            "one and the next."
        )

    async def find_video(self, query: str) -> str:
        return f"https://www.youtube.com/results?search_query={quote_plus(query)}"

    async def synthesize_audio(self, text: str) -> str:
        raise ContentUnavailable("synthesize_audio: not available offline")

    async def summarize_course(self, title: str, description: str) -> str:
        first = description.split(". ")[0].strip().rstrip(".")
        return f"{first}." if first else title

    async def recommend_course(
        self, goal: str, catalog: Sequence[Course]
    ) -> CourseRecommendation:
        if not catalog:
            raise ContentUnavailable("recommend_course: empty catalog")
        goal_words = _words(goal)

        def overlap(course: Course) -> int:
            return len(
                goal_words
                & _words(f"{course.title} {course.description} {course.category}")
            )

        best = max(catalog, key=overlap)  # max() keeps the first on ties
        return CourseRecommendation(
            course_id=best.id, reason=f"{best.title} matches your goal: {goal}"
        )

    async def build_roadmap(self, career_goal: str) -> Roadmap:
        goal = career_goal.strip()
        return Roadmap(
            goal=goal,
            stages=(
                RoadmapStage(
                    title="Foundations",
                    description=f"The vocabulary and core ideas behind {goal}.",
                    courses=(f"{goal} Fundamentals",),
                ),
                RoadmapStage(
                    title="Core Skills",
                    description="Hands-on practice with the everyday tools of the role.",
                    courses=(f"Applied {goal}",),
                ),
                RoadmapStage(
                    title="Specialisation",
                    description="Depth in one area and a portfolio project.",
                    courses=(f"Advanced {goal}", f"{goal} Capstone"),
                ),
            ),
        )

    async def generate_syllabus(self, course_title: str) -> list[Module]:
        parts = ("Foundations", "Core Concepts", "Techniques", "Applications", "Mastery")
        outlines = [
            ModuleOutline(
                title=f"{course_title}: {part}",
                description=f"{part} of {course_title}.",
                steps=[
                    StepOutline(title=f"{part} {n}") for n in ("I", "II", "III")
                ],
            )
            for part in parts
        ]
        return modules_from_outline(outlines)

    async def generate_remedial_module(self, topic: str) -> Module:
        slug = _SLUG.sub("-", topic.lower()).strip("-") or "topic"
        outline = ModuleOutline(
            title=f"Review: {topic}",
            description=f"A quick review to master {topic}.",
            steps=[
                StepOutline(title=f"Revisit {topic}"),
                StepOutline(title=f"Worked example: {topic}"),
                StepOutline(title=f"Check yourself: {topic}"),
            ],
        )
        return modules_from_outline(
            [outline],
            module_id=f"remedial-{slug}",
            step_id=f"rs-{slug}-{{j}}",
            is_remedial=True,
        )[0]

    async def generate_advanced_modules(self, course_title: str) -> list[Module]:
        outlines = [
            ModuleOutline(
                title=f"{course_title}: {label}",
                description=f"{label} for learners who finished the core track.",
                steps=[StepOutline(title=f"{label} {n}") for n in ("I", "II", "III")],
            )
            for label in ("Advanced Patterns", "Expert Practice")
        ]
        return modules_from_outline(
            outlines, module_id="adv-{i}", step_id="adv-s-{i}-{j}"
        )

    async def chat(self, message: str, history: Sequence[ChatMessage]) -> str:
        topic = message.strip().rstrip("?.!")
        if not topic:
            raise ContentUnavailable("chat: empty message")
        return (
            f"Have you ever wondered why {topic[0].lower()}{topic[1:]}? "
            "Tell me what you already know and we'll build from there."
        )
