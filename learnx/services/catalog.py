"""Course catalog: curated courses plus generated career pathway tracks.

Curated courses ship with authored modules.  Pathway courses are named
``"{category} Specialist Level {n}"`` and start with no modules; their
syllabus is generated on first visit (see syllabus.py).
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from learnx.models.course import Course, Module, Review, Step

LEVELS_PER_CATEGORY = 200
GENERATED_PREFIX = "generated-"
GENERATED_IMAGE_URL = (
    "https://images.unsplash.com/photo-1516321318423-f06f85e504b3"
    "?auto=format&fit=crop&q=80&w=400"
)
GENERATED_DURATION = "6 Weeks"

CATEGORIES: tuple[str, ...] = (
    "Artificial Intelligence", "Blockchain Tech", "Cybersecurity", "Data Science",
    "Ethical Hacking", "Financial Literacy", "Game Development", "History of Art",
    "Interstellar Travel", "JavaScript Mastery", "Kitchen Chemistry", "Language Arts",
    "Marine Biology", "Nanotechnology", "Organic Gardening", "Philosophy",
    "Quantum Physics", "Renewable Energy", "Space Exploration", "Theology",
    "Urban Planning", "Visual Effects", "Web3 Architecture", "Xylography",
    "Yoga Science", "Zoology", "Alternative Medicine", "Behavioral Economics",
    "Cognitive Science", "Digital Marketing", "Electronic Music", "Forensic Science",
    "Genetic Engineering", "Human Rights", "Industrial Design", "Journalism",
    "Kinesiology", "Law", "Macroeconomics", "Nuclear Energy", "Optics",
    "Paleontology", "Robotics", "Social Psychology", "Thermodynamics", "Virology",
    "Wildlife Conservation", "Xenobiology", "Youth Mentorship", "Zen Architecture",
)  # fmt: skip


def _steps(*pairs: tuple[str, str]) -> tuple[Step, ...]:
    return tuple(
        Step(id=step_id, title=title, order=n)
        for n, (step_id, title) in enumerate(pairs, start=1)
    )


SEEDED_COURSES: tuple[Course, ...] = (
    Course(
        id="c1",
        title="Professional Web Development",
        description="Go from zero to world-class engineer. Mastery focused.",
        category="Tech",
        duration="12 weeks",
        image_url=(
            "https://images.unsplash.com/photo-1498050108023-c5249f4df085"
            "?auto=format&fit=crop&q=80&w=400"
        ),
        modules=(
            Module(
                id="m1",
                title="The Anatomy of the Web",
                description="Understanding how information moves across the world.",
                steps=_steps(
                    ("s1", "The Request/Response Cycle"),
                    ("s2", "HTML: The Skeleton"),
                    ("s3", "CSS: The Visual Layer"),
                    ("s4", "Interactivity with JS"),
                ),
            ),
            Module(
                id="m2",
                title="Advanced Frontend Architectures",
                description="Building scalable user interfaces with modern patterns.",
                steps=_steps(
                    ("s5", "Component Composition"),
                    ("s6", "State Management Mastery"),
                ),
            ),
        ),
        reviews=(
            Review(
                id="r1",
                user_name="MasterDev",
                rating=5,
                comment="The step-by-step approach is unbeatable.",
                date="2024-04-01",
            ),
        ),
    ),
    Course(
        id="c2",
        title="UI/UX Masterclass",
        description="Learn the psychology and principles of elite product design.",
        category="Design",
        duration="8 weeks",
        image_url=(
            "https://images.unsplash.com/photo-1586717791821-3f44a563eb4c"
            "?auto=format&fit=crop&q=80&w=400"
        ),
        modules=(
            Module(
                id="m1_ux",
                title="Design Psychology",
                description="Why we click what we click.",
                steps=_steps(
                    ("s1_ux", "Gestalt Principles"),
                    ("s2_ux", "Color Theory & Emotion"),
                ),
            ),
        ),
    ),
)


def generated_course_id(title: str) -> str:
    return GENERATED_PREFIX + re.sub(r"\s+", "-", title).lower()


def pathway_titles(category: str) -> list[str]:
    return [
        f"{category} Specialist Level {n}" for n in range(1, LEVELS_PER_CATEGORY + 1)
    ]


def pathway_course(category: str, title: str) -> Course:
    return Course(
        id=generated_course_id(title),
        title=title,
        description=f"Deep dive into {title}.",
        category=category,
        duration=GENERATED_DURATION,
        image_url=GENERATED_IMAGE_URL,
    )


class CourseCatalog:
    def __init__(
        self,
        courses: Iterable[Course] = SEEDED_COURSES,
        categories: Iterable[str] = CATEGORIES,
    ) -> None:
        self._courses = {c.id: c for c in courses}
        self._categories = tuple(categories)
        # generated id -> (category, title); built once, ~10k entries
        self._generated: dict[str, tuple[str, str]] = {
            generated_course_id(title): (category, title)
            for category in self._categories
            for title in pathway_titles(category)
        }

    def courses(self) -> list[Course]:
        return list(self._courses.values())

    def search(self, query: str | None = None) -> list[Course]:
        """Curated courses whose title or description contains ``query``."""
        if not query:
            return self.courses()
        needle = query.strip().lower()
        return [
            c
            for c in self._courses.values()
            if needle in c.title.lower() or needle in c.description.lower()
        ]

    def get(self, course_id: str) -> Course | None:
        course = self._courses.get(course_id)
        if course is not None:
            return course
        generated = self._generated.get(course_id)
        if generated is None:
            return None
        return pathway_course(*generated)

    def categories(self, query: str | None = None) -> list[str]:
        if not query:
            return list(self._categories)
        needle = query.strip().lower()
        return [c for c in self._categories if needle in c.lower()]

    def category_courses(self, category: str) -> list[Course] | None:
        """Pathway courses for ``category`` (case-insensitive), or None if unknown."""
        match = next(
            (c for c in self._categories if c.lower() == category.strip().lower()),
            None,
        )
        if match is None:
            return None
        return [pathway_course(match, title) for title in pathway_titles(match)]
