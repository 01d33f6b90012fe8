"""Generative content collaborator.

Everything the learner reads, hears or is quizzed on is produced by an
external generative model.  That service is slow, fallible and
non-deterministic, so the contract here is deliberately narrow:

  - every operation is async and bounded by a timeout
  - every operation either returns a fully validated domain value or
    raises ContentUnavailable, never a partially parsed structure
  - choosing a fallback (placeholder text, default video, skipping a
    checkpoint) is the caller's decision, not this module's

Structured replies (quizzes, syllabi, roadmaps) are requested as JSON with
a response schema and then validated with the pydantic models in
learnx/models/generated.py.  A reply that does not validate counts as a
failed call.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
import time
import uuid
from collections.abc import Sequence
from typing import Protocol, TypeVar, runtime_checkable

import httpx
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import BaseModel, ValidationError

from learnx.core.metrics import CONTENT_DURATION, CONTENT_REQUESTS
from learnx.models.course import Course, Module, Step
from learnx.models.generated import (
    AdvancedModulesOut,
    CourseRecommendationOut,
    ModuleOutline,
    QuizOut,
    RoadmapOut,
    SyllabusOut,
)
from learnx.models.guidance import ChatMessage, CourseRecommendation, Roadmap, RoadmapStage
from learnx.models.quiz import Quiz, QuizQuestion

logger = logging.getLogger(__name__)

_SchemaT = TypeVar("_SchemaT", bound=BaseModel)

TUTOR_PERSONA = (
    "You are Chirpfy AI, a world-class personal tutor. Use a conversational, "
    "one-on-one tone. Start with relatable, real-world questions like "
    '"Have you ever wondered...?". Do not use clichéd analogies. Guide the '
    "learner to mastery by making complex topics feel like a simple "
    "conversation between friends."
)
TTS_VOICE = "Kore"


class ContentUnavailable(Exception):
    """A generative call failed, timed out, or returned unusable output."""


@runtime_checkable
class ContentCollaborator(Protocol):
    async def generate_step_text(
        self, course_title: str, module_title: str, step_title: str
    ) -> str: ...

    async def generate_checkpoint_quiz(
        self, course_title: str, step_titles: Sequence[str]
    ) -> Quiz: ...

    async def generate_remedial_text(self, course_title: str, topic: str) -> str: ...

    async def find_video(self, query: str) -> str: ...

    async def synthesize_audio(self, text: str) -> str:
        """Return base64-encoded audio for ``text``."""
        ...

    async def summarize_course(self, title: str, description: str) -> str: ...

    async def recommend_course(
        self, goal: str, catalog: Sequence[Course]
    ) -> CourseRecommendation: ...

    async def build_roadmap(self, career_goal: str) -> Roadmap: ...

    async def generate_syllabus(self, course_title: str) -> list[Module]: ...

    async def generate_remedial_module(self, topic: str) -> Module: ...

    async def generate_advanced_modules(self, course_title: str) -> list[Module]: ...

    async def chat(self, message: str, history: Sequence[ChatMessage]) -> str: ...


# ---------------------------------------------------------------------------
# Helpers shared by every implementation
# ---------------------------------------------------------------------------

_YOUTUBE_ID = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


def youtube_embed_url(url: str) -> str | None:
    """Return the embeddable form of a YouTube URL, or None if it has no video id."""
    match = _YOUTUBE_ID.match(url)
    if match and len(match.group(2)) == 11:
        return f"https://www.youtube.com/embed/{match.group(2)}"
    return None


def modules_from_outline(
    outlines: Sequence[ModuleOutline],
    *,
    module_id: str = "m-{i}",
    step_id: str = "s-{i}-{j}",
    is_remedial: bool = False,
) -> list[Module]:
    """Turn validated outlines into modules with deterministic ids.

    ``module_id`` and ``step_id`` are format strings over the module index
    ``i`` and step index ``j``.  Step orders start at 1.
    """
    return [
        Module(
            id=module_id.format(i=i),
            title=outline.title,
            description=outline.description,
            is_remedial=is_remedial,
            steps=tuple(
                Step(id=step_id.format(i=i, j=j), title=s.title, order=j + 1)
                for j, s in enumerate(outline.steps)
            ),
        )
        for i, outline in enumerate(outlines)
    ]


def quiz_from_schema(data: QuizOut) -> Quiz:
    return Quiz(
        questions=tuple(
            QuizQuestion(
                id=q.id,
                text=q.text,
                options=tuple(q.options),
                correct_answer_index=q.correctAnswerIndex,
            )
            for q in data.questions
        )
    )


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class GeminiContentService:
    """ContentCollaborator backed by the google-genai async client."""

    def __init__(
        self,
        client,
        *,
        model: str,
        tts_model: str,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._model = model
        self._tts_model = tts_model
        self._timeout = timeout_seconds

    async def _generate(
        self,
        operation: str,
        contents,
        config: genai_types.GenerateContentConfig | None = None,
        *,
        model: str | None = None,
    ):
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=model or self._model,
                    contents=contents,
                    config=config,
                ),
                timeout=self._timeout,
            )
        except (genai_errors.APIError, httpx.HTTPError, TimeoutError) as e:
            raise self._unavailable(operation, f"{type(e).__name__}: {e}") from e
        finally:
            CONTENT_DURATION.labels(operation=operation).observe(
                time.monotonic() - start
            )
        return response

    def _unavailable(self, operation: str, reason: str) -> ContentUnavailable:
        CONTENT_REQUESTS.labels(operation=operation, result="unavailable").inc()
        logger.warning("Content unavailable op=%s: %s", operation, reason)
        return ContentUnavailable(f"{operation}: {reason}")

    def _ok(self, operation: str) -> None:
        CONTENT_REQUESTS.labels(operation=operation, result="ok").inc()

    async def _text(
        self,
        operation: str,
        contents,
        *,
        system_instruction: str | None = None,
    ) -> str:
        config = None
        if system_instruction is not None:
            config = genai_types.GenerateContentConfig(
                system_instruction=system_instruction
            )
        response = await self._generate(operation, contents, config)
        text = (response.text or "").strip()
        if not text:
            raise self._unavailable(operation, "empty response")
        self._ok(operation)
        return text

    async def _structured(
        self, operation: str, prompt: str, schema: type[_SchemaT]
    ) -> _SchemaT:
        config = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )
        response = await self._generate(operation, prompt, config)
        raw = response.text or ""
        try:
            parsed = schema.model_validate_json(raw)
        except ValidationError as e:
            raise self._unavailable(
                operation, f"response failed validation ({e.error_count()} errors)"
            ) from e
        self._ok(operation)
        return parsed

    # --- lesson content ------------------------------------------------------

    async def generate_step_text(
        self, course_title: str, module_title: str, step_title: str
    ) -> str:
        prompt = (
            f'Write a conversational one-on-one lesson for "{step_title}" in the '
            f'module "{module_title}" for "{course_title}".\n'
            "STYLE: Ultra-conversational. Start with a Socratic question. "
            'Focus on one specific "Aha!" moment.\n'
            "Length: Around 150-200 words."
        )
        return await self._text("step_text", prompt)

    async def generate_checkpoint_quiz(
        self, course_title: str, step_titles: Sequence[str]
    ) -> Quiz:
        prompt = (
            f"Generate a 3-question mastery quiz for the course \"{course_title}\" "
            f"covering: {', '.join(step_titles)}. Each question has 4 options "
            "and exactly one correct answer. Return JSON."
        )
        data = await self._structured("checkpoint_quiz", prompt, QuizOut)
        return quiz_from_schema(data)

    async def generate_remedial_text(self, course_title: str, topic: str) -> str:
        prompt = (
            f'Write a short conversational refresher for a learner in "{course_title}" '
            f'who just missed questions on: {topic}. Close the gaps one idea at a '
            "time, start with a Socratic question, around 150 words."
        )
        return await self._text("remedial_text", prompt)

    async def find_video(self, query: str) -> str:
        operation = "find_video"
        config = genai_types.GenerateContentConfig(
            tools=[genai_types.Tool(google_search=genai_types.GoogleSearch())]
        )
        response = await self._generate(
            operation,
            f'Find the absolute BEST educational YouTube video for: "{query}". '
            "Return only the URL.",
            config,
        )
        uri = _first_grounding_uri(response)
        if uri is None:
            text = (response.text or "").strip()
            uri = text if text.startswith("http") else None
        if uri is None:
            raise self._unavailable(operation, "no video reference in response")
        self._ok(operation)
        return uri

    async def synthesize_audio(self, text: str) -> str:
        operation = "synthesize_audio"
        config = genai_types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=genai_types.SpeechConfig(
                voice_config=genai_types.VoiceConfig(
                    prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(
                        voice_name=TTS_VOICE
                    )
                )
            ),
        )
        response = await self._generate(
            operation,
            f"Read this lesson cheerfully and clearly: {text}",
            config,
            model=self._tts_model,
        )
        data = _first_inline_data(response)
        if not data:
            raise self._unavailable(operation, "no audio in response")
        self._ok(operation)
        if isinstance(data, str):
            return data
        return base64.b64encode(data).decode("ascii")

    # --- catalog and guidance -------------------------------------------------

    async def summarize_course(self, title: str, description: str) -> str:
        return await self._text(
            "summarize_course",
            f'Provide a short, punchy 1-sentence summary of the following course: '
            f'"{title}". Description context: "{description}"',
        )

    async def recommend_course(
        self, goal: str, catalog: Sequence[Course]
    ) -> CourseRecommendation:
        operation = "recommend_course"
        listing = "\n".join(
            f"- {c.id}: {c.title} ({c.category}): {c.description}" for c in catalog
        )
        data = await self._structured(
            operation,
            f'A learner says their goal is: "{goal}".\n'
            f"Pick the single best course from this catalog:\n{listing}\n"
            "Return JSON with courseId (one of the ids above) and a one-sentence reason.",
            CourseRecommendationOut,
        )
        if data.courseId not in {c.id for c in catalog}:
            raise self._unavailable(operation, f"unknown course id {data.courseId!r}")
        return CourseRecommendation(course_id=data.courseId, reason=data.reason)

    async def build_roadmap(self, career_goal: str) -> Roadmap:
        data = await self._structured(
            "build_roadmap",
            f'Build a learning roadmap for someone who wants to become: "{career_goal}". '
            "Return 3 to 5 ordered stages, each with a title, a one-sentence "
            "description and 1 to 3 course titles.",
            RoadmapOut,
        )
        return Roadmap(
            goal=data.goal or career_goal,
            stages=tuple(
                RoadmapStage(
                    title=s.title, description=s.description, courses=tuple(s.courses)
                )
                for s in data.stages
            ),
        )

    async def generate_syllabus(self, course_title: str) -> list[Module]:
        data = await self._structured(
            "generate_syllabus",
            f'Generate a 5-module curriculum for "{course_title}". Divide each '
            "module into exactly 3 clear progression steps.",
            SyllabusOut,
        )
        return modules_from_outline(data.modules)

    async def generate_remedial_module(self, topic: str) -> Module:
        data = await self._structured(
            "remedial_module",
            f'Generate a remedial module for someone struggling with "{topic}". '
            "Provide a title, description, and exactly 3 learning steps.",
            ModuleOutline,
        )
        suffix = uuid.uuid4().hex[:8]
        return modules_from_outline(
            [data],
            module_id=f"remedial-{suffix}",
            step_id=f"rs-{suffix}-{{j}}",
            is_remedial=True,
        )[0]

    async def generate_advanced_modules(self, course_title: str) -> list[Module]:
        data = await self._structured(
            "advanced_modules",
            f'Generate 2 advanced extension modules for the course "{course_title}".',
            AdvancedModulesOut,
        )
        suffix = uuid.uuid4().hex[:8]
        return modules_from_outline(
            data.modules,
            module_id=f"adv-{{i}}-{suffix}",
            step_id=f"adv-s-{{i}}-{{j}}-{suffix}",
        )

    async def chat(self, message: str, history: Sequence[ChatMessage]) -> str:
        contents = [
            {
                "role": "user" if m.role == "user" else "model",
                "parts": [{"text": m.content}],
            }
            for m in history
        ]
        contents.append({"role": "user", "parts": [{"text": message}]})
        return await self._text("chat", contents, system_instruction=TUTOR_PERSONA)


def _first_grounding_uri(response) -> str | None:
    for candidate in getattr(response, "candidates", None) or []:
        metadata = getattr(candidate, "grounding_metadata", None)
        for chunk in getattr(metadata, "grounding_chunks", None) or []:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", None)
            if uri:
                return uri
    return None


def _first_inline_data(response) -> bytes | str | None:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            data = getattr(inline, "data", None)
            if data:
                return data
    return None
