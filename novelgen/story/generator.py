"""
Generation job handlers.

OutlineJobHandler:
    premise -> exactly N chapter summaries -> project outline

ChapterJobHandler:
    premise + outline entry + prior-chapter context -> chapter prose,
    checked against the length band, expanded when short, regenerated
    when unusable, then appended to the project.

Both handlers only raise; turning an exception into a requeue or a
terminal failure is the Dispatcher's job.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from ..scheduler.entities import (
    Chapter,
    ChapterGenerationData,
    Clock,
    Job,
    JobType,
    OutlineGenerationData,
    Project,
    ProjectStatus,
    now_iso,
)
from ..scheduler.errors import JobValidationError, ProjectNotFoundError
from ..scheduler.executor import JobHandler, ProgressReporter
from ..scheduler.persistence import PersistenceAdapter
from .api_client import TextGenerator
from .chapter_length import CHAPTER_WORD_VARIANCE, LengthBand, LengthVerdict
from .context_builder import build_context, count_words
from .errors import ChapterGenerationError, GenerationError, MalformedOutputError
from .prompt_builder import (
    CHAPTER_TEMPERATURE,
    DEFAULT_PROMPT_CONFIG,
    OUTLINE_MAX_TOKENS,
    OUTLINE_TEMPERATURE,
    PromptConfig,
    build_chapter_system_prompt,
    build_chapter_user_prompt,
    build_expansion_user_prompt,
    build_outline_system_prompt,
    build_outline_user_prompt,
    chapter_max_tokens,
)

logger = logging.getLogger("novelgen")


CHAPTER_MAX_ATTEMPTS = int(os.getenv("CHAPTER_MAX_ATTEMPTS", "3"))
CHAPTER_MAX_EXPANSIONS = int(os.getenv("CHAPTER_MAX_EXPANSIONS", "2"))

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _load_project(persistence: PersistenceAdapter, project_id: str) -> Project:
    project = persistence.get_project(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


# =============================================================================
# Outline
# =============================================================================


def parse_outline(text: str, chapter_count: int) -> list[str]:
    """
    Parse the model's outline answer.

    Accepts a bare JSON array or one wrapped in a markdown code fence.

    Raises:
        MalformedOutputError: Not a JSON array of exactly chapter_count
            non-empty strings
    """
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()

    try:
        outline = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"Invalid outline format received from AI: {e}") from e

    if not isinstance(outline, list):
        raise MalformedOutputError(
            f"Invalid outline format received from AI: expected array, got {type(outline).__name__}"
        )

    if len(outline) != chapter_count:
        raise MalformedOutputError(
            f"Invalid outline format received from AI: expected {chapter_count} "
            f"summaries, got {len(outline)}"
        )

    if not all(isinstance(entry, str) and entry.strip() for entry in outline):
        raise MalformedOutputError(
            "Invalid outline format received from AI: every summary must be non-empty text"
        )

    return [entry.strip() for entry in outline]


class OutlineJobHandler(JobHandler):
    """Generates and stores a project's chapter outline."""

    job_type = JobType.OUTLINE_GENERATION

    def __init__(self, client: TextGenerator, persistence: PersistenceAdapter):
        self.client = client
        self.persistence = persistence

    def execute(
        self,
        job: Job,
        payload: OutlineGenerationData,
        reporter: ProgressReporter,
    ) -> dict:
        project = _load_project(self.persistence, job.project_id)
        if project.chapters:
            raise JobValidationError(
                f"Project {job.project_id} already has chapters; its outline is fixed"
            )

        reporter.report(
            10, "started",
            f"Generating {payload.chapter_count}-chapter outline",
            total_chapters=payload.chapter_count,
        )

        logger.info(
            f"[Outline] Starting outline generation for project {job.project_id} "
            f"({payload.genre}/{payload.subgenre}, {payload.chapter_count} chapters)"
        )

        text = self.client.generate(
            build_outline_system_prompt(payload.genre, payload.subgenre, payload.chapter_count),
            build_outline_user_prompt(
                payload.premise, payload.genre, payload.subgenre, payload.chapter_count
            ),
            OUTLINE_TEMPERATURE,
            OUTLINE_MAX_TOKENS,
        )

        reporter.report(70, "parsing", "Validating outline")
        outline = parse_outline(text, payload.chapter_count)

        self.persistence.set_project_outline(job.project_id, outline)
        reporter.report(90, "saving", "Outline saved", total_chapters=len(outline))

        logger.info(f"[Outline] Outline generation completed: {len(outline)} chapters")
        return {"outline": outline}

    def on_failed(self, job: Job) -> None:
        """
        Outline failure puts the project back to SETUP, or to OUTLINE when
        an earlier outline is still stored. Drafted projects are left alone.
        """
        project = self.persistence.get_project(job.project_id)
        if project is None or project.chapters:
            return
        status = ProjectStatus.OUTLINE if project.outline else ProjectStatus.SETUP
        self.persistence.update_project_status(job.project_id, status)
        logger.info(f"[Outline] Project {job.project_id} reset to {status.value} after failure")


# =============================================================================
# Chapter
# =============================================================================


@dataclass
class ChapterDraft:
    """A finished chapter before it is persisted."""

    content: str
    word_count: int
    attempts: int
    regeneration_count: int


class ChapterJobHandler(JobHandler):
    """
    Writes one chapter.

    Attempt loop (max_attempts, default 3):
    - generate from scratch
    - in band: accept
    - too short: up to max_expansions expand calls; the first in-band
      result is accepted, otherwise the last expansion is kept unless it
      overshot the band; a failed expansion call keeps the draft in hand
    - too long, or a generation error: next attempt

    Every regeneration attempt and every completed expansion
    increments regeneration_count.
    """

    job_type = JobType.CHAPTER_GENERATION

    def __init__(
        self,
        client: TextGenerator,
        persistence: PersistenceAdapter,
        variance: int = CHAPTER_WORD_VARIANCE,
        max_attempts: int = CHAPTER_MAX_ATTEMPTS,
        max_expansions: int = CHAPTER_MAX_EXPANSIONS,
        prompt_config: PromptConfig = DEFAULT_PROMPT_CONFIG,
        clock: Optional[Clock] = None,
    ):
        self.client = client
        self.persistence = persistence
        self.variance = variance
        self.max_attempts = max_attempts
        self.max_expansions = max_expansions
        self.prompt_config = prompt_config
        self.clock = clock or persistence.clock

    def execute(
        self,
        job: Job,
        payload: ChapterGenerationData,
        reporter: ProgressReporter,
    ) -> dict:
        project = _load_project(self.persistence, job.project_id)
        number = payload.chapter_number
        total = len(payload.outline)

        # A previous attempt may have saved the chapter before the job was completed
        existing = next((c for c in project.chapters if c.chapter_number == number), None)
        if existing is not None:
            logger.info(f"[Chapter] Chapter {number} already saved, completing job")
            return self._result(existing)

        if number != project.next_chapter_number:
            raise JobValidationError(
                f"Chapter {number} requested but project {project.project_id} "
                f"expects chapter {project.next_chapter_number}"
            )

        self.persistence.update_project_status(
            project.project_id, ProjectStatus.DRAFTING, current_chapter=number
        )
        reporter.report(
            10, "started",
            f"Generating Chapter {number} of {total}...",
            current_chapter=number, total_chapters=total,
        )

        draft = self.write_chapter(payload, reporter)

        chapter = Chapter(
            chapter_number=number,
            content=draft.content,
            word_count=draft.word_count,
            generated_at=now_iso(self.clock),
            regenerated=draft.regeneration_count > 0,
            regeneration_count=draft.regeneration_count,
        )

        reporter.report(
            90, "saving", f"Saving Chapter {number}",
            current_chapter=number, total_chapters=total,
        )
        updated = self.persistence.append_chapter(project.project_id, chapter)

        logger.info(
            f"[Chapter] Chapter {number} saved: {draft.word_count} words, "
            f"{draft.attempts} attempt(s), project status {updated.status.value}"
        )
        return self._result(chapter)

    @staticmethod
    def _result(chapter: Chapter) -> dict:
        return {
            "chapter_number": chapter.chapter_number,
            "content": chapter.content,
            "word_count": chapter.word_count,
            "regeneration_count": chapter.regeneration_count,
        }

    def write_chapter(
        self,
        payload: ChapterGenerationData,
        reporter: Optional[ProgressReporter] = None,
    ) -> ChapterDraft:
        """
        Produce an acceptable chapter within the attempt budget.

        Raises:
            ChapterGenerationError: Budget exhausted with only too-long drafts
            GenerationError: The last attempt failed with a generation error
        """
        number = payload.chapter_number
        total = len(payload.outline)
        band = LengthBand.for_target(payload.target_word_count, self.variance)
        context = build_context(payload.previous_chapter_texts, payload.target_word_count)

        system_prompt = build_chapter_system_prompt(
            chapter_number=number,
            total_chapters=total,
            genre=payload.genre,
            subgenre=payload.subgenre,
            target_word_count=payload.target_word_count,
            variance=self.variance,
            config=self.prompt_config,
        )
        user_prompt = build_chapter_user_prompt(
            chapter_number=number,
            premise=payload.premise,
            chapter_outline=payload.outline[number - 1],
            context=context,
            target_word_count=payload.target_word_count,
        )
        max_tokens = chapter_max_tokens(payload.target_word_count)

        calls = 0
        last_word_count: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            if reporter is not None:
                stage = "generating" if attempt == 1 else "regenerating"
                reporter.report(
                    10 + 20 * (attempt - 1), stage,
                    f"Generating Chapter {number} (attempt {attempt}/{self.max_attempts})",
                    current_chapter=number, total_chapters=total,
                )

            try:
                calls += 1
                content = self.client.generate(
                    system_prompt, user_prompt, CHAPTER_TEMPERATURE, max_tokens
                ).strip()
                word_count = count_words(content)
                verdict = band.check(word_count)

                logger.info(
                    f"[Chapter] Chapter {number} attempt {attempt}: {word_count} words "
                    f"(band {band.minimum}-{band.maximum}, {verdict.value})"
                )

                if verdict == LengthVerdict.TOO_SHORT:
                    content, word_count, verdict, expansion_calls = self._expand(
                        payload, system_prompt, max_tokens, band,
                        content, word_count, attempt, reporter,
                    )
                    calls += expansion_calls
            except GenerationError as e:
                logger.warning(
                    f"[Chapter] Chapter {number} attempt {attempt}/{self.max_attempts} failed: {e}"
                )
                if attempt >= self.max_attempts:
                    raise
                continue

            last_word_count = word_count
            if verdict != LengthVerdict.TOO_LONG:
                return ChapterDraft(
                    content=content,
                    word_count=word_count,
                    attempts=attempt,
                    regeneration_count=calls - 1,
                )

            logger.warning(
                f"[Chapter] Chapter {number} too long ({word_count} words, "
                f"max {band.maximum}), regenerating"
            )

        raise ChapterGenerationError(
            f"Failed to generate valid chapter {number} after {self.max_attempts} attempts "
            f"(last word count: {last_word_count}, target: {payload.target_word_count})"
        )

    def _expand(
        self,
        payload: ChapterGenerationData,
        system_prompt: str,
        max_tokens: int,
        band: LengthBand,
        content: str,
        word_count: int,
        attempt: int,
        reporter: Optional[ProgressReporter],
    ) -> tuple[str, int, LengthVerdict, int]:
        """
        Lengthen a short chapter.

        Returns:
            (content, word_count, verdict, expansion calls made)
        """
        number = payload.chapter_number
        verdict = LengthVerdict.TOO_SHORT
        calls = 0

        for expansion in range(1, self.max_expansions + 1):
            if reporter is not None:
                reporter.report(
                    20 + 20 * (attempt - 1), "expanding",
                    f"Expanding Chapter {number} ({word_count} words, "
                    f"target {payload.target_word_count})",
                    current_chapter=number, total_chapters=len(payload.outline),
                )

            try:
                expanded = self.client.generate(
                    system_prompt,
                    build_expansion_user_prompt(
                        chapter_number=number,
                        chapter_outline=payload.outline[number - 1],
                        content=content,
                        current_word_count=word_count,
                        target_word_count=payload.target_word_count,
                    ),
                    CHAPTER_TEMPERATURE,
                    max_tokens,
                ).strip()
            except GenerationError as e:
                # The short draft in hand stays the best-effort result
                logger.warning(
                    f"[Chapter] Chapter {number} expansion {expansion}/{self.max_expansions} "
                    f"failed, keeping {word_count}-word draft: {e}"
                )
                break

            calls += 1
            content = expanded
            word_count = count_words(content)
            verdict = band.check(word_count)

            logger.info(
                f"[Chapter] Chapter {number} expansion {expansion}/{self.max_expansions}: "
                f"{word_count} words ({verdict.value})"
            )

            if verdict != LengthVerdict.TOO_SHORT:
                break

        return content, word_count, verdict, calls

    def on_failed(self, job: Job) -> None:
        """A chapter failure leaves saved chapters intact; with none saved the project returns to OUTLINE."""
        project = self.persistence.get_project(job.project_id)
        if project is None or project.chapters:
            return
        self.persistence.update_project_status(job.project_id, ProjectStatus.OUTLINE)
        logger.info(f"[Chapter] Project {job.project_id} reset to outline after failure")
