"""
Prompt Builder - System and User Prompt Construction

Builds the three prompts the generation jobs send:
- Outline: exactly N one-to-two sentence chapter summaries as a JSON array
- Chapter: one chapter of prose, given premise, outline entry and context
- Expansion: the same chapter, lengthened toward its target

The writing voice (base / vibe / style) is a PromptConfig so it can be
tuned without touching the builders.
"""

import logging
import math
from dataclasses import dataclass

from .genres import get_genre_instruction


logger = logging.getLogger(__name__)


OUTLINE_TEMPERATURE = 0.8
OUTLINE_MAX_TOKENS = 3000
CHAPTER_TEMPERATURE = 0.8
CHAPTER_MIN_MAX_TOKENS = 2000
CHAPTER_TOKENS_PER_WORD = 1.5


@dataclass(frozen=True)
class PromptConfig:
    """Writing voice shared by every chapter prompt."""

    base_prompt: str
    vibe_prompt: str
    style_instructions: str


DEFAULT_PROMPT_CONFIG = PromptConfig(
    base_prompt=(
        "You are an expert novelist with decades of experience writing compelling, "
        "engaging fiction. Your task is to write professional-quality novel chapters "
        "that feel natural, human, and captivating to readers."
    ),
    vibe_prompt=(
        "Write in a natural, flowing style that avoids obvious AI patterns. Use varied "
        "sentence structures, natural dialogue, and show rather than tell. Create vivid "
        "scenes with sensory details and emotional depth. Avoid repetitive phrasing, "
        "overly formal language, or mechanical transitions between paragraphs."
    ),
    style_instructions="\n".join([
        "- Use active voice whenever possible",
        "- Vary sentence length and structure naturally",
        "- Create authentic dialogue that reveals character",
        "- Show emotions through actions and subtext, not exposition",
        "- Use specific, concrete details rather than vague descriptions",
        "- Build tension and pacing appropriate to the scene",
        "- Maintain consistent point of view within each chapter",
        "- End chapters with hooks that encourage continued reading",
    ]),
)


def chapter_max_tokens(target_word_count: int) -> int:
    """Token ceiling for one chapter call, with room for overshoot."""
    return max(CHAPTER_MIN_MAX_TOKENS, math.floor(target_word_count * CHAPTER_TOKENS_PER_WORD))


# =============================================================================
# Outline
# =============================================================================


def build_outline_system_prompt(genre: str, subgenre: str, chapter_count: int) -> str:
    return f"""You are a professional novel outline generator. Create exactly {chapter_count} chapter summaries for a {genre}/{subgenre} novel.

Each summary should be 1-2 sentences, advance the plot, and connect to surrounding chapters.

Genre guidelines: {get_genre_instruction(genre, subgenre)}

Return ONLY a valid JSON array of {chapter_count} strings. Example: ["Chapter 1 summary...", "Chapter 2 summary...", ...]"""


def build_outline_user_prompt(premise: str, genre: str, subgenre: str, chapter_count: int) -> str:
    return f"""Create a {chapter_count}-chapter outline for this {genre}/{subgenre} novel:

{premise}"""


# =============================================================================
# Chapter
# =============================================================================


def build_chapter_system_prompt(
    chapter_number: int,
    total_chapters: int,
    genre: str,
    subgenre: str,
    target_word_count: int,
    variance: int,
    config: PromptConfig = DEFAULT_PROMPT_CONFIG,
) -> str:
    """
    System prompt for one chapter.

    Carries the writing voice, the genre guidance and the hard length
    requirement.
    """
    return f"""{config.base_prompt}

You are writing Chapter {chapter_number} of a {genre} / {subgenre} novel.

Genre guidelines: {get_genre_instruction(genre, subgenre)}

{config.vibe_prompt}

{config.style_instructions}

CRITICAL REQUIREMENTS:
- Target word count: {target_word_count} words (±{variance} words acceptable)
- This is Chapter {chapter_number} of {total_chapters}
- Write a complete chapter with proper narrative flow
- Match the tone and style established in previous chapters
- DO NOT include a chapter title or number in your response
- Write ONLY the chapter content

Your chapter should feel natural and engaging, avoiding AI-generated patterns and clichés."""


def build_chapter_user_prompt(
    chapter_number: int,
    premise: str,
    chapter_outline: str,
    context: str,
    target_word_count: int,
) -> str:
    if context:
        history = f"Previous chapters context:\n{context}"
    else:
        history = "This is the first chapter."

    return f"""Premise: {premise}

Chapter {chapter_number} Outline: {chapter_outline}

{history}

Write Chapter {chapter_number} now, targeting approximately {target_word_count} words."""


def build_expansion_user_prompt(
    chapter_number: int,
    chapter_outline: str,
    content: str,
    current_word_count: int,
    target_word_count: int,
) -> str:
    """User prompt asking for a longer version of a short chapter."""
    return f"""Chapter {chapter_number} Outline: {chapter_outline}

The draft below is {current_word_count} words, but this chapter needs approximately {target_word_count} words.

Expand it to about {target_word_count} words. Deepen scenes, dialogue and sensory detail rather than adding new plot events. Keep everything that already happens, in the same order.

Return the COMPLETE expanded chapter, not just the additions.

DRAFT:
{content}"""
