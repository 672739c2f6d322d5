"""Tests for prompt construction and genre guidance."""

import pytest

from novelgen.story.genres import (
    DEFAULT_GENRE_INSTRUCTION,
    GENRE_INSTRUCTIONS,
    get_genre_instruction,
    list_genres,
    normalize_key,
)
from novelgen.story.prompt_builder import (
    PromptConfig,
    build_chapter_system_prompt,
    build_chapter_user_prompt,
    build_expansion_user_prompt,
    build_outline_system_prompt,
    build_outline_user_prompt,
    chapter_max_tokens,
)


class TestGenres:
    """Genre lookup."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Science Fiction", "SCIENCE_FICTION"),
            ("science-fiction", "SCIENCE_FICTION"),
            ("  cozy_mystery ", "COZY_MYSTERY"),
        ],
    )
    def test_normalize_key(self, value, expected):
        assert normalize_key(value) == expected

    def test_known_pair(self):
        assert get_genre_instruction("mystery", "cozy mystery") == GENRE_INSTRUCTIONS["MYSTERY"]["COZY_MYSTERY"]

    def test_unknown_subgenre_uses_first_of_genre(self):
        assert get_genre_instruction("western", "space western") == GENRE_INSTRUCTIONS["WESTERN"]["FRONTIER_WESTERN"]

    def test_unknown_genre_uses_default(self):
        assert get_genre_instruction("poetry", "haiku") == DEFAULT_GENRE_INSTRUCTION

    def test_list_genres(self):
        genres = list_genres()
        assert len(genres) == 11
        assert "CYBERPUNK" in genres["SCIENCE_FICTION"]


class TestOutlinePrompts:
    def test_system_prompt_demands_exact_json_array(self):
        prompt = build_outline_system_prompt("fantasy", "dark fantasy", 12)

        assert "exactly 12 chapter summaries" in prompt
        assert "JSON array of 12 strings" in prompt
        assert GENRE_INSTRUCTIONS["FANTASY"]["DARK_FANTASY"] in prompt

    def test_user_prompt_carries_premise(self):
        prompt = build_outline_user_prompt("A city that moves.", "fantasy", "urban", 8)

        assert "8-chapter outline" in prompt
        assert prompt.endswith("A city that moves.")


class TestChapterPrompts:
    def test_system_prompt_states_length_and_position(self):
        prompt = build_chapter_system_prompt(
            chapter_number=4,
            total_chapters=10,
            genre="thriller",
            subgenre="legal thriller",
            target_word_count=1600,
            variance=300,
        )

        assert "Target word count: 1600 words (±300 words acceptable)" in prompt
        assert "This is Chapter 4 of 10" in prompt
        assert GENRE_INSTRUCTIONS["THRILLER"]["LEGAL_THRILLER"] in prompt

    def test_custom_voice(self):
        config = PromptConfig(base_prompt="BASE", vibe_prompt="VIBE", style_instructions="- STYLE")

        prompt = build_chapter_system_prompt(1, 3, "romance", "first love", 1000, 300, config)

        assert prompt.startswith("BASE")
        assert "VIBE" in prompt
        assert "- STYLE" in prompt

    def test_first_chapter_user_prompt(self):
        prompt = build_chapter_user_prompt(1, "Premise.", "Setup.", "", 1600)

        assert "This is the first chapter." in prompt
        assert "Chapter 1 Outline: Setup." in prompt

    def test_later_chapter_user_prompt_includes_context(self):
        prompt = build_chapter_user_prompt(2, "Premise.", "Turn.", "Chapter 1:\nText.", 1600)

        assert "Previous chapters context:\nChapter 1:\nText." in prompt
        assert "targeting approximately 1600 words" in prompt

    def test_expansion_prompt_includes_draft(self):
        prompt = build_expansion_user_prompt(3, "Climax.", "Short draft.", 500, 1600)

        assert "500 words" in prompt
        assert "1600 words" in prompt
        assert prompt.endswith("Short draft.")


class TestChapterMaxTokens:
    @pytest.mark.parametrize(
        "target, expected",
        [(500, 2000), (1000, 2000), (1600, 2400), (3001, 4501)],
    )
    def test_token_ceiling(self, target, expected):
        assert chapter_max_tokens(target) == expected
