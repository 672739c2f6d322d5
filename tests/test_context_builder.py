"""Tests for the previous-chapters context builder."""

from novelgen.story.context_builder import (
    build_context,
    count_words,
    max_context_words,
    summarize_chapter,
)


def words(count: int, word: str = "word") -> str:
    return " ".join([word] * count)


class TestHelpers:
    def test_count_words_splits_on_any_whitespace(self):
        assert count_words("one  two\nthree\tfour") == 4
        assert count_words("") == 0

    def test_budget_is_twice_target_capped(self):
        assert max_context_words(1000) == 2000
        assert max_context_words(1600) == 3000


class TestSummarizeChapter:
    def test_short_chapter_kept_whole(self):
        assert summarize_chapter("She opened the door.") == "She opened the door."

    def test_few_paragraphs_truncated_to_300(self):
        summary = summarize_chapter(words(200))
        assert summary.endswith("...")
        assert len(summary) == 303

    def test_many_paragraphs_use_first_middle_last(self):
        content = "\n\n".join(["Alpha.", "Beta.", "Gamma.", "Delta.", "Omega."])
        assert summarize_chapter(content) == "Alpha. ... Gamma. ... Omega."

    def test_long_paragraph_summary_truncated_to_400(self):
        content = "\n\n".join([words(100)] * 5)
        summary = summarize_chapter(content)
        assert summary.endswith("...")
        assert len(summary) == 403


class TestBuildContext:
    def test_first_chapter_has_no_context(self):
        assert build_context([], 1600) == ""

    def test_recent_chapters_in_full_older_as_summary(self):
        texts = [words(500, "first"), words(500, "second"), words(500, "third")]

        context = build_context(texts, 1600)
        entries = context.split("\n\n")

        assert entries[0].startswith("Chapter 1 Summary: first")
        assert entries[1] == "Chapter 2:\n" + texts[1]
        assert entries[2] == "Chapter 3:\n" + texts[2]

    def test_falls_back_to_summary_when_full_text_does_not_fit(self):
        texts = [words(800, "first"), words(800, "second")]

        context = build_context(texts, 500)

        assert context.startswith("Chapter 1 Summary: first")
        assert "Chapter 2:\n" + texts[1] in context

    def test_newest_chapter_always_present(self):
        context = build_context([words(500)], 100)
        assert context.startswith("Chapter 1 Summary:")

    def test_stops_at_first_chapter_that_does_not_fit(self):
        texts = [words(500, "first"), words(500, "second"), words(500, "third")]

        context = build_context(texts, 50)

        assert context.startswith("Chapter 3 Summary: third")
        assert "Chapter 2" not in context
        assert "Chapter 1" not in context

    def test_stays_within_budget(self):
        texts = [words(1200, f"c{i}") for i in range(1, 8)]

        context = build_context(texts, 1600)

        assert count_words(context) <= max_context_words(1600)
        assert "Chapter 7:\n" in context
