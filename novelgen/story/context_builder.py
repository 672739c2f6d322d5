"""
Prior-chapter context for chapter prompts.

The model cannot see the whole manuscript, so earlier chapters are
condensed under a word budget:

    max_context_words = min(3000, target_word_count * 2)

Chapters are walked newest to oldest. The most recent
FULL_TEXT_CHAPTERS chapters go in verbatim when they fit; everything
else becomes an extractive summary (first, middle and last paragraph).
Walking stops at the first chapter that would overflow the budget, but
the newest chapter is always represented, so the result is never empty
when there is something to summarize.
"""

import logging


logger = logging.getLogger("novelgen")

MAX_CONTEXT_WORDS = 3000
CONTEXT_WORDS_PER_TARGET_WORD = 2
FULL_TEXT_CHAPTERS = 2

SUMMARY_MAX_CHARS = 400
SHORT_SUMMARY_MAX_CHARS = 300
PARAGRAPH_SEPARATOR = "\n\n"


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


def max_context_words(target_word_count: int) -> int:
    return min(MAX_CONTEXT_WORDS, target_word_count * CONTEXT_WORDS_PER_TARGET_WORD)


def summarize_chapter(content: str) -> str:
    """
    Extractive summary of one chapter.

    Short chapters (three paragraphs or fewer) are cut to the first 300
    characters. Longer ones keep first, middle and last paragraph joined
    with " ... ", cut to 400 characters.
    """
    paragraphs = [p.strip() for p in content.split(PARAGRAPH_SEPARATOR) if p.strip()]

    if len(paragraphs) <= 3:
        text = " ".join(paragraphs)
        if len(text) > SHORT_SUMMARY_MAX_CHARS:
            return text[:SHORT_SUMMARY_MAX_CHARS] + "..."
        return text

    summary = " ... ".join(
        [paragraphs[0], paragraphs[len(paragraphs) // 2], paragraphs[-1]]
    )
    if len(summary) > SUMMARY_MAX_CHARS:
        return summary[:SUMMARY_MAX_CHARS] + "..."
    return summary


def _full_entry(chapter_number: int, text: str) -> str:
    return f"Chapter {chapter_number}:\n{text.strip()}"


def _summary_entry(chapter_number: int, text: str) -> str:
    return f"Chapter {chapter_number} Summary: {summarize_chapter(text)}"


def build_context(previous_chapter_texts: list[str], target_word_count: int) -> str:
    """
    Build the previous-chapters context for the next chapter.

    Args:
        previous_chapter_texts: Chapter texts in story order (chapter 1 first)
        target_word_count: Target length of the chapter being written

    Returns:
        Entries in chronological order separated by blank lines; empty
        string when there are no previous chapters
    """
    if not previous_chapter_texts:
        return ""

    budget = max_context_words(target_word_count)
    newest = len(previous_chapter_texts)
    entries: list[str] = []
    used_words = 0

    for index in range(newest - 1, -1, -1):
        chapter_number = index + 1
        text = previous_chapter_texts[index]

        candidates = []
        if newest - index <= FULL_TEXT_CHAPTERS:
            candidates.append(_full_entry(chapter_number, text))
        candidates.append(_summary_entry(chapter_number, text))

        chosen = None
        for candidate in candidates:
            if used_words + count_words(candidate) <= budget:
                chosen = candidate
                break

        if chosen is None:
            if entries:
                break
            # Newest chapter is always represented, even over budget
            chosen = candidates[-1]

        entries.insert(0, chosen)
        used_words += count_words(chosen)

    logger.debug(
        f"[Context] {len(entries)}/{newest} chapters in context, "
        f"{used_words}/{budget} words"
    )
    return PARAGRAPH_SEPARATOR.join(entries)
