"""
Chapter length validation.

A chapter is acceptable when its word count falls inside

    [target * MIN_LENGTH_RATIO, target + variance]

Short chapters are expanded; long ones are regenerated from scratch.
"""

import math
import os
from dataclasses import dataclass
from enum import Enum


CHAPTER_WORD_VARIANCE = int(os.getenv("CHAPTER_WORD_VARIANCE", "300"))
MIN_LENGTH_RATIO = 0.75


class LengthVerdict(str, Enum):
    """Where a word count falls relative to the acceptable band."""

    TOO_SHORT = "too_short"
    OK = "ok"
    TOO_LONG = "too_long"


@dataclass(frozen=True)
class LengthBand:
    """Inclusive word-count band for one target."""

    minimum: int
    maximum: int

    @classmethod
    def for_target(
        cls,
        target_word_count: int,
        variance: int = CHAPTER_WORD_VARIANCE,
    ) -> "LengthBand":
        return cls(
            minimum=math.ceil(target_word_count * MIN_LENGTH_RATIO),
            maximum=target_word_count + variance,
        )

    def check(self, word_count: int) -> LengthVerdict:
        if word_count < self.minimum:
            return LengthVerdict.TOO_SHORT
        if word_count > self.maximum:
            return LengthVerdict.TOO_LONG
        return LengthVerdict.OK

    def contains(self, word_count: int) -> bool:
        return self.check(word_count) == LengthVerdict.OK


def is_length_valid(
    word_count: int,
    target_word_count: int,
    variance: int = CHAPTER_WORD_VARIANCE,
) -> bool:
    """True iff word_count is inside the band for target_word_count."""
    return LengthBand.for_target(target_word_count, variance).contains(word_count)
