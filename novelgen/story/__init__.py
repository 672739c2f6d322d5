"""
Story module - generation side of the pipeline.

- Prompt building and genre guidance
- Model providers (Claude, Ollama) behind GenerationClient
- Call-level retry policy
- Prior-chapter context and chapter length validation
- Outline and chapter job handlers
"""

from .errors import (
    GenerationError,
    RateLimitError,
    UpstreamServerError,
    GenerationNetworkError,
    GenerationTimeoutError,
    InvalidRequestError,
    MalformedOutputError,
    ChapterGenerationError,
)
from .retry_policy import RetryPolicy, is_retryable
from .context_builder import build_context, summarize_chapter, count_words
from .chapter_length import LengthBand, LengthVerdict, is_length_valid
from .api_client import GenerationClient, TextGenerator
from .generator import OutlineJobHandler, ChapterJobHandler, parse_outline

__all__ = [
    # errors
    "GenerationError",
    "RateLimitError",
    "UpstreamServerError",
    "GenerationNetworkError",
    "GenerationTimeoutError",
    "InvalidRequestError",
    "MalformedOutputError",
    "ChapterGenerationError",
    # retry_policy
    "RetryPolicy",
    "is_retryable",
    # context_builder
    "build_context",
    "summarize_chapter",
    "count_words",
    # chapter_length
    "LengthBand",
    "LengthVerdict",
    "is_length_valid",
    # api_client
    "GenerationClient",
    "TextGenerator",
    # generator
    "OutlineJobHandler",
    "ChapterJobHandler",
    "parse_outline",
]
