"""
LLM API client module.

GenerationClient is the single "generate text given a prompt" seam the
job handlers depend on. It picks a provider from the model spec and
wraps every call in the call-level RetryPolicy.
"""

import logging
import os
from typing import Any, Dict, Optional, Protocol

from .model_provider import (
    DEFAULT_TIMEOUT_SECONDS,
    ModelProvider,
    get_provider,
    parse_model_spec,
)
from .retry_policy import RetryPolicy

logger = logging.getLogger("novelgen")


class TextGenerator(Protocol):
    """Anything that turns prompts into text (real client or test fake)."""

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        ...


class GenerationClient:
    """
    Uniform generate() over the configured model provider.

    Errors surface as GenerationError subclasses; transient ones are
    retried here before they ever reach the job queue.
    """

    def __init__(
        self,
        provider: Optional[ModelProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        model_spec: Optional[str] = None,
    ):
        """
        Args:
            provider: Explicit provider; built from model_spec when omitted
            retry_policy: Call-level retry; defaults from environment
            api_key: Provider API key (Anthropic); falls back to ANTHROPIC_API_KEY
            timeout: Hard per-call timeout in seconds
            model_spec: e.g. "ollama:llama3"; falls back to MODEL env var
        """
        model_spec = model_spec or os.getenv("MODEL") or None
        self.provider = provider or get_provider(model_spec)
        self.retry_policy = retry_policy or RetryPolicy()
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.timeout = timeout

        if provider is None:
            info = parse_model_spec(model_spec)
            logger.info(f"[LLM] Using provider={info.provider}, model={info.model_name}")

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Generate text, retrying transient provider failures.

        Returns:
            The generated text (stripped)

        Raises:
            GenerationError: Once retries are exhausted or on a fatal error
        """
        config: Dict[str, Any] = {
            "api_key": self.api_key,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": self.timeout,
        }

        result = self.retry_policy.call(
            lambda: self.provider.generate(system_prompt, user_prompt, config),
            description=f"{self.provider.provider_name} generation",
        )

        if result.usage:
            logger.info(
                f"[LLM] Tokens - Input: {result.usage['input_tokens']}, "
                f"Output: {result.usage['output_tokens']}"
            )

        return result.text
