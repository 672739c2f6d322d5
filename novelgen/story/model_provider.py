"""
Model provider abstraction for novel generation.

Supports multiple LLM backends:
- Claude (Anthropic) - default
- Ollama (local models)

Each provider translates its own failures into the GenerationError
taxonomy (see errors.py) so retries are decided in one place.

Usage:
    provider = get_provider("ollama:llama3")
    result = provider.generate(system_prompt, user_prompt, config)
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic
import httpx

from .errors import (
    GenerationNetworkError,
    GenerationTimeoutError,
    MalformedOutputError,
    RateLimitError,
    UpstreamServerError,
    classify_status_code,
)

logger = logging.getLogger("novelgen")


DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "120"))


@dataclass
class ModelInfo:
    """Model identification information."""
    provider: str  # "anthropic", "ollama"
    model_name: str  # e.g., "claude-sonnet-4-5-20250929", "llama3"
    full_spec: str  # e.g., "claude-sonnet-4-5-20250929", "ollama:llama3"


@dataclass
class GenerationResult:
    """Result from text generation."""
    text: str
    usage: Optional[Dict[str, int]]
    provider: str
    model: str


def parse_model_spec(model_spec: Optional[str]) -> ModelInfo:
    """
    Parse model specification string into provider and model name.

    Formats:
    - "ollama:llama3" -> provider="ollama", model="llama3"
    - "claude-sonnet-4-5-20250929" -> provider="anthropic"
    - None -> default Claude model from CLAUDE_MODEL
    """
    if model_spec is None:
        default_model = os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)
        return ModelInfo(
            provider="anthropic",
            model_name=default_model,
            full_spec=default_model
        )

    if model_spec.startswith("ollama:"):
        model_name = model_spec.split(":", 1)[1]
        return ModelInfo(
            provider="ollama",
            model_name=model_name,
            full_spec=model_spec
        )

    return ModelInfo(
        provider="anthropic",
        model_name=model_spec,
        full_spec=model_spec
    )


class ModelProvider(ABC):
    """Abstract base class for model providers."""

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """
        Generate text using the model.

        Args:
            system_prompt: System prompt text
            user_prompt: User prompt text
            config: max_tokens, temperature, timeout, api_key

        Returns:
            GenerationResult with generated text and metadata

        Raises:
            GenerationError: Classified provider failure
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name for metadata."""
        pass


class ClaudeProvider(ModelProvider):
    """Claude (Anthropic) model provider."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """Generate using Claude API."""
        logger.info(f"[ClaudeProvider] Generating with {self.model_name}")

        # SDK retries are off: RetryPolicy owns backoff
        client = anthropic.Anthropic(
            api_key=config.get("api_key") or os.getenv("ANTHROPIC_API_KEY"),
            timeout=float(config.get("timeout", DEFAULT_TIMEOUT_SECONDS)),
            max_retries=0,
        )

        try:
            message = client.messages.create(
                model=self.model_name,
                max_tokens=int(config.get("max_tokens", 4096)),
                temperature=float(config.get("temperature", 0.8)),
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}]
            )
        except anthropic.APITimeoutError as e:
            logger.error(f"[ClaudeProvider] Timeout: {e}")
            raise GenerationTimeoutError(f"Claude request timed out: {e}") from e
        except anthropic.APIConnectionError as e:
            logger.error(f"[ClaudeProvider] Connection error: {e}")
            raise GenerationNetworkError(f"Claude connection failed: {e}") from e
        except anthropic.RateLimitError as e:
            logger.warning(f"[ClaudeProvider] Rate limited: {e}")
            raise RateLimitError(f"Claude rate limit: {e}") from e
        except anthropic.APIStatusError as e:
            logger.error(f"[ClaudeProvider] API error {e.status_code}: {e}")
            raise classify_status_code(e.status_code, f"Claude API error: {e}") from e

        text_blocks = [
            block.text for block in message.content
            if getattr(block, "type", None) == "text"
        ]
        text = "".join(text_blocks).strip()
        if not text:
            raise MalformedOutputError("No content received from Claude")

        usage = None
        if getattr(message, "usage", None):
            usage = {
                "input_tokens": message.usage.input_tokens,
                "output_tokens": message.usage.output_tokens,
                "total_tokens": message.usage.input_tokens + message.usage.output_tokens
            }

        logger.info(f"[ClaudeProvider] Generated {len(text)} chars")

        return GenerationResult(
            text=text,
            usage=usage,
            provider=self.provider_name,
            model=self.model_name
        )


class OllamaProvider(ModelProvider):
    """Ollama (local) model provider."""

    def __init__(self, model_name: str, base_url: Optional[str] = None):
        self.model_name = model_name
        self.base_url = (base_url or os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_BASE_URL)).rstrip("/")

    @property
    def provider_name(self) -> str:
        return "ollama"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Dict[str, Any]
    ) -> GenerationResult:
        """Generate using Ollama API."""
        logger.info(f"[OllamaProvider] Generating with {self.model_name}")

        request_body = {
            "model": self.model_name,
            "system": system_prompt,
            "prompt": user_prompt,
            "stream": False,
            "options": {
                "temperature": float(config.get("temperature", 0.8)),
                "num_predict": int(config.get("max_tokens", 4096)),
            }
        }

        timeout = float(config.get("timeout", DEFAULT_TIMEOUT_SECONDS))

        try:
            response = httpx.post(
                f"{self.base_url}/api/generate",
                json=request_body,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"[OllamaProvider] Timeout after {timeout}s")
            raise GenerationTimeoutError(f"Ollama timeout after {timeout}s") from e
        except httpx.TransportError as e:
            logger.error(f"[OllamaProvider] Connection error: {e}")
            raise GenerationNetworkError(f"Ollama connection failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"[OllamaProvider] HTTP {response.status_code}: {response.text[:200]}")
            raise classify_status_code(
                response.status_code,
                f"Ollama error {response.status_code}: {response.text[:200]}",
            )

        try:
            response_json = response.json()
        except ValueError as e:
            raise UpstreamServerError(f"Ollama returned invalid JSON: {e}") from e

        if "error" in response_json:
            raise UpstreamServerError(f"Ollama error: {response_json['error']}")

        text = (response_json.get("response") or "").strip()
        if not text:
            raise MalformedOutputError("No content received from Ollama")

        usage = None
        if "eval_count" in response_json:
            usage = {
                "input_tokens": response_json.get("prompt_eval_count", 0),
                "output_tokens": response_json.get("eval_count", 0),
                "total_tokens": response_json.get("prompt_eval_count", 0) + response_json.get("eval_count", 0)
            }

        logger.info(f"[OllamaProvider] Generated {len(text)} chars")

        return GenerationResult(
            text=text,
            usage=usage,
            provider=self.provider_name,
            model=self.model_name
        )


def get_provider(model_spec: Optional[str] = None) -> ModelProvider:
    """
    Get appropriate model provider for the given model specification.

    Args:
        model_spec: "ollama:llama3", "claude-sonnet-4-5-20250929", or None
                    for the default Claude model
    """
    info = parse_model_spec(model_spec)

    if info.provider == "ollama":
        return OllamaProvider(info.model_name)
    else:
        return ClaudeProvider(info.model_name)
