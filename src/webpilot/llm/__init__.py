"""LLM integration module.

Provides an async client for a locally hosted Ollama service with
single-shot and streamed chat/generation.
"""

from webpilot.llm.client.ollama import OllamaClient
from webpilot.llm.client.streaming import StreamHandle, StreamOutcome, StreamOutcomeKind
from webpilot.llm.exceptions import (
    LLMConfigurationError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMStreamError,
    LLMTimeoutError,
    LLMUnavailableError,
    LLMValidationError,
)
from webpilot.llm.prompts.base import BasePrompt


__all__ = [
    "BasePrompt",
    "LLMConfigurationError",
    "LLMError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMStreamError",
    "LLMTimeoutError",
    "LLMUnavailableError",
    "LLMValidationError",
    "OllamaClient",
    "StreamHandle",
    "StreamOutcome",
    "StreamOutcomeKind",
]
