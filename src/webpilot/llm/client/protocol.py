"""LLM Client Protocol definition.

Defines the interface the assistant layer depends on, so the Ollama client
can be replaced by a stub in tests or another local backend.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable


if TYPE_CHECKING:
    from webpilot.llm.client.streaming import StreamHandle, StreamOutcome
    from webpilot.llm.models import (
        OllamaChatMessage,
        OllamaChatResponse,
        OllamaListModelsResponse,
    )


@runtime_checkable
class LLMClientProtocol(Protocol):
    """Protocol for chat-capable LLM clients.

    Key methods:
    - chat: Single-shot request, retried on failure
    - chat_stream: Incremental request, never retried
    - list_models: Model catalog
    - initialize/shutdown: Lifecycle management for connection pools
    """

    model: str

    async def initialize(self) -> None:
        """Initialize client resources (HTTP connections, etc.)."""
        ...

    async def shutdown(self) -> None:
        """Release client resources and cancel open streams."""
        ...

    async def list_models(self) -> OllamaListModelsResponse:
        """Return the models available to the service."""
        ...

    async def chat(
        self,
        messages: Sequence[OllamaChatMessage | Mapping[str, Any]],
        *,
        model: str | None = None,
        options: Mapping[str, Any] | None = None,
        format: str | dict[str, Any] | None = None,
    ) -> OllamaChatResponse:
        """Send a chat request and return the complete reply.

        Raises:
            LLMUnavailableError: Service unreachable or timed out.
            LLMResponseError: Service reported a failure.
        """
        ...

    async def chat_stream(
        self,
        messages: Sequence[OllamaChatMessage | Mapping[str, Any]],
        on_record: Callable[[OllamaChatResponse], None],
        on_done: Callable[[StreamOutcome], None],
        *,
        model: str | None = None,
        options: Mapping[str, Any] | None = None,
        format: str | dict[str, Any] | None = None,
    ) -> StreamHandle:
        """Start a chat stream; ``on_done`` fires exactly once."""
        ...
