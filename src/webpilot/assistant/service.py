"""AI service: natural-language queries against the local model.

Composes query preprocessing, the browser automation prompt, the Ollama
client, and structured payload extraction. Both entry points always hand
the caller a well-formed ``QueryResult``; failures are never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from pydantic import ValidationError

from webpilot.assistant.extraction import build_query_result
from webpilot.assistant.models import (
    BACKEND_ERROR_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
    QueryResult,
    StreamCallbacks,
)
from webpilot.assistant.preprocessing import preprocess_query
from webpilot.assistant.session import StreamSession
from webpilot.core.config import Settings, get_settings
from webpilot.llm.client.ollama import OllamaClient
from webpilot.llm.exceptions import LLMConfigurationError, LLMError
from webpilot.llm.prompts.browser_automation import BrowserAutomationPrompt
from webpilot.observability.logging import (
    bind_context,
    get_logger,
    preview,
    setup_logging,
    unbind_context,
)


if TYPE_CHECKING:
    from webpilot.llm.client.protocol import LLMClientProtocol
    from webpilot.llm.client.streaming import StreamHandle
    from webpilot.llm.models import OllamaChatMessage
    from webpilot.llm.prompts.base import BasePrompt


logger = get_logger(__name__)


class StreamCanceller:
    """Returned by ``query_stream``; calling it cancels the session.

    When the session could not be started the canceller is a no-op.
    """

    def __init__(self, session: StreamSession, handle: StreamHandle | None = None) -> None:
        self.session = session
        self.handle = handle

    def __call__(self) -> None:
        if self.handle is not None:
            self.handle.cancel()

    async def wait(self) -> QueryResult | None:
        """Wait for the session to terminate and return its final result."""
        if self.handle is not None:
            await self.handle.wait()
        return self.session.result


class AIService:
    """Service handling AI interactions for browser automation.

    Example:
        ```python
        async with AIService.from_settings() as service:
            result = await service.query("example.com")
            for call in result.tool_calls or []:
                print(call.name, call.parameters)
        ```
    """

    def __init__(
        self,
        client: LLMClientProtocol,
        prompt: BasePrompt | None = None,
        *,
        response_format: str | dict[str, Any] | None = "json",
    ) -> None:
        self.client = client
        self.prompt = prompt or BrowserAutomationPrompt()
        self.response_format = response_format
        logger.info("AI Service initialized", prompt=self.prompt.name, model=client.model)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        configure_logging: bool = False,
    ) -> Self:
        """Build a service wired to the configured Ollama endpoint.

        Args:
            settings: Settings to use (defaults to the process settings).
            configure_logging: Also install the configured log sinks, for
                processes that use the service as their entry point.

        Raises:
            LLMConfigurationError: If the endpoint configuration is invalid.
        """
        settings = settings or get_settings()
        if configure_logging:
            setup_logging(
                log_level=settings.logging.level,
                log_format=settings.logging.format,
                is_development=settings.is_development,
                log_file=settings.logging.file,
            )

        try:
            endpoint = settings.endpoint_config
        except ValidationError as e:
            msg = f"Invalid Ollama endpoint configuration: {e.error_count()} error(s)"
            raise LLMConfigurationError(msg) from e

        return cls(
            OllamaClient.from_config(endpoint),
            BrowserAutomationPrompt(temperature=settings.assistant.temperature),
            response_format=settings.assistant.response_format,
        )

    async def initialize(self) -> None:
        await self.client.initialize()

    async def shutdown(self) -> None:
        await self.client.shutdown()

    async def __aenter__(self) -> Self:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    def build_messages(self, query: str) -> list[OllamaChatMessage]:
        """Preprocess ``query`` and wrap it with the system instruction."""
        processed = preprocess_query(query)
        logger.debug("Preprocessed query", query=preview(processed))
        return self.prompt.build_messages(query=processed)

    async def query(self, query: str) -> QueryResult:
        """Send a query and wait for the complete answer.

        Returns:
            The model text with any recognized structured output and tool
            calls, or a fallback message with ``error`` set on failure.
        """
        try:
            messages = self.build_messages(query)
            logger.info("Sending AI query", query=preview(messages[-1].content))
            response = await self.client.chat(
                messages,
                format=self.response_format,
                options=self.prompt.get_options(),
            )
        except LLMError as e:
            logger.error("AI query failed", error_type=type(e).__name__, error=str(e))
            return QueryResult.failure(BACKEND_ERROR_MESSAGE, e)
        except Exception as e:
            logger.exception("AI query failed unexpectedly")
            return QueryResult.failure(UNEXPECTED_ERROR_MESSAGE, e)

        result = build_query_result(response.text)
        logger.info(
            "AI query completed",
            has_structured_output=result.structured_output is not None,
            has_tool_calls=result.tool_calls is not None,
        )
        return result

    async def query_stream(
        self,
        query: str,
        callbacks: StreamCallbacks | None = None,
    ) -> StreamCanceller:
        """Start a streaming query and return its canceller.

        ``on_text_update`` receives the full accumulated text after every
        fragment. ``on_structured_output_update`` and ``on_tool_calls_update``
        fire whenever extraction over the accumulated text yields a new
        payload. ``on_complete`` fires exactly once, preceded by ``on_error``
        if the session failed.
        """
        session = StreamSession(callbacks or StreamCallbacks())
        # The stream task copies this context, so its records carry the id
        bind_context(session_id=session.session_id)
        try:
            messages = self.build_messages(query)
            logger.info("Sending streaming AI query", query=preview(messages[-1].content))
            session.start()
            handle = await self.client.chat_stream(
                messages,
                session.on_record,
                session.on_done,
                format=self.response_format,
                options=self.prompt.get_options(),
            )
        except Exception as e:
            session.fail(e)
            return StreamCanceller(session)
        finally:
            unbind_context("session_id")

        return StreamCanceller(session, handle)
