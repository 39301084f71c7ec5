"""HTTP client for the Ollama LLM service.

This module provides an async client for a locally hosted Ollama instance:
single-shot ``/generate``, ``/chat`` and ``/tags`` calls with a per-attempt
deadline and bounded sequential retry, plus streamed ``/generate`` and
``/chat`` sessions (see ``webpilot.llm.client.streaming``).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Self, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from webpilot.llm.client.streaming import StreamHandle, StreamOutcome, open_stream
from webpilot.llm.exceptions import (
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMStreamError,
    LLMTimeoutError,
    LLMUnavailableError,
    LLMValidationError,
)
from webpilot.llm.models import (
    OllamaChatMessage,
    OllamaChatRequest,
    OllamaChatResponse,
    OllamaErrorResponse,
    OllamaGenerateRequest,
    OllamaGenerateResponse,
    OllamaListModelsResponse,
    OllamaOptions,
    reply_adapter,
)
from webpilot.observability.logging import get_logger


if TYPE_CHECKING:
    from pydantic import TypeAdapter

    from webpilot.core.config import EndpointConfig


logger = get_logger(__name__)

R = TypeVar("R", bound=BaseModel)

MessageLike = OllamaChatMessage | Mapping[str, Any]
OptionsLike = OllamaOptions | Mapping[str, Any]


def _noop_done(_outcome: StreamOutcome) -> None:
    return None


class OllamaClient:
    """Async HTTP client for the Ollama LLM service.

    Provides methods for:
    - Listing locally available models
    - Single-shot generation and chat with timeout and bounded retry
    - Streamed generation and chat delivered record by record

    Every failed attempt (connection error, timeout, non-success status,
    or an error payload inside a success status) is retried after
    ``retry_delay`` until ``retry_attempts`` attempts have been made.
    With ``retry_client_errors=False`` a 4xx other than 429 is surfaced
    on the first attempt instead.

    Attributes:
        base_url: Base URL of the API (e.g., http://localhost:11434/api).
        model: Default model used when a call does not name one.
        timeout: Deadline for one attempt, in seconds.
        retry_attempts: Total attempts per single-shot call.
        retry_delay: Pause between attempts, in seconds.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        *,
        retry_client_errors: bool = True,
        stream_connect_timeout: float | None = None,
    ) -> None:
        """Initialize the Ollama client.

        Args:
            base_url: Base URL of the API, including the ``/api`` prefix.
            model: Default model name (e.g., granite3.2-vision).
            timeout: Per-attempt deadline in seconds (default: 30).
            retry_attempts: Total attempts for single-shot calls (default: 3).
            retry_delay: Seconds to wait between attempts (default: 1).
            retry_client_errors: Retry 4xx service faults too (default: True).
            stream_connect_timeout: Deadline for opening a stream; defaults
                to ``timeout``. Stream body reads are never deadline bound.
        """
        if retry_attempts < 1:
            msg = f"retry_attempts must be at least 1, got {retry_attempts}"
            raise ValueError(msg)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.retry_client_errors = retry_client_errors
        self.stream_connect_timeout = stream_connect_timeout or timeout
        self._http_client: httpx.AsyncClient | None = None
        self._streams: set[StreamHandle] = set()

    @classmethod
    def from_config(cls, config: EndpointConfig) -> Self:
        """Build a client from a resolved endpoint configuration."""
        return cls(
            base_url=config.base_url,
            model=config.model,
            timeout=config.timeout,
            retry_attempts=config.retry_attempts,
            retry_delay=config.retry_delay,
            retry_client_errors=config.retry_client_errors,
            stream_connect_timeout=config.stream_connect_timeout,
        )

    def url_for(self, path: str) -> str:
        """Get the full URL of an endpoint path."""
        return f"{self.base_url}/{path.lstrip('/')}"

    async def initialize(self) -> None:
        """Initialize the HTTP client with connection pooling."""
        if self._http_client is not None:
            return

        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Content-Type": "application/json"},
            limits=httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10,
            ),
        )
        logger.info(
            "OllamaClient initialized",
            base_url=self.base_url,
            model=self.model,
            timeout=self.timeout,
            retry_attempts=self.retry_attempts,
        )

    async def shutdown(self) -> None:
        """Cancel open streams, then close the HTTP client."""
        for handle in list(self._streams):
            handle.cancel()
        if self._streams:
            await asyncio.gather(
                *(handle.wait() for handle in self._streams),
                return_exceptions=True,
            )
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug("OllamaClient shutdown")

    async def __aenter__(self) -> Self:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # =========================================================================
    # Transport
    # =========================================================================

    def _should_retry(self, error: LLMError) -> bool:
        if isinstance(error, LLMRateLimitError):
            return True
        if isinstance(error, LLMResponseError) and error.is_client_error:
            return self.retry_client_errors
        return True

    async def _attempt(
        self,
        url: str,
        body: dict[str, Any],
        adapter: TypeAdapter[Any],
    ) -> R:
        """Run one exchange under the per-attempt deadline."""
        assert self._http_client is not None

        try:
            async with asyncio.timeout(self.timeout):
                response = await self._http_client.post(url, json=body)
        except (TimeoutError, httpx.TimeoutException) as e:
            msg = f"Ollama timeout after {self.timeout}s"
            raise LLMTimeoutError(msg) from e
        except httpx.RequestError as e:
            msg = f"Cannot connect to Ollama: {e}"
            raise LLMUnavailableError(msg) from e

        if response.status_code == 429:
            msg = "Ollama rate limit exceeded"
            raise LLMRateLimitError(msg, status_code=429)
        if not response.is_success:
            msg = f"API error: {response.text}"
            raise LLMResponseError(msg, status_code=response.status_code)

        try:
            reply = adapter.validate_json(response.content)
        except ValidationError as e:
            msg = f"Unexpected response from {url}: {e.error_count()} validation error(s)"
            raise LLMValidationError(msg, status_code=response.status_code) from e

        match reply:
            case OllamaErrorResponse(error=message):
                msg = f"API returned error: {message}"
                raise LLMResponseError(msg, status_code=response.status_code)
            case _:
                return reply

    async def _post(
        self,
        path: str,
        payload: BaseModel | dict[str, Any],
        response_model: type[R],
    ) -> R:
        """POST ``payload`` and parse the reply, retrying failed attempts."""
        await self.initialize()

        url = self.url_for(path)
        body = (
            payload.model_dump(exclude_none=True)
            if isinstance(payload, BaseModel)
            else payload
        )
        adapter = reply_adapter(response_model)

        for attempt in range(1, self.retry_attempts + 1):
            try:
                logger.debug(
                    "POST request",
                    url=url,
                    attempt=attempt,
                    max_attempts=self.retry_attempts,
                )
                return await self._attempt(url, body, adapter)
            except LLMError as e:
                if attempt >= self.retry_attempts or not self._should_retry(e):
                    logger.error(
                        "Ollama request failed",
                        url=url,
                        attempts=attempt,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    raise
                logger.warning(
                    "Ollama request failed, retrying",
                    url=url,
                    attempt=attempt,
                    max_attempts=self.retry_attempts,
                    delay=self.retry_delay,
                    error=str(e),
                )
                await asyncio.sleep(self.retry_delay)

        # Unreachable: the final attempt either returns or raises
        msg = "Maximum retry attempts reached"
        raise LLMUnavailableError(msg)

    async def _stream(
        self,
        path: str,
        payload: BaseModel,
        response_model: type[R],
        on_record: Callable[[R], None],
        on_done: Callable[[StreamOutcome], None],
    ) -> StreamHandle:
        await self.initialize()
        assert self._http_client is not None

        url = self.url_for(path)
        request = self._http_client.build_request(
            "POST",
            url,
            json=payload.model_dump(exclude_none=True),
            timeout=httpx.Timeout(self.stream_connect_timeout, read=None),
        )
        adapter = reply_adapter(response_model)

        def parse_line(line: str) -> R:
            match adapter.validate_json(line):
                case OllamaErrorResponse(error=message):
                    msg = f"API returned error in stream: {message}"
                    raise LLMStreamError(msg)
                case record:
                    return record

        def finish(outcome: StreamOutcome) -> None:
            self._streams.discard(handle)
            on_done(outcome)

        logger.debug("Streaming POST request", url=url)
        handle = open_stream(
            self._http_client,
            request,
            parse_line,
            on_record,
            finish,
            connect_timeout=self.stream_connect_timeout,
        )
        if not handle.done():
            self._streams.add(handle)
        return handle

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def list_models(self) -> OllamaListModelsResponse:
        """List models available to the local service."""
        return await self._post("tags", {}, OllamaListModelsResponse)

    def _generate_request(
        self,
        prompt: str,
        *,
        stream: bool,
        model: str | None,
        system: str | None,
        template: str | None,
        context: Sequence[int] | None,
        options: OptionsLike | None,
        format: str | dict[str, Any] | None,
    ) -> OllamaGenerateRequest:
        return OllamaGenerateRequest(
            model=model or self.model,
            prompt=prompt,
            system=system,
            template=template,
            context=list(context) if context is not None else None,
            stream=stream,
            options=OllamaOptions.model_validate(options) if options is not None else None,
            format=format,
        )

    def _chat_request(
        self,
        messages: Sequence[MessageLike],
        *,
        stream: bool,
        model: str | None,
        options: OptionsLike | None,
        format: str | dict[str, Any] | None,
    ) -> OllamaChatRequest:
        return OllamaChatRequest(
            model=model or self.model,
            messages=[OllamaChatMessage.model_validate(m) for m in messages],
            stream=stream,
            options=OllamaOptions.model_validate(options) if options is not None else None,
            format=format,
        )

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        system: str | None = None,
        template: str | None = None,
        context: Sequence[int] | None = None,
        options: OptionsLike | None = None,
        format: str | dict[str, Any] | None = None,
    ) -> OllamaGenerateResponse:
        """Generate a completion for a prompt.

        Args:
            prompt: Input prompt text.
            model: Model to use (defaults to the client's default model).
            system: Optional system prompt.
            template: Optional prompt template override.
            context: Context returned by a previous response.
            options: Generation parameters (temperature, num_predict, ...).
            format: ``"json"`` or a JSON schema to constrain output.

        Returns:
            The complete response record.

        Raises:
            LLMUnavailableError: If Ollama cannot be reached.
            LLMTimeoutError: If the final attempt timed out.
            LLMResponseError: If Ollama reported an error.
        """
        request = self._generate_request(
            prompt,
            stream=False,
            model=model,
            system=system,
            template=template,
            context=context,
            options=options,
            format=format,
        )
        return await self._post("generate", request, OllamaGenerateResponse)

    async def generate_stream(
        self,
        prompt: str,
        on_record: Callable[[OllamaGenerateResponse], None],
        on_done: Callable[[StreamOutcome], None] = _noop_done,
        *,
        model: str | None = None,
        system: str | None = None,
        template: str | None = None,
        context: Sequence[int] | None = None,
        options: OptionsLike | None = None,
        format: str | dict[str, Any] | None = None,
    ) -> StreamHandle:
        """Stream a completion for a prompt, one record per increment.

        Returns:
            Handle to cancel or await the session.
        """
        request = self._generate_request(
            prompt,
            stream=True,
            model=model,
            system=system,
            template=template,
            context=context,
            options=options,
            format=format,
        )
        return await self._stream(
            "generate", request, OllamaGenerateResponse, on_record, on_done
        )

    async def chat(
        self,
        messages: Sequence[MessageLike],
        *,
        model: str | None = None,
        options: OptionsLike | None = None,
        format: str | dict[str, Any] | None = None,
    ) -> OllamaChatResponse:
        """Send a chat request and wait for the complete reply.

        Raises:
            LLMUnavailableError: If Ollama cannot be reached.
            LLMTimeoutError: If the final attempt timed out.
            LLMResponseError: If Ollama reported an error.
        """
        request = self._chat_request(
            messages, stream=False, model=model, options=options, format=format
        )
        return await self._post("chat", request, OllamaChatResponse)

    async def chat_stream(
        self,
        messages: Sequence[MessageLike],
        on_record: Callable[[OllamaChatResponse], None],
        on_done: Callable[[StreamOutcome], None] = _noop_done,
        *,
        model: str | None = None,
        options: OptionsLike | None = None,
        format: str | dict[str, Any] | None = None,
    ) -> StreamHandle:
        """Stream a chat reply, one record per message fragment."""
        request = self._chat_request(
            messages, stream=True, model=model, options=options, format=format
        )
        return await self._stream(
            "chat", request, OllamaChatResponse, on_record, on_done
        )
