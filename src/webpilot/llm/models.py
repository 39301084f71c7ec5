"""Wire models for the Ollama HTTP API.

Request bodies for ``/generate`` and ``/chat``, response records for both
(single-shot and streamed), the ``/tags`` model catalog, and the
``{"error": ...}`` payload any endpoint may return.

Bodies are never probed for an ``error`` key by callers. ``reply_adapter``
builds a discriminated union of the error payload and the expected response,
so parsing yields either an ``OllamaErrorResponse`` or a response model.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


R = TypeVar("R", bound=BaseModel)

ChatRole = Literal["system", "user", "assistant", "tool"]


# =============================================================================
# Requests
# =============================================================================


class OllamaOptions(BaseModel):
    """Generation parameters passed through as ``options``."""

    model_config = ConfigDict(extra="allow")

    num_predict: int | None = Field(default=None, description="Max tokens to generate")
    temperature: float | None = Field(default=None, description="Sampling temperature")
    top_p: float | None = None
    top_k: int | None = None
    stop: list[str] | None = Field(default=None, description="Stop sequences")
    seed: int | None = None


class OllamaChatMessage(BaseModel):
    """Single role-tagged chat message."""

    role: ChatRole = Field(..., description="Message role: system, user, or assistant")
    content: str = Field(..., description="Message content")
    images: list[str] | None = Field(
        default=None,
        description="Base64-encoded images for multimodal models",
    )


class OllamaGenerateRequest(BaseModel):
    """Request body for the ``/generate`` endpoint."""

    model: str = Field(..., description="Model name (e.g., 'granite3.2-vision')")
    prompt: str = Field(..., description="Input prompt text")
    system: str | None = Field(default=None, description="System prompt override")
    template: str | None = Field(default=None, description="Prompt template override")
    context: list[int] | None = Field(
        default=None,
        description="Context from a previous response for conversation",
    )
    stream: bool = Field(default=False, description="Whether to stream response")
    options: OllamaOptions | None = None
    format: str | dict[str, Any] | None = Field(
        default=None,
        description="Response format: 'json' or a JSON schema",
    )


class OllamaChatRequest(BaseModel):
    """Request body for the ``/chat`` endpoint."""

    model: str = Field(..., description="Model name")
    messages: list[OllamaChatMessage] = Field(..., description="Ordered chat messages")
    stream: bool = Field(default=False, description="Whether to stream response")
    format: str | dict[str, Any] | None = None
    options: OllamaOptions | None = None


# =============================================================================
# Responses
# =============================================================================


class OllamaTimings(BaseModel):
    """Performance counters reported on completed responses (nanoseconds)."""

    total_duration: int | None = None
    load_duration: int | None = None
    prompt_eval_count: int | None = Field(default=None, description="Prompt tokens")
    prompt_eval_duration: int | None = None
    eval_count: int | None = Field(default=None, description="Generated tokens")
    eval_duration: int | None = None


class OllamaGenerateResponse(OllamaTimings):
    """One ``/generate`` record; a full reply or a streamed increment."""

    model: str = Field(..., description="Model that generated response")
    created_at: str = Field(..., description="Timestamp of generation")
    response: str = Field(default="", description="Generated text (or fragment)")
    done: bool = Field(..., description="Whether generation is complete")
    context: list[int] | None = None

    @property
    def text(self) -> str:
        return self.response


class OllamaChatResponse(OllamaTimings):
    """One ``/chat`` record; a full reply or a streamed increment."""

    model: str
    created_at: str
    message: OllamaChatMessage | None = None
    done: bool

    @property
    def text(self) -> str:
        return self.message.content if self.message else ""


class OllamaModelDetails(BaseModel):
    """Model family and quantization details from ``/tags``."""

    format: str
    family: str
    families: list[str] | None = None
    parameter_size: str
    quantization_level: str | None = None


class OllamaModelInfo(BaseModel):
    """One entry of the local model catalog."""

    name: str
    model: str
    modified_at: str
    size: int
    digest: str
    details: OllamaModelDetails


class OllamaListModelsResponse(BaseModel):
    """Response from the ``/tags`` endpoint."""

    models: list[OllamaModelInfo] = Field(default_factory=list)


class OllamaErrorResponse(BaseModel):
    """Error payload any endpoint may return, even with a 2xx status."""

    error: str


StreamRecord = OllamaGenerateResponse | OllamaChatResponse


# =============================================================================
# Discriminated parsing
# =============================================================================


def _reply_kind(value: Any) -> str:
    if isinstance(value, OllamaErrorResponse):
        return "error"
    if isinstance(value, dict) and isinstance(value.get("error"), str):
        return "error"
    return "ok"


@lru_cache
def reply_adapter(response_model: type[R]) -> TypeAdapter[Any]:
    """Return an adapter parsing a body into ``OllamaErrorResponse | R``.

    Example:
        ```python
        match reply_adapter(OllamaChatResponse).validate_json(body):
            case OllamaErrorResponse(error=message):
                ...
            case OllamaChatResponse() as record:
                ...
        ```
    """
    return TypeAdapter(
        Annotated[
            Union[  # noqa: UP007
                Annotated[OllamaErrorResponse, Tag("error")],
                Annotated[response_model, Tag("ok")],
            ],
            Discriminator(_reply_kind),
        ]
    )
