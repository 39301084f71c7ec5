"""Caller-facing result and callback types for AI queries."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


BACKEND_ERROR_MESSAGE = "I encountered an error communicating with my AI backend."
UNEXPECTED_ERROR_MESSAGE = "I encountered an unexpected error."


class ToolCall(BaseModel):
    """One named, parameterized command recognized in model output."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Action name, e.g. 'navigate'")
    parameters: dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    """Terminal value of a query, single-shot or streamed.

    ``structured_output`` and ``tool_calls`` are present only when a
    structured payload was recognized. ``error`` is set only on failure, in
    which case ``text`` holds a user-facing fallback message.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    structured_output: dict[str, Any] | None = None
    tool_calls: list[ToolCall] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, error: BaseException) -> QueryResult:
        return cls(text=message, error=str(error) or type(error).__name__)


OnTextUpdate = Callable[[str], None]
OnStructuredOutputUpdate = Callable[[dict[str, Any]], None]
OnToolCallsUpdate = Callable[[list[ToolCall]], None]
OnComplete = Callable[[QueryResult], None]
OnError = Callable[[Exception], None]


@dataclass(frozen=True)
class StreamCallbacks:
    """Optional callbacks for a streaming query.

    ``on_complete`` fires exactly once per session. ``on_error`` fires at most
    once, immediately before ``on_complete``, when the session failed.
    """

    on_text_update: OnTextUpdate | None = None
    on_structured_output_update: OnStructuredOutputUpdate | None = None
    on_tool_calls_update: OnToolCallsUpdate | None = None
    on_complete: OnComplete | None = None
    on_error: OnError | None = None


class StreamState(StrEnum):
    """Lifecycle of a streaming session."""

    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {StreamState.COMPLETED, StreamState.CANCELLED, StreamState.ERRORED}
)
