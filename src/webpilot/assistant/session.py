"""Per-call state of a streaming query.

A ``StreamSession`` owns everything one streaming query mutates: the
accumulated text, the last extraction delivered to the caller, and the
lifecycle state. It is created when the query starts and dropped once its
terminal callback has fired; nothing in it is shared between queries.

State machine::

    IDLE -> REQUESTING -> STREAMING -> COMPLETED | CANCELLED | ERRORED
    IDLE / REQUESTING -> COMPLETED | CANCELLED | ERRORED

No transition leaves a terminal state.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from webpilot.assistant.extraction import (
    build_query_result,
    extract_commands,
    extract_structured,
)
from webpilot.assistant.models import (
    BACKEND_ERROR_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
    QueryResult,
    StreamCallbacks,
    StreamState,
    ToolCall,
)
from webpilot.llm.client.streaming import StreamOutcome, StreamOutcomeKind
from webpilot.llm.exceptions import LLMError, LLMStreamError
from webpilot.observability.logging import get_logger


if TYPE_CHECKING:
    from webpilot.llm.models import StreamRecord


logger = get_logger(__name__)

_TRANSITIONS: dict[StreamState, frozenset[StreamState]] = {
    StreamState.IDLE: frozenset(
        {StreamState.REQUESTING, StreamState.ERRORED, StreamState.CANCELLED}
    ),
    StreamState.REQUESTING: frozenset(
        {
            StreamState.STREAMING,
            StreamState.COMPLETED,
            StreamState.CANCELLED,
            StreamState.ERRORED,
        }
    ),
    StreamState.STREAMING: frozenset(
        {StreamState.COMPLETED, StreamState.CANCELLED, StreamState.ERRORED}
    ),
}

_OUTCOME_STATES = {
    StreamOutcomeKind.COMPLETED: StreamState.COMPLETED,
    StreamOutcomeKind.CANCELLED: StreamState.CANCELLED,
    StreamOutcomeKind.ERRORED: StreamState.ERRORED,
}


class SessionStateError(RuntimeError):
    """Raised on a transition the session state machine does not allow."""


def _new_session_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class StreamSession:
    """Accumulator and lifecycle for one streaming query."""

    callbacks: StreamCallbacks = field(default_factory=StreamCallbacks)
    session_id: str = field(default_factory=_new_session_id)
    state: StreamState = StreamState.IDLE
    text: str = ""
    structured_output: dict[str, Any] | None = None
    tool_calls: list[ToolCall] | None = None
    result: QueryResult | None = None

    @property
    def finished(self) -> bool:
        """True once the terminal callback has fired."""
        return self.result is not None

    def transition(self, target: StreamState) -> None:
        if target not in _TRANSITIONS.get(self.state, frozenset()):
            msg = f"Invalid stream session transition {self.state} -> {target}"
            raise SessionStateError(msg)
        logger.debug(
            "Stream session transition",
            session_id=self.session_id,
            source=self.state,
            target=target,
        )
        self.state = target

    def start(self) -> None:
        self.transition(StreamState.REQUESTING)

    # =========================================================================
    # Stream events
    # =========================================================================

    def on_record(self, record: StreamRecord) -> None:
        """Append a record's fragment and re-run extraction on the whole text.

        Extraction runs over the full accumulated text, so a payload split
        across several records is recognized once it is complete.
        """
        if self.state.is_terminal:
            return
        if self.state is StreamState.REQUESTING:
            self.transition(StreamState.STREAMING)

        fragment = record.text
        if not fragment:
            return
        self.text += fragment
        self._emit(self.callbacks.on_text_update, self.text)

        structured = extract_structured(self.text)
        if structured is None or structured == self.structured_output:
            return
        self.structured_output = structured
        self._emit(self.callbacks.on_structured_output_update, structured)

        self.tool_calls = extract_commands(structured)
        if self.tool_calls:
            self._emit(self.callbacks.on_tool_calls_update, self.tool_calls)

    def on_done(self, outcome: StreamOutcome) -> None:
        """Terminal transport event: run the final pass and notify once."""
        if outcome.kind is StreamOutcomeKind.ERRORED:
            error = outcome.error or LLMStreamError("Stream failed")
            self.fail(error)
            return
        if self.finished:
            return

        self.transition(_OUTCOME_STATES[outcome.kind])
        result = build_query_result(self.text)
        logger.info(
            "AI streaming query completed",
            session_id=self.session_id,
            state=self.state,
            records=outcome.records,
            has_structured_output=result.structured_output is not None,
            has_tool_calls=result.tool_calls is not None,
        )
        self._complete(result)

    def fail(self, error: Exception) -> None:
        """Terminate with ``on_error`` followed by a failure result."""
        if self.finished:
            return
        self.transition(StreamState.ERRORED)
        logger.error(
            "AI streaming query failed",
            session_id=self.session_id,
            error_type=type(error).__name__,
            error=str(error),
        )
        message = BACKEND_ERROR_MESSAGE if isinstance(error, LLMError) else UNEXPECTED_ERROR_MESSAGE
        self._emit(self.callbacks.on_error, error)
        self._complete(QueryResult.failure(message, error))

    # =========================================================================
    # Callback plumbing
    # =========================================================================

    def _complete(self, result: QueryResult) -> None:
        self.result = result
        self._emit(self.callbacks.on_complete, result)

    def _emit(self, callback: Callable[..., None] | None, *args: Any) -> None:
        """Invoke a caller callback; a failing callback must not break sequencing."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(
                "Stream callback raised",
                session_id=self.session_id,
                callback=getattr(callback, "__name__", repr(callback)),
            )
