"""Browser automation assistant built on the Ollama client."""

from webpilot.assistant.extraction import (
    build_query_result,
    extract_commands,
    extract_structured,
)
from webpilot.assistant.models import QueryResult, StreamCallbacks, StreamState, ToolCall
from webpilot.assistant.preprocessing import preprocess_query
from webpilot.assistant.service import AIService, StreamCanceller
from webpilot.assistant.session import SessionStateError, StreamSession


__all__ = [
    "AIService",
    "QueryResult",
    "SessionStateError",
    "StreamCallbacks",
    "StreamCanceller",
    "StreamSession",
    "StreamState",
    "ToolCall",
    "build_query_result",
    "extract_commands",
    "extract_structured",
    "preprocess_query",
]
