"""LLM client implementations."""

from webpilot.llm.client.ollama import OllamaClient
from webpilot.llm.client.protocol import LLMClientProtocol
from webpilot.llm.client.streaming import (
    NDJSONDecoder,
    StreamHandle,
    StreamOutcome,
    StreamOutcomeKind,
    ingest,
    open_stream,
)


__all__ = [
    "LLMClientProtocol",
    "NDJSONDecoder",
    "OllamaClient",
    "StreamHandle",
    "StreamOutcome",
    "StreamOutcomeKind",
    "ingest",
    "open_stream",
]
