"""Canned Ollama responses for testing.

Shapes follow real Ollama ``/chat``, ``/generate`` and ``/tags`` replies so
tests can replay them without a running model.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx
import orjson


def create_ollama_generate_response(
    content: str,
    model: str = "granite3.2-vision",
    *,
    done: bool = True,
    prompt_tokens: int = 10,
    completion_tokens: int = 5,
) -> dict[str, Any]:
    """Factory for mock ``/generate`` records."""
    record: dict[str, Any] = {
        "model": model,
        "created_at": "2024-01-15T10:30:00Z",
        "response": content,
        "done": done,
    }
    if done:
        record.update(
            prompt_eval_count=prompt_tokens,
            eval_count=completion_tokens,
            total_duration=8500000000,
            load_duration=1000000000,
            prompt_eval_duration=2000000000,
            eval_duration=5000000000,
        )
    return record


def create_ollama_chat_response(
    content: str,
    model: str = "granite3.2-vision",
    *,
    done: bool = True,
) -> dict[str, Any]:
    """Factory for mock ``/chat`` records."""
    record: dict[str, Any] = {
        "model": model,
        "created_at": "2024-01-15T10:30:00Z",
        "message": {"role": "assistant", "content": content},
        "done": done,
    }
    if done:
        record.update(prompt_eval_count=10, eval_count=5, total_duration=8500000000)
    return record


def chat_stream_records(*fragments: str) -> list[dict[str, Any]]:
    """One chat record per fragment followed by a terminal ``done`` record."""
    records = [create_ollama_chat_response(f, done=False) for f in fragments]
    records.append(create_ollama_chat_response("", done=True))
    return records


def ndjson(records: Iterable[dict[str, Any]]) -> bytes:
    """Encode records as a newline-delimited JSON body."""
    return b"".join(orjson.dumps(record) + b"\n" for record in records)


def split_every(data: bytes, size: int) -> list[bytes]:
    """Split a body into fixed-size chunks."""
    return [data[i : i + size] for i in range(0, len(data), size)]


class ChunkedStream(httpx.AsyncByteStream):
    """Response body replayed with explicit chunk boundaries."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self.chunks = list(chunks)
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class DroppedStream(ChunkedStream):
    """Response body that sends ``chunks`` and then loses the connection."""

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        raise httpx.ReadError("connection reset")


class HangingStream(httpx.AsyncByteStream):
    """Response body that sends ``chunks`` and then never finishes."""

    def __init__(self, chunks: Iterable[bytes] = ()) -> None:
        self.chunks = list(chunks)
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


TAGS_RESPONSE: dict[str, Any] = {
    "models": [
        {
            "name": "granite3.2-vision:latest",
            "model": "granite3.2-vision:latest",
            "modified_at": "2025-03-01T12:00:00.000000Z",
            "size": 2437852465,
            "digest": "3be41a661804",
            "details": {
                "format": "gguf",
                "family": "granite",
                "families": ["granite", "clip"],
                "parameter_size": "2.5B",
                "quantization_level": "Q4_K_M",
            },
        }
    ]
}


NAVIGATE_PLAN_TEXT = """\
I'll open that page for you.

```json
{
  "browser_actions": [
    {"action": "navigate", "parameters": {"url": "https://example.com"}}
  ],
  "explanation": "Opens example.com"
}
```
"""
