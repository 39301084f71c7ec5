"""Incremental ingestion of newline-delimited JSON response bodies.

The streaming endpoints answer with one JSON record per line. Transport
chunk boundaries are arbitrary: a record, or a single multi-byte character,
may be split across chunks. ``NDJSONDecoder`` reassembles complete lines
independent of chunking, ``ingest`` turns lines into records, and
``open_stream`` runs one exchange as a cancellable task.

Only the initial exchange (request sent, headers received) is deadline
bound. Body reads have no timeout and a failed session is never retried.
"""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeVar

import httpx

from webpilot.llm.exceptions import (
    LLMError,
    LLMStreamError,
    LLMTimeoutError,
    LLMUnavailableError,
)
from webpilot.observability.logging import get_logger, preview


logger = get_logger(__name__)


class SupportsDone(Protocol):
    done: bool


R = TypeVar("R", bound=SupportsDone)


class StreamOutcomeKind(StrEnum):
    """How a streaming session terminated."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"


@dataclass(frozen=True)
class StreamOutcome:
    """Terminal event delivered exactly once per session."""

    kind: StreamOutcomeKind
    records: int = 0
    error: LLMError | None = None


class NDJSONDecoder:
    """Reassemble byte chunks into complete, trimmed, non-empty lines.

    Decoding state is carried across chunks, so a character split between two
    chunks is held back until the chunk completing it arrives.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)()
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Decoded text after the last newline, not yet emitted."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return every line it completed, in order.

        Raises:
            UnicodeDecodeError: If the bytes are not valid in the encoding.
        """
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *complete, self._buffer = self._buffer.split("\n")
        return [line.strip() for line in complete if line.strip()]

    def flush(self) -> list[str]:
        """Finish decoding and return the residue as a final line, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        residue, self._buffer = self._buffer.strip(), ""
        return [residue] if residue else []


async def ingest(
    chunks: AsyncIterator[bytes],
    parse_line: Callable[[str], R],
    on_record: Callable[[R], None],
    *,
    cancelled: asyncio.Event | None = None,
) -> int:
    """Deliver every record in ``chunks`` to ``on_record``.

    Lines that ``parse_line`` rejects with ``ValueError`` (which includes
    pydantic validation errors) are logged and skipped. Reading stops at the
    first record flagged ``done``, at the end of the byte stream, or once
    ``cancelled`` is set; the cancellation flag is checked before every read
    and before every delivery.

    Returns:
        Number of records delivered.
    """
    cancelled = cancelled or asyncio.Event()
    decoder = NDJSONDecoder()
    delivered = 0

    def deliver(lines: list[str]) -> bool:
        nonlocal delivered
        for line in lines:
            if cancelled.is_set():
                return True
            try:
                record = parse_line(line)
            except ValueError as e:
                logger.warning(
                    "Skipping malformed stream line",
                    line=preview(line),
                    error=str(e),
                )
                continue
            on_record(record)
            delivered += 1
            if record.done:
                return True
        return False

    iterator = aiter(chunks)
    while not cancelled.is_set():
        try:
            chunk = await anext(iterator)
        except StopAsyncIteration:
            deliver(decoder.flush())
            break
        if deliver(decoder.feed(chunk)):
            break

    return delivered


class StreamHandle:
    """Cancellation handle and completion future for one streaming session."""

    def __init__(self, task: asyncio.Task[StreamOutcome], cancelled: asyncio.Event) -> None:
        self._task = task
        self._cancelled = cancelled

    def cancel(self) -> None:
        """Abort the exchange. Safe to call repeatedly or after completion."""
        if self._task.done() or self._cancelled.is_set():
            return
        logger.debug("Cancelling stream request")
        self._cancelled.set()
        self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> StreamOutcome:
        """Wait for the session to terminate and return its outcome."""
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled() and self._cancelled.is_set():
                return StreamOutcome(StreamOutcomeKind.CANCELLED)
            raise


def open_stream(
    http_client: httpx.AsyncClient,
    request: httpx.Request,
    parse_line: Callable[[str], R],
    on_record: Callable[[R], None],
    on_done: Callable[[StreamOutcome], None],
    *,
    connect_timeout: float | None = None,
) -> StreamHandle:
    """Start a streaming exchange on the running event loop.

    ``on_record`` is called for each record in arrival order. ``on_done`` is
    called exactly once whether the session completed, failed, or was
    cancelled. Must be called from within a running event loop.
    """
    cancelled = asyncio.Event()
    finished = False
    records = 0

    def finish(kind: StreamOutcomeKind, error: LLMError | None = None) -> StreamOutcome:
        nonlocal finished
        outcome = StreamOutcome(kind, records, error)
        if not finished:
            finished = True
            on_done(outcome)
        return outcome

    def count(record: R) -> None:
        nonlocal records
        records += 1
        on_record(record)

    async def exchange() -> None:
        try:
            async with asyncio.timeout(connect_timeout):
                response = await http_client.send(request, stream=True)
        except (TimeoutError, httpx.TimeoutException) as e:
            msg = f"Stream connection timed out after {connect_timeout}s"
            raise LLMTimeoutError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Cannot connect to Ollama: {e}"
            raise LLMUnavailableError(msg) from e

        try:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                msg = f"API error [{response.status_code}]: {body}"
                raise LLMStreamError(msg)
            await ingest(response.aiter_bytes(), parse_line, count, cancelled=cancelled)
        except httpx.HTTPError as e:
            msg = f"Network error in stream: {e}"
            raise LLMStreamError(msg) from e
        except UnicodeDecodeError as e:
            msg = f"Undecodable stream body: {e}"
            raise LLMStreamError(msg) from e
        finally:
            await response.aclose()

    async def run() -> StreamOutcome:
        try:
            await exchange()
        except asyncio.CancelledError:
            finish(StreamOutcomeKind.CANCELLED)
            if not cancelled.is_set():
                # Cancelled from outside the handle, e.g. loop shutdown
                raise
        except LLMError as e:
            logger.error("Stream error", error=str(e), url=str(request.url))
            return finish(StreamOutcomeKind.ERRORED, e)
        except Exception as e:
            logger.exception("Unexpected failure in stream", url=str(request.url))
            error = LLMStreamError(f"Unexpected failure in stream: {e}")
            error.__cause__ = e
            return finish(StreamOutcomeKind.ERRORED, error)

        if cancelled.is_set():
            return finish(StreamOutcomeKind.CANCELLED)
        return finish(StreamOutcomeKind.COMPLETED)

    def on_task_done(task: asyncio.Task[StreamOutcome]) -> None:
        # A task cancelled before its first step never enters run()
        if task.cancelled():
            finish(StreamOutcomeKind.CANCELLED)

    task = asyncio.get_running_loop().create_task(run())
    task.add_done_callback(on_task_done)
    return StreamHandle(task, cancelled)
