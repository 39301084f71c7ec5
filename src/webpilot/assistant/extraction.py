"""Recognition of structured payloads embedded in free-text model output.

Candidates are tried in order and the first one that parses to a JSON object
wins:

1. The body of each fenced code block tagged ``json``.
2. Each top-level balanced ``{...}`` span.

Spans are found with a scanner that tracks nesting depth and string-literal
state, so braces inside strings (``{"text": "a } b"}``) do not end a span
early. A miss is a normal outcome and yields ``None``, never an error.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from typing import Any

import orjson
from pydantic import BaseModel, Field, ValidationError

from webpilot.assistant.models import QueryResult, ToolCall


ACTIONS_FIELD = "browser_actions"

_FENCED_JSON = re.compile(r"```json[ \t]*\r?\n?(.*?)```", re.DOTALL | re.IGNORECASE)


class _ActionEntry(BaseModel):
    action: str = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)


def _span_end(text: str, start: int) -> int | None:
    """Index of the brace closing the one at ``start``, or None if unclosed."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def iter_brace_spans(text: str, *, complete: bool = False) -> Iterator[str]:
    """Yield top-level balanced ``{...}`` spans in order of appearance.

    Scanning ends at the first unclosed brace: everything after it is nested
    inside it, so a payload still streaming in never yields its inner objects.
    When ``complete`` is set no more text can arrive, so an unclosed brace is
    treated as stray prose and scanning resumes at the next brace.
    """
    position = text.find("{")
    while position != -1:
        end = _span_end(text, position)
        if end is None:
            if not complete:
                return
            position = text.find("{", position + 1)
            continue
        yield text[position : end + 1]
        position = text.find("{", end + 1)


def _candidates(text: str, complete: bool) -> Iterator[str]:
    for match in _FENCED_JSON.finditer(text):
        yield match.group(1).strip()
    yield from iter_brace_spans(text, complete=complete)


def extract_structured(text: str, *, complete: bool = False) -> dict[str, Any] | None:
    """Return the first embedded JSON object in ``text``, or None.

    Pass ``complete=True`` once ``text`` is final.
    """
    for candidate in _candidates(text, complete):
        try:
            parsed = orjson.loads(candidate)
        except orjson.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_commands(structured: Mapping[str, Any]) -> list[ToolCall] | None:
    """Map the ``browser_actions`` list to tool calls, in source order.

    Entries without a non-empty ``action`` name or with non-mapping
    ``parameters`` are skipped. Returns None when no entry qualifies.
    """
    actions = structured.get(ACTIONS_FIELD)
    if not isinstance(actions, list):
        return None

    tool_calls: list[ToolCall] = []
    for entry in actions:
        try:
            action = _ActionEntry.model_validate(entry)
        except ValidationError:
            continue
        tool_calls.append(ToolCall(name=action.action, parameters=action.parameters))
    return tool_calls or None


def build_query_result(text: str) -> QueryResult:
    """Run extraction over the full model text and wrap it as a result."""
    structured = extract_structured(text, complete=True)
    tool_calls = extract_commands(structured) if structured is not None else None
    return QueryResult(text=text, structured_output=structured, tool_calls=tool_calls)
