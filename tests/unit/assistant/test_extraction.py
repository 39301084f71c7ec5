"""Unit tests for structured payload extraction.

Tests cover:
- Fenced and bare JSON objects
- Brace scanning with strings, escapes and unclosed spans
- Mapping browser_actions to tool calls
"""

from __future__ import annotations

import pytest

from webpilot.assistant.extraction import (
    build_query_result,
    extract_commands,
    extract_structured,
    iter_brace_spans,
)
from webpilot.assistant.models import ToolCall
from tests.fixtures.llm_responses import NAVIGATE_PLAN_TEXT


pytestmark = pytest.mark.unit


class TestIterBraceSpans:
    """Tests for the balanced brace scanner."""

    def test_top_level_spans_in_order(self) -> None:
        """Should yield each top-level object, nested ones included whole."""
        text = 'a {"x": {"y": 1}} b {"z": 2}'

        assert list(iter_brace_spans(text)) == ['{"x": {"y": 1}}', '{"z": 2}']

    def test_braces_inside_strings_ignored(self) -> None:
        """Should not end a span on a brace inside a string literal."""
        text = 'prefix {"text": "a } b { c"} suffix'

        assert list(iter_brace_spans(text)) == ['{"text": "a } b { c"}']

    def test_escaped_quote_inside_string(self) -> None:
        """Should honor escaped quotes while tracking strings."""
        text = r'{"text": "say \"}\" now"}'

        assert list(iter_brace_spans(text)) == [text]

    def test_unclosed_brace_ends_scan(self) -> None:
        """Should not yield objects nested inside an unclosed brace."""
        text = '{"browser_actions": [{"action": "navigate", "parameters": {}}'

        assert list(iter_brace_spans(text)) == []

    def test_complete_span_before_unclosed_brace(self) -> None:
        text = '{"a": 1} and then {"b": '

        assert list(iter_brace_spans(text)) == ['{"a": 1}']

    def test_complete_text_skips_stray_brace(self) -> None:
        """Should resume after an unclosed brace once the text is final."""
        text = 'Selector `div {` first, then {"a": 1}'

        assert list(iter_brace_spans(text)) == []
        assert list(iter_brace_spans(text, complete=True)) == ['{"a": 1}']

    def test_no_braces(self) -> None:
        assert list(iter_brace_spans("plain text")) == []


class TestExtractStructured:
    """Tests for extract_structured."""

    def test_fenced_json_block(self) -> None:
        """Should parse the body of a json code fence."""
        structured = extract_structured(NAVIGATE_PLAN_TEXT)

        assert structured is not None
        assert structured["explanation"] == "Opens example.com"

    def test_fenced_block_preferred_over_earlier_bare_object(self) -> None:
        """Should try fenced blocks before bare objects."""
        text = 'Note {"a": 1}\n```json\n{"b": 2}\n```'

        assert extract_structured(text) == {"b": 2}

    def test_fence_tag_case_insensitive(self) -> None:
        assert extract_structured('```JSON\n{"a": 1}\n```') == {"a": 1}

    def test_bare_object_in_prose(self) -> None:
        """Should find an object embedded in surrounding text."""
        text = 'Sure! {"browser_actions": []} Let me know.'

        assert extract_structured(text) == {"browser_actions": []}

    def test_whole_text_is_json(self) -> None:
        assert extract_structured('{"a": [1, 2, {"b": null}]}') == {"a": [1, 2, {"b": None}]}

    def test_invalid_fence_falls_back_to_bare_object(self) -> None:
        """Should move on when a fenced block does not parse."""
        text = '```json\n{not valid}\n```\nthen {"ok": true}'

        assert extract_structured(text) == {"ok": True}

    def test_first_parseable_object_wins(self) -> None:
        """Should skip spans that are not JSON."""
        text = "{oops} and {'single': 1} and {\"a\": 1} and {\"b\": 2}"

        assert extract_structured(text) == {"a": 1}

    def test_array_payload_ignored(self) -> None:
        """Should only accept JSON objects."""
        assert extract_structured('```json\n[1, 2]\n```') is None

    def test_incomplete_payload(self) -> None:
        """Should miss quietly on a payload still being streamed."""
        assert extract_structured('{"browser_actions": [{"action": "nav') is None

    def test_no_payload(self) -> None:
        assert extract_structured("The capital of France is Paris.") is None

    @pytest.mark.parametrize(
        "text",
        [NAVIGATE_PLAN_TEXT, 'x {"a": "}"} y', '{"browser_actions": [', "plain"],
    )
    def test_repeated_extraction_is_stable(self, text: str) -> None:
        """Should give the same result every time for unchanged text."""
        assert extract_structured(text) == extract_structured(text)


class TestExtractCommands:
    """Tests for extract_commands."""

    def test_actions_mapped_in_order(self) -> None:
        """Should map each action entry to a tool call."""
        structured = {
            "browser_actions": [
                {"action": "navigate", "parameters": {"url": "https://example.com"}},
                {"action": "click", "parameters": {"selector": ".btn"}},
            ]
        }

        assert extract_commands(structured) == [
            ToolCall(name="navigate", parameters={"url": "https://example.com"}),
            ToolCall(name="click", parameters={"selector": ".btn"}),
        ]

    def test_missing_parameters_default_to_empty(self) -> None:
        assert extract_commands({"browser_actions": [{"action": "screenshot"}]}) == [
            ToolCall(name="screenshot", parameters={})
        ]

    def test_malformed_entries_skipped(self) -> None:
        """Should drop entries without a usable action name or parameters."""
        structured = {
            "browser_actions": [
                "navigate",
                {"parameters": {"url": "x"}},
                {"action": ""},
                {"action": "click", "parameters": "not a mapping"},
                {"action": "wait", "parameters": {"milliseconds": 500}},
            ]
        }

        assert extract_commands(structured) == [
            ToolCall(name="wait", parameters={"milliseconds": 500})
        ]

    @pytest.mark.parametrize(
        "structured",
        [
            {},
            {"browser_actions": []},
            {"browser_actions": "navigate"},
            {"browser_actions": [{"nothing": True}]},
            {"actions": [{"action": "navigate"}]},
        ],
    )
    def test_no_commands(self, structured: dict[str, object]) -> None:
        """Should return None when no entry qualifies."""
        assert extract_commands(structured) is None


class TestBuildQueryResult:
    """Tests for build_query_result."""

    def test_with_plan(self) -> None:
        result = build_query_result(NAVIGATE_PLAN_TEXT)

        assert result.ok
        assert result.text == NAVIGATE_PLAN_TEXT
        assert result.structured_output is not None
        assert result.tool_calls == [
            ToolCall(name="navigate", parameters={"url": "https://example.com"})
        ]

    def test_structured_without_actions(self) -> None:
        """Should keep structured output even when it has no actions."""
        result = build_query_result('{"answer": 42}')

        assert result.structured_output == {"answer": 42}
        assert result.tool_calls is None

    def test_payload_after_stray_brace_in_final_text(self) -> None:
        """Should find the payload behind prose with an unbalanced brace."""
        text = (
            'Selector `div {` first, then {"browser_actions": '
            '[{"action": "click", "parameters": {"selector": "div"}}]}'
        )

        result = build_query_result(text)

        assert result.structured_output is not None
        assert result.tool_calls == [ToolCall(name="click", parameters={"selector": "div"})]

    def test_plain_text(self) -> None:
        result = build_query_result("Paris.")

        assert result.text == "Paris."
        assert result.structured_output is None
        assert result.tool_calls is None
        assert result.error is None
