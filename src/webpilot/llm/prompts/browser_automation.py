"""Browser automation prompt.

Asks the model to answer conversationally, or, when the request describes
browser work, to embed a JSON plan of ``browser_actions``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from .base import BasePrompt


class BrowserAutomationPrompt(BasePrompt):
    """Prompt turning a natural-language request into browser actions.

    Example input:
        query="Navigate to https://example.com"

    Example output:
        {
            "browser_actions": [
                {"action": "navigate", "parameters": {"url": "https://example.com"}}
            ],
            "explanation": "Opens example.com"
        }
    """

    system_prompt: ClassVar[str] = """\
You are an AI assistant that can help users automate browser tasks.
You can analyze natural language requests and convert them into structured commands.
When you identify an action that should be performed in a browser, respond with JSON
formatted output that specifies the browser actions to take.

For browser automation commands, your response should be valid JSON with this structure:
{
  "browser_actions": [
    {
      "action": "navigate" | "click" | "type" | "select" | "screenshot" | "wait" | "extract",
      "parameters": {
        // Parameters specific to the action type
      }
    }
  ],
  "explanation": "Human-readable explanation of what these actions will accomplish"
}

Example actions:
1. Navigate: { "action": "navigate", "parameters": { "url": "https://example.com" } }
2. Click: { "action": "click", "parameters": { "selector": ".button-class" } }
3. Type: { "action": "type", "parameters": { "selector": "#input-id", "text": "Hello world" } }
4. Select: { "action": "select", "parameters": { "selector": "#dropdown", "value": "option1" } }
5. Screenshot: { "action": "screenshot", "parameters": { "filename": "screenshot.png" } }
6. Wait: { "action": "wait", "parameters": { "milliseconds": 1000 } }
7. Extract: { "action": "extract", "parameters": { "selector": ".results", "attribute": "textContent" } }

For non-automation requests, respond conversationally without the JSON structure."""

    def __init__(self, temperature: float | None = None) -> None:
        self._temperature = temperature

    def format(self, **kwargs: Any) -> str:
        query = kwargs.get("query")
        if not isinstance(query, str) or not query:
            msg = "query is required"
            raise ValueError(msg)
        return query

    def get_options(self) -> dict[str, Any] | None:
        if self._temperature is None:
            return super().get_options()
        return {**(super().get_options() or {}), "temperature": self._temperature}
