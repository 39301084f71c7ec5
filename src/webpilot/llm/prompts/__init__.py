"""LLM prompt templates."""

from webpilot.llm.prompts.base import BasePrompt
from webpilot.llm.prompts.browser_automation import BrowserAutomationPrompt


__all__ = [
    "BasePrompt",
    "BrowserAutomationPrompt",
]
