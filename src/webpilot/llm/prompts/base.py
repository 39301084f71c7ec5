"""Base class for LLM prompts.

Provides a standardized interface for defining prompts with a fixed system
instruction and model-specific generation options.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from webpilot.llm.models import OllamaChatMessage


class BasePrompt(ABC):
    """Base class for all chat prompts.

    Example:
        ```python
        class SummaryPrompt(BasePrompt):
            system_prompt = "You summarize web pages."

            def format(self, **kwargs: Any) -> str:
                return f"Summarize:\\n\\n{kwargs['page']}"
        ```
    """

    system_prompt: ClassVar[str]
    """System instruction sent ahead of every user message."""

    temperature: ClassVar[float | None] = None
    """Sampling temperature (None = model default)."""

    max_tokens: ClassVar[int | None] = None
    """Maximum tokens to generate (None = model default)."""

    @abstractmethod
    def format(self, **kwargs: Any) -> str:
        """Render the user message from input variables.

        Raises:
            ValueError: If required variables are missing.
        """
        ...

    @property
    def name(self) -> str:
        """Prompt identifier for logging."""
        return self.__class__.__name__

    def build_messages(self, **kwargs: Any) -> list[OllamaChatMessage]:
        """Return the system instruction followed by the rendered user message."""
        return [
            OllamaChatMessage(role="system", content=self.system_prompt),
            OllamaChatMessage(role="user", content=self.format(**kwargs)),
        ]

    def get_options(self) -> dict[str, Any] | None:
        """Model options for this prompt, or None when all are defaults."""
        options: dict[str, Any] = {}
        if self.temperature is not None:
            options["temperature"] = self.temperature
        if self.max_tokens is not None:
            options["num_predict"] = self.max_tokens
        return options or None
