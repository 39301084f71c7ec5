"""Query normalization applied before a query reaches the model.

The model follows explicit verbs more reliably, so bare domains are turned
into addresses and bare addresses into navigation instructions.
"""

from __future__ import annotations

import re


_BARE_DOMAIN = re.compile(r"[\w-]+(\.[\w-]+)+", re.ASCII)
_NAVIGATION_VERBS = ("go to", "navigate")


def preprocess_query(query: str) -> str:
    """Normalize a user query.

    Examples:
        >>> preprocess_query("  example.com ")
        'Navigate to https://example.com'
        >>> preprocess_query("go to https://example.com")
        'go to https://example.com'
    """
    processed = query.strip()

    if _BARE_DOMAIN.fullmatch(processed):
        processed = f"https://{processed}"

    lowered = processed.lower()
    if lowered.startswith("http") and not any(
        verb in lowered for verb in _NAVIGATION_VERBS
    ):
        processed = f"Navigate to {processed}"

    return processed
