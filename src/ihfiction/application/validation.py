"""Reusable text validators shared by request contracts."""

from __future__ import annotations

import re

_HARMFUL_CONTENT = re.compile(r"<script|javascript:|on\w+\s*=", re.IGNORECASE)


def no_harmful_content(value: str | None, field_name: str = "field") -> str | None:
    """Reject script tags, javascript URLs, and inline event handlers."""
    if value is None or not value.strip():
        return value
    if _HARMFUL_CONTENT.search(value.strip()):
        raise ValueError(f"{field_name} contains potentially harmful content.")
    return value


def no_excessive_whitespace(
    value: str | None, threshold: int = 3, field_name: str = "field"
) -> str | None:
    """Reject runs of `threshold` or more whitespace characters."""
    if value is None or not value.strip():
        return value
    if re.search(r"\s{%d,}" % threshold, value.strip()):
        raise ValueError(
            f"{field_name} contains excessive whitespace. Please format your {field_name} properly."
        )
    return value
