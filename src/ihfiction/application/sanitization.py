"""Input normalization applied to user-supplied text before persistence."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_WHITESPACE_RUN = re.compile(r"\s+")
_EXCESSIVE_BLANK_LINES = re.compile(r"\n\s*\n\s*\n+", re.MULTILINE)


def sanitize_text(value: str | None) -> str:
    """Trim and collapse every whitespace run to one space."""
    if value is None or not value.strip():
        return ""
    return _WHITESPACE_RUN.sub(" ", value.strip())


def sanitize_optional_text(value: str | None) -> str | None:
    sanitized = sanitize_text(value)
    return sanitized or None


def sanitize_title(value: str | None) -> str:
    return sanitize_text(value)


def sanitize_name(value: str | None) -> str:
    return sanitize_text(value)


def sanitize_bio(value: str | None) -> str | None:
    return sanitize_optional_text(value)


def _sanitize_lines(value: str) -> str:
    lines = (_WHITESPACE_RUN.sub(" ", line.strip()) for line in value.split("\n"))
    return "\n".join(lines).strip()


def sanitize_description(value: str | None) -> str:
    """Collapse whitespace inside each line while keeping line breaks."""
    if value is None or not value.strip():
        return ""
    return _sanitize_lines(value)


def sanitize_note(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return _sanitize_lines(value) or None


def sanitize_search_query(value: str | None) -> str:
    return sanitize_text(value)


def sanitize_tag(value: str | None) -> str:
    return sanitize_text(value).lower()


def sanitize_url(value: str | None) -> str | None:
    """Return an absolute http(s) URL or `None`."""
    if value is None or not value.strip():
        return None
    candidate = value.strip()
    parts = urlsplit(candidate)
    if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
        return None
    return candidate


def sanitize_markdown(value: str | None) -> str:
    """Trim and squeeze three or more blank lines down to one paragraph break."""
    if value is None or not value.strip():
        return ""
    return _EXCESSIVE_BLANK_LINES.sub("\n\n", value.strip())


def truncate_text(value: str | None, max_length: int, suffix: str = "...") -> str:
    """Shorten text to `max_length`, preferring a nearby word boundary."""
    sanitized = sanitize_text(value)
    if len(sanitized) <= max_length:
        return sanitized
    cut = max_length - len(suffix)
    last_space = sanitized.rfind(" ", 0, cut + 1)
    if last_space > 0 and last_space > cut - 20:
        cut = last_space
    return sanitized[:cut] + suffix


def validate_text_length(
    value: str | None, field_name: str, *, min_length: int = 0, max_length: int | None = None
) -> list[str]:
    errors: list[str] = []
    if value is None or not value.strip():
        if min_length > 0:
            errors.append(f"{field_name} is required.")
        return errors
    sanitized = sanitize_text(value)
    if len(sanitized) < min_length:
        errors.append(f"{field_name} must be at least {min_length} characters long.")
    if max_length is not None and len(sanitized) > max_length:
        errors.append(f"{field_name} must not exceed {max_length} characters.")
    return errors
