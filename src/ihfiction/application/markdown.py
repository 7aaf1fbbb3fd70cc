"""Markdown sanitizer for story and chapter content."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

_SCRIPT_TAGS = re.compile(r"<script.*?</script>", re.IGNORECASE | re.DOTALL)
_EVENT_HANDLERS = re.compile(r"on\w+\s*=", re.IGNORECASE)
_IMAGE = re.compile(r'!\[([^\]]*)\]\(([^\s"]+)(?:\s+"([^"]*)")?\)')
_LINK = re.compile(r'(?<!!)\[([^\]]+)\]\(([^\s"]+)(?:\s+"([^"]*)")?\)')
_BASE64_IMAGE = re.compile(r"^data:image/(png|jpeg|jpg|gif|webp|svg\+xml);base64,([A-Za-z0-9+/=]+)$")
_HTTP_URL = re.compile(r'^https?://[^\s<>"]+$', re.IGNORECASE)
_DANGEROUS_SCHEME = re.compile(r"^(javascript|data|file|ftp|mailto|tel):", re.IGNORECASE)
_WHITESPACE_RUN = re.compile(r"\s+")
_EXCESSIVE_BLANK_LINES = re.compile(r"\n\s*\n\s*\n+")


@dataclass(frozen=True)
class MarkdownOptions:
    """Link and image policy; an empty domain set allows any https host."""

    allowed_image_domains: frozenset[str] = frozenset()
    allowed_link_domains: frozenset[str] = frozenset()
    allow_insecure_http: bool = False
    allow_relative_links: bool = True
    max_base64_image_bytes: int = 1024 * 1024


DEFAULT_MARKDOWN_OPTIONS = MarkdownOptions()


def _title_suffix(title: str | None) -> str:
    return f' "{title}"' if title else ""


def _host_allowed(url: str, options: MarkdownOptions, domains: frozenset[str]) -> bool:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme != "https" and not (scheme == "http" and options.allow_insecure_http):
        return False
    if not parts.hostname:
        return False
    return not domains or parts.hostname.lower() in domains


def _valid_base64_image(url: str, options: MarkdownOptions) -> bool:
    match = _BASE64_IMAGE.match(url)
    if match is None:
        return False
    data = match.group(2)
    if len(data) * 3 // 4 > options.max_base64_image_bytes:
        return False
    try:
        base64.b64decode(data, validate=True)
    except binascii.Error:
        return False
    return True


def is_valid_image_url(url: str, options: MarkdownOptions = DEFAULT_MARKDOWN_OPTIONS) -> bool:
    if _DANGEROUS_SCHEME.match(url):
        return url.lower().startswith("data:") and _valid_base64_image(url, options)
    return bool(_HTTP_URL.match(url)) and _host_allowed(url, options, options.allowed_image_domains)


def is_valid_link_url(url: str, options: MarkdownOptions = DEFAULT_MARKDOWN_OPTIONS) -> bool:
    if _DANGEROUS_SCHEME.match(url):
        return False
    if options.allow_relative_links and "://" not in url:
        return True
    return bool(_HTTP_URL.match(url)) and _host_allowed(url, options, options.allowed_link_domains)


def _remove_harmful(content: str) -> str:
    content = _SCRIPT_TAGS.sub("", content)
    return _EVENT_HANDLERS.sub("", content)


def _sanitize_images(content: str, options: MarkdownOptions) -> str:
    def replace(match: re.Match[str]) -> str:
        alt_text, url, title = match.group(1), match.group(2).strip(), match.group(3)
        if is_valid_image_url(url, options):
            return f"![{alt_text}]({url}{_title_suffix(title)})"
        return f"[Image: {alt_text}]"

    return _IMAGE.sub(replace, content)


def _sanitize_links(content: str, options: MarkdownOptions) -> str:
    def replace(match: re.Match[str]) -> str:
        text, url, title = match.group(1), match.group(2).strip(), match.group(3)
        if is_valid_link_url(url, options):
            return f"[{text}]({url}{_title_suffix(title)})"
        return text

    return _LINK.sub(replace, content)


def sanitize_markdown_content(
    content: str | None, options: MarkdownOptions = DEFAULT_MARKDOWN_OPTIONS
) -> str:
    """Strip scripts and unsafe targets, then normalize blank lines."""
    if content is None or not content.strip():
        return ""
    sanitized = _remove_harmful(content.strip())
    sanitized = _sanitize_images(sanitized, options)
    sanitized = _sanitize_links(sanitized, options)
    sanitized = _EXCESSIVE_BLANK_LINES.sub("\n\n", sanitized)
    # Long runs of spaces inside a line become a four-space indent.
    return re.sub(r"[ \t]{5,}", "    ", sanitized)


def sanitize_markdown_note(
    note: str | None, options: MarkdownOptions = DEFAULT_MARKDOWN_OPTIONS
) -> str | None:
    if note is None or not note.strip():
        return None
    sanitized = _remove_harmful(note.strip())
    sanitized = _sanitize_images(sanitized, options)
    sanitized = _sanitize_links(sanitized, options)
    sanitized = _WHITESPACE_RUN.sub(" ", sanitized).strip()
    return sanitized or None
