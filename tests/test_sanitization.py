from __future__ import annotations

import pytest

from ihfiction.application.markdown import (
    MarkdownOptions,
    is_valid_image_url,
    is_valid_link_url,
    sanitize_markdown_content,
    sanitize_markdown_note,
)
from ihfiction.application.sanitization import (
    sanitize_description,
    sanitize_markdown,
    sanitize_name,
    sanitize_note,
    sanitize_optional_text,
    sanitize_tag,
    sanitize_text,
    sanitize_url,
    truncate_text,
    validate_text_length,
)
from ihfiction.application.validation import no_excessive_whitespace, no_harmful_content


def test_text_is_trimmed_and_whitespace_collapsed() -> None:
    assert sanitize_text("  Harbor \t  Lights\n ") == "Harbor Lights"
    assert sanitize_text(None) == ""
    assert sanitize_optional_text("   ") is None
    assert sanitize_name(" Ada \n Lovelace ") == "Ada Lovelace"


def test_description_keeps_line_breaks() -> None:
    assert sanitize_description("Line  one \n\n  line   two ") == "Line one\n\nline two"
    assert sanitize_note("   ") is None
    assert sanitize_markdown(" # Title\n\n\n\nBody ") == "# Title\n\nBody"


def test_tags_are_lowercased() -> None:
    assert sanitize_tag(" Mystery  Noir ") == "mystery noir"


def test_only_absolute_http_urls_survive() -> None:
    assert sanitize_url(" https://example.com/a ") == "https://example.com/a"
    assert sanitize_url("ftp://example.com") is None
    assert sanitize_url("example.com") is None


def test_truncate_prefers_word_boundary() -> None:
    assert truncate_text("The quick brown fox jumps", 15) == "The quick..."
    assert truncate_text("short", 15) == "short"


def test_text_length_messages() -> None:
    assert validate_text_length("", "Title", min_length=1) == ["Title is required."]
    assert validate_text_length("ab", "Title", min_length=3, max_length=5) == [
        "Title must be at least 3 characters long."
    ]
    assert validate_text_length("abcdef", "Title", max_length=5) == [
        "Title must not exceed 5 characters."
    ]


def test_markdown_strips_scripts_and_unsafe_targets() -> None:
    content = (
        "Hello <script>alert(1)</script>world\n\n\n\n"
        "![cat](javascript:alert(1)) [bad](javascript:void(0)) "
        "[site](https://example.com) [plain](http://example.com) [next](/chapters/2)"
    )

    sanitized = sanitize_markdown_content(content)

    assert sanitized == (
        "Hello world\n\n"
        "[Image: cat] bad [site](https://example.com) plain [next](/chapters/2)"
    )


def test_markdown_domain_allowlist_applies_to_images() -> None:
    options = MarkdownOptions(allowed_image_domains=frozenset({"images.example.com"}))

    assert is_valid_image_url("https://images.example.com/a.png", options)
    assert not is_valid_image_url("https://cdn.other.test/a.png", options)
    assert sanitize_markdown_content("![x](https://cdn.other.test/a.png)", options) == (
        "[Image: x]"
    )


def test_inline_base64_images_are_size_checked() -> None:
    image = "data:image/png;base64,iVBORw0KGgo="

    assert is_valid_image_url(image)
    assert not is_valid_image_url(image, MarkdownOptions(max_base64_image_bytes=4))
    assert not is_valid_link_url("data:text/html;base64,PGgxPg==")


def test_markdown_note_is_flattened_to_one_line() -> None:
    assert sanitize_markdown_note("a   b\n\nc") == "a b c"
    assert sanitize_markdown_note(" ") is None


def test_validators_reject_harmful_and_spaced_out_text() -> None:
    assert no_harmful_content("A calm harbor", "Title") == "A calm harbor"
    with pytest.raises(ValueError, match="Title contains potentially harmful content."):
        no_harmful_content("<script>x</script>", "Title")
    with pytest.raises(ValueError):
        no_harmful_content("onclick = steal()", "Title")
    assert no_excessive_whitespace("a  b") == "a  b"
    with pytest.raises(ValueError, match="excessive whitespace"):
        no_excessive_whitespace("a   b", field_name="Title")
