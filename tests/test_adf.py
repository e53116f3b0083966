"""Tests for Atlassian Document Format text extraction."""

import pytest

from jira_to_github_migrator.adf import extract_text, rich_text_to_str
from jira_to_github_migrator.models import RichText


def _doc(*content: dict) -> dict:
    return {"type": "doc", "version": 1, "content": list(content)}


def _paragraph(*content: dict) -> dict:
    return {"type": "paragraph", "content": list(content)}


def _text(text: str, **extra: object) -> dict:
    return {"type": "text", "text": text, **extra}


@pytest.mark.unit
class TestExtractText:
    def test_none_is_empty(self) -> None:
        assert extract_text(None) == ""

    def test_plain_string_is_returned_unchanged(self) -> None:
        assert extract_text("already text") == "already text"

    def test_paragraphs_end_with_newline(self) -> None:
        doc = _doc(_paragraph(_text("first")), _paragraph(_text("second")))
        assert extract_text(doc) == "first\nsecond"

    def test_heading_ends_with_newline(self) -> None:
        doc = _doc({"type": "heading", "attrs": {"level": 2}, "content": [_text("Title")]}, _paragraph(_text("body")))
        assert extract_text(doc) == "Title\nbody"

    def test_link_mark(self) -> None:
        link = _text("docs", marks=[{"type": "strong"}, {"type": "link", "attrs": {"href": "https://example.com"}}])
        assert extract_text(_doc(_paragraph(_text("see "), link))) == "see [docs](https://example.com)"

    def test_cards_emit_url(self) -> None:
        doc = _doc(
            _paragraph({"type": "inlineCard", "attrs": {"url": "https://a.example"}}),
            {"type": "blockCard", "attrs": {"url": "https://b.example"}},
        )
        assert extract_text(doc) == "https://a.example\nhttps://b.example"

    def test_hard_break(self) -> None:
        doc = _doc(_paragraph(_text("a"), {"type": "hardBreak"}, _text("b")))
        assert extract_text(doc) == "a\nb"

    def test_paragraph_after_hard_break_adds_no_blank_line(self) -> None:
        doc = _doc(_paragraph(_text("a"), {"type": "hardBreak"}), _paragraph(_text("b")))
        assert extract_text(doc) == "a\nb"

    def test_emoji_glyph_and_short_name_fallback(self) -> None:
        doc = _doc(
            _paragraph(
                {"type": "emoji", "attrs": {"shortName": ":smile:", "text": "😄"}},
                {"type": "emoji", "attrs": {"shortName": ":party:"}},
            )
        )
        assert extract_text(doc) == "😄:party:"

    def test_empty_paragraph_adds_nothing(self) -> None:
        doc = _doc(_paragraph(), _paragraph(_text("x")))
        assert extract_text(doc) == "x"

    def test_deeply_nested_document(self) -> None:
        node: dict = _text("deep")
        for _ in range(5000):
            node = {"type": "bulletList", "content": [node]}
        assert extract_text(_doc(node)) == "deep"


@pytest.mark.unit
class TestRichTextToStr:
    def test_absent(self) -> None:
        assert rich_text_to_str(RichText.from_api(None)) == ""

    def test_text(self) -> None:
        assert rich_text_to_str(RichText.from_api("plain")) == "plain"

    def test_document(self) -> None:
        assert rich_text_to_str(RichText.from_api(_doc(_paragraph(_text("doc"))))) == "doc"
