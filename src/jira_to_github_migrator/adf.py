"""Flatten Atlassian Document Format (ADF) trees into markdown-ish text.

ADF structure: ``{"type": "doc", "version": 1, "content": [...]}`` where every
node may carry ``text``, ``marks``, ``attrs`` and a ``content`` list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import RichText

_CARD_TYPES = frozenset({"inlineCard", "blockCard"})
_BLOCK_TYPES = frozenset({"paragraph", "heading"})


def _link_href(node: dict[str, Any]) -> str | None:
    for mark in node.get("marks") or []:
        if isinstance(mark, dict) and mark.get("type") == "link":
            href = (mark.get("attrs") or {}).get("href")
            if href is not None:
                return href
    return None


def _emit(node: dict[str, Any]) -> str | None:
    """Return the token a node contributes before its children, if any."""
    node_type = node.get("type")
    attrs = node.get("attrs") or {}

    if node_type == "text" and "text" in node:
        text = node.get("text") or ""
        href = _link_href(node)
        if href is not None:
            text = f"[{text}]({href})"
        return text or None
    if node_type in _CARD_TYPES:
        return attrs.get("url") or None
    if node_type == "hardBreak":
        return "\n"
    if node_type == "emoji":
        return attrs.get("text") or attrs.get("shortName") or None
    return None


def extract_text(node: dict[str, Any] | str | None) -> str:
    """Flatten an ADF node into text.

    Rules:
        - text nodes emit their text, as ``[text](href)`` when a link mark is present
        - inline/block cards emit their URL
        - hard breaks emit a newline
        - emojis emit their glyph, falling back to the short name
        - paragraphs and headings end with a newline unless the last token is
          already blank

    The tree is walked with an explicit stack so deeply nested documents
    cannot exhaust the interpreter's recursion limit.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node

    parts: list[str] = []
    # (node, closing) - closing frames run after all children were emitted
    stack: list[tuple[dict[str, Any], bool]] = [(node, False)]

    while stack:
        current, closing = stack.pop()

        if closing:
            if parts and parts[-1].strip():
                parts.append("\n")
            continue

        token = _emit(current)
        if token:
            parts.append(token)

        if current.get("type") in _BLOCK_TYPES:
            stack.append((current, True))

        children = current.get("content")
        if isinstance(children, list):
            stack.extend((child, False) for child in reversed(children) if isinstance(child, dict))

    return "".join(parts).strip()


def rich_text_to_str(value: RichText) -> str:
    """Render a decoded Jira text field."""
    if value.kind == "document":
        return extract_text(value.document)
    if value.kind == "text":
        return value.text
    return ""
