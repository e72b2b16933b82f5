"""Render long-form HTML (sourcebooks, arbitrary pages) as plain structured text."""

from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .extractor import clean_text
from .targets import (
    BOOK_ROOT_SELECTORS,
    BOOK_STRIP_SELECTORS,
    PAGE_ROOT_SELECTORS,
    PAGE_STRIP_SELECTORS,
)

_SKIPPED_TAGS = {"script", "style", "aside", "nav", "noscript", "template"}
_WHITESPACE = re.compile(r"[ \t\r\f\v\n]+")


def truncate(text: str, limit: int, notice: str) -> str:
    """Cut ``text`` to exactly ``limit`` characters plus ``notice`` when too long."""
    if len(text) <= limit:
        return text
    return text[:limit] + notice


def _strip(soup: BeautifulSoup, selectors: str):
    # extract() rather than decompose(): matches can be nested in each other
    for el in soup.select(selectors):
        el.extract()


def _first_root(soup: BeautifulSoup, selectors: tuple[str, ...]) -> Optional[Tag]:
    for selector in selectors:
        el = soup.select_one(selector)
        if el is not None:
            return el
    return None


def _tidy(text: str) -> str:
    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _flatten_table(table: Tag) -> str:
    rows = []
    for tr in table.find_all("tr"):
        cells = [clean_text(cell.get_text(" ")) for cell in tr.find_all(["th", "td"])]
        cells = [c for c in cells if c]
        if cells:
            rows.append(" | ".join(cells))
    return "\n".join(rows) if rows else clean_text(table.get_text(" "))


def render_node(node) -> str:
    """Depth-first walk turning markup into markdown-ish text."""
    if isinstance(node, PreformattedString):
        # comments, doctype, CDATA
        return ""
    if isinstance(node, NavigableString):
        return _WHITESPACE.sub(" ", str(node))
    if not isinstance(node, Tag):
        return ""

    tag = node.name.lower()
    if tag in _SKIPPED_TAGS:
        return ""
    if tag == "table":
        return f"\n[Table]\n{_flatten_table(node)}\n"
    if tag == "br":
        return "\n"
    if tag == "hr":
        return "\n---\n"

    inner = "".join(render_node(child) for child in node.children)

    if tag in ("h1", "h2"):
        return f"\n\n## {inner.strip()}\n\n"
    if tag in ("h3", "h4"):
        return f"\n\n### {inner.strip()}\n\n"
    if tag in ("h5", "h6"):
        return f"\n\n#### {inner.strip()}\n\n"
    if tag == "p":
        return f"\n{inner.strip()}\n"
    if tag == "li":
        return f"\n- {inner.strip()}"
    if tag in ("ul", "ol"):
        return f"\n{inner}\n"
    if tag in ("strong", "b"):
        return f"**{inner}**" if inner.strip() else inner
    if tag in ("em", "i"):
        return f"_{inner}_" if inner.strip() else inner
    return inner


def render_document(html: str) -> str:
    """Render the reading area of a sourcebook page.

    Navigation chrome is removed first. Falls back to the body's plain
    text when no reading area is found.
    """
    soup = BeautifulSoup(html, "html.parser")
    _strip(soup, BOOK_STRIP_SELECTORS)
    root = _first_root(soup, BOOK_ROOT_SELECTORS)
    if root is None:
        body = soup.body or soup
        return _tidy(body.get_text("\n"))
    return _tidy(render_node(root))


def render_page_text(html: str) -> str:
    """Visible text of the main content area of an arbitrary page."""
    soup = BeautifulSoup(html, "html.parser")
    _strip(soup, PAGE_STRIP_SELECTORS)
    root = _first_root(soup, PAGE_ROOT_SELECTORS) or soup.body or soup
    lines = [clean_text(line) for line in root.get_text("\n").split("\n")]
    return "\n".join(line for line in lines if line)
