"""Declarative field extraction over parsed HTML.

A field is described by an ordered chain of ``Rule`` objects. Each rule is a
(CSS selector, transform) pair; the first rule producing a non-empty value
wins and a field with no value is left out of the result. Listing pages add
a chain of card selectors and a set of required fields: cards missing any of
them are dropped whole.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..constants import DDB_BASE

Transform = Callable[[Tag], Any]


# ── Utility Functions ────────────────────────────────────────────────────────


def clean_text(text: str | None) -> str:
    """Strip whitespace and normalize text."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def parse_int(text: str | None) -> Optional[int]:
    """Extract the first integer from text like 'Level 6' or '23 / 31'."""
    if not text:
        return None
    match = re.search(r"-?\d+", text)
    return int(match.group(0)) if match else None


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


# ── Transforms ───────────────────────────────────────────────────────────────


def text_of(el: Tag) -> str:
    return clean_text(el.get_text(" "))


def href_of(el: Tag) -> str:
    """Absolute URL of a link, the way the browser's ``a.href`` reports it."""
    href = el.get("href") or ""
    return urljoin(DDB_BASE, href) if href else ""


def attr_of(name: str) -> Transform:
    def transform(el: Tag) -> str:
        value = el.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        return clean_text(value)

    return transform


def matching(pattern: str, source: Transform = href_of, group: int = 1) -> Transform:
    """Regex group from another transform's output, e.g. an id from a link."""
    regex = re.compile(pattern)

    def transform(el: Tag) -> Optional[str]:
        match = regex.search(source(el) or "")
        return match.group(group) if match else None

    return transform


def int_of(el: Tag) -> Optional[int]:
    return parse_int(text_of(el))


def min_length(n: int, source: Transform = text_of) -> Transform:
    """Only accept values at least ``n`` characters long."""

    def transform(el: Tag) -> Optional[str]:
        value = source(el)
        return value if value and len(value) >= n else None

    return transform


def without_prefix(prefix: str, source: Transform = text_of) -> Transform:
    regex = re.compile(rf"^{prefix}\s*", re.IGNORECASE)

    def transform(el: Tag) -> str:
        return regex.sub("", source(el) or "").strip()

    return transform


# ── Rules and Targets ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Rule:
    """One lookup: select with ``selector`` and convert with ``transform``.

    An empty selector means the element being searched itself. ``nth``
    restricts the lookup to a single match by position.
    """

    selector: str
    transform: Transform = text_of
    nth: Optional[int] = None

    def apply(self, root: Tag) -> Any:
        if not self.selector:
            elements = [root]
        else:
            elements = root.select(self.selector)
        if self.nth is not None:
            elements = elements[self.nth : self.nth + 1]
        for el in elements:
            try:
                value = self.transform(el)
            except Exception:
                continue
            if not is_empty(value):
                return value
        return None


Chain = tuple[Rule, ...]


@dataclass(frozen=True)
class ExtractionTarget:
    """How to turn one page shape into records.

    A target with ``containers`` is a listing: each matching card becomes
    one record. Without containers the fields apply to the whole page.
    """

    name: str
    fields: Mapping[str, Chain]
    url: str = ""
    containers: tuple[str, ...] = ()
    required: tuple[str, ...] = ()

    @property
    def is_listing(self) -> bool:
        return bool(self.containers)

    def url_for(self, **params: Any) -> str:
        return self.url.format(**params)


def first_match(root: Tag, chain: Chain) -> Any:
    """Value of the first rule in ``chain`` that yields something."""
    for rule in chain:
        value = rule.apply(root)
        if not is_empty(value):
            return value
    return None


def extract_fields(root: Tag, fields: Mapping[str, Chain]) -> dict[str, Any]:
    """Apply every field chain to ``root``, omitting fields with no value."""
    result: dict[str, Any] = {}
    for name, chain in fields.items():
        value = first_match(root, chain)
        if not is_empty(value):
            result[name] = value
    return result


def find_cards(root: Tag, containers: tuple[str, ...]) -> list[Tag]:
    """Cards matched by the first container selector that finds any."""
    for selector in containers:
        cards = root.select(selector)
        if cards:
            return cards
    return []


def extract_list(root: Tag, target: ExtractionTarget) -> list[dict[str, Any]]:
    """One record per card; cards missing a required field contribute nothing."""
    records = []
    for card in find_cards(root, target.containers):
        record = extract_fields(card, target.fields)
        if all(not is_empty(record.get(name)) for name in target.required):
            records.append(record)
    return records


def extract(html: str | BeautifulSoup, target: ExtractionTarget) -> dict[str, Any] | list[dict[str, Any]]:
    """Run a target against page HTML."""
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")
    if target.is_listing:
        return extract_list(soup, target)
    return extract_fields(soup, target.fields)
