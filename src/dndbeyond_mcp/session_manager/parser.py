"""Parse rendered D&D Beyond pages into records.

Handles the page types the router navigates to:
1. Character roster (/characters) and character sheet
2. Campaign detail and "My Campaigns"
3. Library shelf
4. Search results (site-wide and per-category listings)

Each parser runs the extraction targets from ``targets`` and only adds the
page-specific glue: splitting summaries, assembling sub-lists, counting.
Missing fields are omitted; an empty page yields an empty record, never an
exception.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from bs4 import BeautifulSoup

from ..models.campaign import Campaign, CampaignCharacter, CampaignList, CampaignSummary
from ..models.character import Character, CharacterList
from ..models.library import Library, LibraryEntry
from ..models.search import SearchResult, SearchResults
from .extractor import extract, extract_fields, extract_list, parse_int
from .targets import (
    ABILITY_SUMMARY,
    CAMPAIGN_DETAIL,
    CAMPAIGN_LIST,
    CAMPAIGN_ROSTER,
    CHARACTER_LIST,
    CHARACTER_SHEET,
    LIBRARY,
    SEARCH_ALL,
    SEARCH_CATEGORY,
    SKILL_SUMMARY,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def split_character_summary(summary: str) -> dict[str, Any]:
    """Parse 'Level 6 | Human | Cleric/War Domain' into level, race and class.

    Multiclass strings may themselves contain '|', so everything after the
    race is the class.
    """
    parts = [p.strip() for p in summary.split("|")]
    result: dict[str, Any] = {}
    if parts and parts[0]:
        level = parse_int(parts[0])
        if level is not None:
            result["level"] = level
    if len(parts) > 1 and parts[1]:
        result["race"] = parts[1]
    char_class = " | ".join(p for p in parts[2:] if p)
    if char_class:
        result["class"] = char_class
    return result


def _label_map(rows: list[dict[str, Any]]) -> Optional[dict[str, str]]:
    mapping = {row["label"]: row["value"] for row in rows}
    return mapping or None


# ── Characters ───────────────────────────────────────────────────────────────


def parse_character_list(html: str) -> CharacterList:
    rows = extract(html, CHARACTER_LIST)
    characters = []
    for row in rows:
        summary = row.pop("summary", "")
        row.update(split_character_summary(summary))
        characters.append(Character(**row))
    logger.info(f"[PARSER] character_list: {len(characters)} characters")
    return CharacterList(count=len(characters), characters=characters)


def parse_character_sheet(html: str, character_id: str = "") -> Character:
    """Scrape the rendered character sheet (the fallback to the JSON API)."""
    soup = _soup(html)
    data = extract_fields(soup, CHARACTER_SHEET.fields)
    abilities = _label_map(extract_list(soup, ABILITY_SUMMARY))
    if abilities:
        data["ability_scores"] = abilities
    skills = _label_map(extract_list(soup, SKILL_SUMMARY))
    if skills:
        data["skills"] = skills
    logger.info(f"[PARSER] character_sheet {character_id}: fields {sorted(data)}")
    if character_id:
        data["id"] = character_id
        data["url"] = CHARACTER_SHEET.url_for(character_id=character_id)
    return Character(**data)


# ── Campaigns ────────────────────────────────────────────────────────────────


def parse_campaign(html: str, campaign_id: str) -> Campaign:
    soup = _soup(html)
    data = extract_fields(soup, CAMPAIGN_DETAIL.fields)
    roster = [CampaignCharacter(**row) for row in extract_list(soup, CAMPAIGN_ROSTER)]
    logger.info(f"[PARSER] campaign {campaign_id}: {len(roster)} characters on roster")
    return Campaign(id=campaign_id, characters=roster, **data)


def parse_campaign_list(html: str) -> CampaignList:
    campaigns = [CampaignSummary(**row) for row in extract(html, CAMPAIGN_LIST)]
    logger.info(f"[PARSER] campaign_list: {len(campaigns)} campaigns")
    return CampaignList(count=len(campaigns), campaigns=campaigns)


# ── Library ──────────────────────────────────────────────────────────────────


def parse_library(html: str) -> Library:
    books = [LibraryEntry(**row) for row in extract(html, LIBRARY)]
    logger.info(f"[PARSER] library: {len(books)} books")
    return Library(count=len(books), books=books)


# ── Search ───────────────────────────────────────────────────────────────────


def parse_search_results(html: str, query: str, category: str, url: str) -> SearchResults:
    """Parse either the site-wide results page or a category listing."""
    results: list[SearchResult] = []
    if category == "all":
        for row in extract(html, SEARCH_ALL):
            results.append(SearchResult(**row))
    else:
        for row in extract(html, SEARCH_CATEGORY):
            extras = " | ".join(v for v in (row.pop("level", None), row.pop("school", None)) if v)
            results.append(SearchResult(category=category, extras=extras or None, **row))

    logger.info(f"[PARSER] search '{query}' ({category}): {len(results)} results")
    message = None
    if not results:
        message = f'No results found for "{query}" in category "{category}".'
    return SearchResults(
        query=query,
        category=category,
        url=url,
        count=len(results),
        results=results,
        message=message,
    )
