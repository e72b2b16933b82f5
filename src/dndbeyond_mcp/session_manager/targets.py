"""Extraction targets for D&D Beyond's current markup.

Selector strings here track the live site and change with it; the
extraction logic in ``extractor`` and ``parser`` does not.
"""

from __future__ import annotations

import re

from bs4 import Tag

from ..constants import (
    DDB_CAMPAIGN_URL,
    DDB_CHARACTER_URL,
    DDB_CHARACTERS_URL,
    DDB_LIBRARY_URL,
    DDB_MY_CAMPAIGNS_URL,
    DDB_SEARCH_URL,
)
from .extractor import (
    ExtractionTarget,
    Rule,
    attr_of,
    clean_text,
    href_of,
    int_of,
    matching,
    min_length,
    without_prefix,
)

_CHARACTER_ID = r"/characters/(\d+)"
_CAMPAIGN_ID = r"/campaigns/(\d+)"


def _role_text(el: Tag) -> str:
    """'Role: DM\n...' -> 'DM', keeping only the first line after the label."""
    text = re.sub(r"^Role:\s*", "", el.get_text().strip(), flags=re.IGNORECASE)
    return clean_text(text.split("\n")[0])


def _school_name(el: Tag) -> str:
    """Spell school is encoded as an extra class on ``.school``."""
    classes = el.get("class") or []
    return " ".join(c for c in classes if c != "school").strip()


# ── Characters ───────────────────────────────────────────────────────────────

_CHARACTER_CARD = "li.ddb-campaigns-character-card-wrapper"
_CARD_INFO = ".ddb-campaigns-character-card-header-upper-character-info"

CHARACTER_LIST = ExtractionTarget(
    name="character_list",
    url=DDB_CHARACTERS_URL,
    containers=(_CHARACTER_CARD,),
    fields={
        "name": (
            Rule(f"{_CARD_INFO} h2"),
            Rule(f"{_CARD_INFO}-primary"),
        ),
        "summary": (Rule(f"{_CARD_INFO}-secondary"),),
        "url": (
            Rule(".ddb-campaigns-character-card-footer-links a[href*='/characters/']", href_of),
            Rule("a[href*='/characters/']", href_of),
        ),
        "id": (
            Rule(".ddb-campaigns-character-card-footer-links a[href*='/characters/']", matching(_CHARACTER_ID)),
            Rule("a[href*='/characters/']", matching(_CHARACTER_ID)),
        ),
    },
    required=("name", "id"),
)

CHARACTER_SHEET = ExtractionTarget(
    name="character_sheet",
    url=DDB_CHARACTER_URL,
    fields={
        "name": (Rule(".character-name"), Rule(".ddbc-character-name")),
        "level": (
            Rule(".character-level", int_of),
            Rule(".ddbc-character-summary__level", int_of),
            Rule(".ddbc-character-progression-summary__level", int_of),
        ),
        "race": (Rule(".character-race"), Rule(".ddbc-character-summary__race")),
        "class": (Rule(".character-class"), Rule(".ddbc-character-summary__classes")),
        "hp": (
            Rule(".ddbc-health-manager__hp-current", int_of),
            Rule(".hp-current", int_of),
            Rule("[data-testid='current-hp']", int_of),
        ),
    },
)

ABILITY_SUMMARY = ExtractionTarget(
    name="ability_summary",
    containers=(".ddbc-ability-summary",),
    fields={
        "label": (Rule(".ddbc-ability-summary__label"), Rule(".ddbc-ability-summary__abbr")),
        "value": (Rule(".ddbc-ability-summary__secondary"), Rule(".ddbc-ability-summary__primary")),
    },
    required=("label", "value"),
)

SKILL_SUMMARY = ExtractionTarget(
    name="skill_summary",
    containers=(".ddbc-skill-summary", ".ct-skills__item"),
    fields={
        "label": (Rule(".ddbc-skill-summary__label"), Rule(".ct-skills__col--skill")),
        "value": (Rule(".ddbc-skill-summary__modifier"), Rule(".ct-skills__col--modifier")),
    },
    required=("label", "value"),
)

# ── Campaigns ────────────────────────────────────────────────────────────────

CAMPAIGN_DETAIL = ExtractionTarget(
    name="campaign_detail",
    url=DDB_CAMPAIGN_URL,
    fields={
        "name": (Rule("h1.page-title"), Rule(".page-heading h1"), Rule("h1")),
        "dungeon_master": (
            Rule("span.user-interactions-profile-nickname"),
            Rule(".ddb-campaigns-detail-header-secondary-dm a"),
        ),
        "description": (
            Rule(".ddb-campaigns-detail p", min_length(51)),
            Rule(".ddb-campaigns-detail-body-description", min_length(1)),
        ),
    },
)

CAMPAIGN_ROSTER = ExtractionTarget(
    name="campaign_roster",
    containers=(_CHARACTER_CARD,),
    fields={
        "name": (Rule(f"{_CARD_INFO}-primary"), Rule(f"{_CARD_INFO} h2")),
        "summary": (Rule(f"{_CARD_INFO}-secondary", nth=0),),
        "player": (Rule(f"{_CARD_INFO}-secondary", without_prefix("Player:"), nth=1),),
        "url": (
            Rule("a.ddb-campaigns-character-card-header-upper-details-link", href_of),
            Rule("a[href*='/characters/']", href_of),
        ),
        "id": (
            Rule("a.ddb-campaigns-character-card-header-upper-details-link", matching(_CHARACTER_ID)),
            Rule("a[href*='/characters/']", matching(_CHARACTER_ID)),
        ),
    },
    required=("name",),
)

CAMPAIGN_LIST = ExtractionTarget(
    name="campaign_list",
    url=DDB_MY_CAMPAIGNS_URL,
    containers=("li.ddb-campaigns-list-item-wrapper",),
    fields={
        "name": (Rule(".ddb-campaigns-list-item-body-title"),),
        "url": (
            Rule("a.ddb-campaigns-list-item-footer-buttons-item[href*='/campaigns/']", href_of),
            Rule("a[href*='/campaigns/']", href_of),
        ),
        "id": (
            Rule("a.ddb-campaigns-list-item-footer-buttons-item[href*='/campaigns/']", matching(_CAMPAIGN_ID)),
            Rule("a[href*='/campaigns/']", matching(_CAMPAIGN_ID)),
        ),
        "role": (Rule(".ddb-campaigns-list-item-body-role", _role_text),),
    },
    required=("name", "id"),
)

# ── Library ──────────────────────────────────────────────────────────────────

_SOURCE_TITLE = "a[class*='SourceCard_sourceTitle']"

LIBRARY = ExtractionTarget(
    name="library",
    url=DDB_LIBRARY_URL,
    containers=("div[data-testid='sourceCard']",),
    fields={
        "title": (Rule(_SOURCE_TITLE),),
        "url": (Rule(_SOURCE_TITLE, href_of),),
        "slug": (Rule(_SOURCE_TITLE, matching(r"/sources/([^?#]+)")),),
        "ownership": (Rule("p[class*='SourceCard_sourceSubtitle']"),),
    },
    required=("title", "slug"),
)

# ── Search ───────────────────────────────────────────────────────────────────

SEARCH_ALL = ExtractionTarget(
    name="search_all",
    url=DDB_SEARCH_URL + "?q={query}",
    containers=(".search-result, .results-item",),
    fields={
        "name": (
            Rule("a.result-title"),
            Rule("a.listing-name"),
            Rule("h2 a"),
            Rule("h3 a"),
            Rule("h2"),
            Rule("h3"),
        ),
        "category": (
            Rule(".result-category"),
            Rule(".result-type"),
            Rule(".listing-tag"),
        ),
        "url": (
            Rule("a.result-title", href_of),
            Rule("a.listing-name", href_of),
            Rule("h2 a", href_of),
            Rule("h3 a", href_of),
            Rule("a", href_of),
        ),
    },
    required=("name",),
)

# Every category listing shares one card shape; the metadata row differs.
SEARCH_CATEGORY = ExtractionTarget(
    name="search_category",
    url="{base}/{path}?filter-search={query}",
    containers=(".listing-body div.info[data-slug]",),
    fields={
        # a.link avoids picking up icon children in the name row
        "name": (Rule("a.link"),),
        "url": (Rule("a.link", href_of),),
        "slug": (Rule("", attr_of("data-slug")),),
        "level": (
            Rule(".row.spell-level span"),
            Rule(".row.monster-challenge span"),
            Rule(".row.item-rarity span"),
            Rule(".row.class-level span"),
            Rule(".row.feat-prerequisite span"),
        ),
        "school": (Rule(".row.spell-school .school", _school_name),),
    },
    required=("name",),
)

# ── Free-text Pages ──────────────────────────────────────────────────────────

BOOK_STRIP_SELECTORS = (
    "script, style, nav, header, footer, .ad-container, .sidebar, .toc, .breadcrumb"
)
BOOK_ROOT_SELECTORS = ("article", ".content-container", ".p-content", "main")
BOOK_READY_SELECTOR = "article, .content-container, .p-content-title"

PAGE_STRIP_SELECTORS = "script, style, nav, footer, .ad-container, .advertisement"
PAGE_ROOT_SELECTORS = ("main", "article", ".main-content", ".page-content", "#content")
