"""Domain operations over the shared browser page.

Every operation follows the same template: take the operation lock, get
the shared page, re-probe authentication, navigate, extract. The page is a
single shared mutable resource, so operations never overlap: the lock
serializes them even if the caller dispatches concurrently.

``interact`` and ``current_page`` work on whatever page a previous
operation left open; they neither navigate nor probe.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import quote, urlparse

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import (
    BOOK_RENDER_TIMEOUT,
    BOOK_SETTLE,
    BOOK_TIMEOUT,
    DOWNLOAD_DIR,
    PAGE_SETTLE,
    PAGE_TIMEOUT,
    SCREENSHOT_DIR,
    SEARCH_SETTLE,
)
from ..constants import (
    BOOK_CHAR_LIMIT,
    BOOK_TRUNCATION_NOTICE,
    CHARACTER_SERVICE_URL,
    CURRENT_PAGE_TRUNCATION_NOTICE,
    DDB_BASE,
    DDB_SOURCES_URL,
    INTERACT_ACTIONS,
    PAGE_CHAR_LIMIT,
    PAGE_TRUNCATION_NOTICE,
    SEARCH_CATEGORY_PATHS,
    SITE_HOSTS,
)
from ..errors import InvalidInput, NavigationTimeout, SessionBusy, UpstreamAPIFailure
from ..models.campaign import Campaign, CampaignList
from ..models.character import Character, CharacterList
from ..models.library import BookContent, Library
from ..models.search import SearchResults
from ..models.session import LoginResult, SessionStatus
from .auth import AuthController
from .browser import BrowserRuntime
from .parser import (
    parse_campaign,
    parse_campaign_list,
    parse_character_list,
    parse_character_sheet,
    parse_library,
    parse_search_results,
)
from .render import render_document, render_page_text, truncate
from .targets import (
    BOOK_READY_SELECTOR,
    CAMPAIGN_DETAIL,
    CAMPAIGN_LIST,
    CHARACTER_LIST,
    CHARACTER_SHEET,
    LIBRARY,
    SEARCH_ALL,
    SEARCH_CATEGORY,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

# Runs inside the page so the request carries the site's cookies.
# Errors come back as data; the page never throws into Python.
_FETCH_JSON_JS = """
async (url) => {
    try {
        const resp = await fetch(url, {
            credentials: "include",
            headers: { Accept: "application/json" },
        });
        const body = await resp.text();
        return { ok: resp.ok, status: resp.status, statusText: resp.statusText, body };
    } catch (e) {
        return { ok: false, status: 0, statusText: String(e), body: "" };
    }
}
"""

_SLUG_SEGMENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|]+')

CharacterData = Union[dict, Character]


# ── Input Validation ─────────────────────────────────────────────────────────


def validate_site_url(url: str) -> str:
    """Only https URLs on dndbeyond.com may be opened."""
    parsed = urlparse(url.strip())
    if parsed.scheme != "https" or (parsed.hostname or "") not in SITE_HOSTS:
        raise InvalidInput("Only D&D Beyond URLs (https://www.dndbeyond.com/...) are supported.")
    return url.strip()


def _numeric_id(value: Any, label: str) -> str:
    text = str(value or "").strip()
    if not text.isdigit():
        raise InvalidInput(f"{label} must be numeric (the number in the D&D Beyond URL), got '{text}'.")
    return text


def _slug_path(value: str, label: str) -> str:
    segments = value.strip().strip("/").split("/")
    if not all(_SLUG_SEGMENT.match(segment) for segment in segments):
        raise InvalidInput(f"Invalid {label} '{value}'. Use the slug from the D&D Beyond URL, e.g. 'players-handbook'.")
    return "/".join(segments)


def build_search_url(query: str, category: str) -> str:
    """Resolve a query and category to the page that lists matching entries."""
    # Same escaping as the browser's encodeURIComponent
    encoded = quote(query, safe="!~*'()")
    if category == "all":
        return SEARCH_ALL.url_for(query=encoded)
    return SEARCH_CATEGORY.url_for(base=DDB_BASE, path=SEARCH_CATEGORY_PATHS[category], query=encoded)


def character_filename(name: str, character_id: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip()).lower()
    slug = _UNSAFE_FILENAME.sub("", slug) or "character"
    return f"{slug}-{character_id}.json"


# ── Router ───────────────────────────────────────────────────────────────────


class OperationRouter:
    """Maps domain operations onto navigation and extraction."""

    def __init__(
        self,
        runtime: BrowserRuntime,
        auth: AuthController,
        page_settle: float = PAGE_SETTLE,
        search_settle: float = SEARCH_SETTLE,
        book_settle: float = BOOK_SETTLE,
        interact_settle: float = 1.0,
        download_dir: Path = DOWNLOAD_DIR,
        screenshot_dir: Path = SCREENSHOT_DIR,
    ):
        self._runtime = runtime
        self._auth = auth
        self._page_settle = page_settle
        self._search_settle = search_settle
        self._book_settle = book_settle
        self._interact_settle = interact_settle
        self._download_dir = Path(download_dir)
        self._screenshot_dir = Path(screenshot_dir)
        self._lock = asyncio.Lock()
        self._current: Optional[str] = None
        self._login_pending = False

    @asynccontextmanager
    async def _exclusive(self, operation: str):
        # A login can hold the page for the whole redirect ceiling; only close may queue behind it
        if self._login_pending and operation != "close":
            logger.warning(f"[ROUTER] Rejecting '{operation}' while a login is in progress")
            raise SessionBusy(
                "A login is in progress. Finish signing in in the browser window or run ddb_cancel_login first."
            )
        if self._lock.locked():
            logger.info(f"[ROUTER] '{operation}' waiting for '{self._current}' to finish")
        if operation == "login":
            self._login_pending = True
        try:
            async with self._lock:
                self._current = operation
                try:
                    yield
                finally:
                    self._current = None
        finally:
            if operation == "login":
                self._login_pending = False

    async def _authenticated_page(self) -> Page:
        page = await self._runtime.active_page()
        await self._auth.require_authenticated(page)
        return page

    async def _open(
        self,
        page: Page,
        url: str,
        timeout: int = PAGE_TIMEOUT,
        settle: Optional[float] = None,
        wait_until: str = "networkidle",
    ):
        logger.info(f"[ROUTER] Navigating to {url}")
        try:
            await page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Timed out after {timeout // 1000}s loading {url}") from e
        await asyncio.sleep(self._page_settle if settle is None else settle)

    # ── Session ──────────────────────────────────────────────────────────────

    async def login(self) -> LoginResult:
        async with self._exclusive("login"):
            handle = await self._runtime.acquire()
            return await self._auth.login(handle.context)

    def cancel_login(self) -> bool:
        return self._auth.cancel_login()

    async def close(self) -> str:
        self._auth.cancel_login()
        async with self._exclusive("close"):
            was_running = self._runtime.is_running
            await self._runtime.release()
        return "Browser closed. The saved session remains on disk." if was_running else "Browser was not running."

    def status(self, store) -> SessionStatus:
        handle = self._runtime.handle
        current_url = None
        if handle is not None and handle.context.pages:
            current_url = handle.context.pages[0].url
        return SessionStatus(
            browser_running=self._runtime.is_running,
            auth_state=self._auth.state.value,
            session_saved=store.exists(),
            session_path=str(store.path),
            saved_at=store.saved_at(),
            cookie_count=store.cookie_count(),
            current_url=current_url,
            login_in_progress=self._auth.login_in_progress,
        )

    # ── Characters ───────────────────────────────────────────────────────────

    async def list_characters(self) -> CharacterList:
        async with self._exclusive("list_characters"):
            page = await self._authenticated_page()
            await self._open(page, CHARACTER_LIST.url)
            return parse_character_list(await page.content())

    async def get_character(self, character_id: str, fallback_scrape: bool = False) -> CharacterData:
        """Character JSON from the character service, or the scraped sheet.

        The scrape is only attempted when the caller opted in and the API
        itself failed; it returns a ``Character`` record rather than the
        service's JSON document.
        """
        character_id = _numeric_id(character_id, "character_id")
        async with self._exclusive("get_character"):
            page = await self._authenticated_page()
            try:
                return await self._fetch_character_json(page, character_id)
            except UpstreamAPIFailure as api_error:
                if not fallback_scrape:
                    raise
                logger.warning(f"[ROUTER] Character API failed ({api_error}), scraping the sheet instead")
                try:
                    return await self._scrape_character_sheet(page, character_id)
                except Exception as scrape_error:
                    raise UpstreamAPIFailure(
                        f"API and scrape both failed: {api_error}; {scrape_error}",
                        api_error.upstream_status,
                    ) from scrape_error

    async def scrape_character_sheet(self, character_id: str) -> Character:
        character_id = _numeric_id(character_id, "character_id")
        async with self._exclusive("scrape_character_sheet"):
            page = await self._authenticated_page()
            return await self._scrape_character_sheet(page, character_id)

    async def download_character(self, character_id: str, output_path: Optional[str] = None) -> str:
        character_id = _numeric_id(character_id, "character_id")
        async with self._exclusive("download_character"):
            page = await self._authenticated_page()
            data = await self._fetch_character_json(page, character_id)

        inner = data.get("data") if isinstance(data, dict) else None
        name = inner.get("name") if isinstance(inner, dict) else None
        if not isinstance(name, str) or not name.strip():
            name = f"character-{character_id}"
        filename = character_filename(name, character_id)
        if output_path:
            path = Path(output_path).expanduser()
            if path.is_dir():
                path = path / filename
        else:
            path = self._download_dir / filename

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info(f"[ROUTER] Character {character_id} written to {path}")
        return f"Character data for '{name}' saved to: {path}"

    async def _fetch_character_json(self, page: Page, character_id: str) -> dict:
        url = CHARACTER_SERVICE_URL.format(character_id=character_id)
        logger.info(f"[ROUTER] Fetching {url} from inside the page")
        try:
            result = await page.evaluate(_FETCH_JSON_JS, url)
        except Exception as e:
            raise UpstreamAPIFailure(f"Character API request failed: {e}") from e

        status = result.get("status", 0)
        if not result.get("ok"):
            raise UpstreamAPIFailure(f"API returned {status}: {result.get('statusText', '')}".strip(), status)
        try:
            return json.loads(result.get("body") or "")
        except ValueError as e:
            raise UpstreamAPIFailure(f"API returned invalid JSON: {e}", status) from e

    async def _scrape_character_sheet(self, page: Page, character_id: str) -> Character:
        await self._open(page, CHARACTER_SHEET.url_for(character_id=character_id))
        return parse_character_sheet(await page.content(), character_id)

    # ── Campaigns ────────────────────────────────────────────────────────────

    async def get_campaign(self, campaign_id: str) -> Campaign:
        campaign_id = _numeric_id(campaign_id, "campaign_id")
        async with self._exclusive("get_campaign"):
            page = await self._authenticated_page()
            await self._open(page, CAMPAIGN_DETAIL.url_for(campaign_id=campaign_id))
            return parse_campaign(await page.content(), campaign_id)

    async def list_campaigns(self) -> CampaignList:
        async with self._exclusive("list_campaigns"):
            page = await self._authenticated_page()
            await self._open(page, CAMPAIGN_LIST.url)
            return parse_campaign_list(await page.content())

    # ── Library ──────────────────────────────────────────────────────────────

    async def list_library(self) -> Library:
        async with self._exclusive("list_library"):
            page = await self._authenticated_page()
            await self._open(page, LIBRARY.url)
            return parse_library(await page.content())

    async def read_book(self, book_slug: str, chapter_slug: Optional[str] = None) -> BookContent:
        book_slug = _slug_path(book_slug, "book_slug")
        chapter = _slug_path(chapter_slug, "chapter_slug") if chapter_slug else None
        url = f"{DDB_SOURCES_URL}/{book_slug}" + (f"/{chapter}" if chapter else "")

        async with self._exclusive("read_book"):
            page = await self._authenticated_page()
            await self._open(page, url, timeout=BOOK_TIMEOUT, settle=self._book_settle)
            try:
                await page.wait_for_selector(BOOK_READY_SELECTOR, timeout=BOOK_RENDER_TIMEOUT)
            except PlaywrightTimeoutError:
                logger.warning(f"[ROUTER] Reading area not found within {BOOK_RENDER_TIMEOUT // 1000}s, proceeding anyway")
            html = await page.content()

        text = render_document(html)
        return BookContent(
            slug=book_slug,
            chapter=chapter,
            url=url,
            text=truncate(text, BOOK_CHAR_LIMIT, BOOK_TRUNCATION_NOTICE),
            truncated=len(text) > BOOK_CHAR_LIMIT,
        )

    # ── Search ───────────────────────────────────────────────────────────────

    async def search(self, query: str, category: str = "all") -> SearchResults:
        category = (category or "all").lower()
        if category not in SEARCH_CATEGORY_PATHS:
            raise InvalidInput(
                f"Unknown category '{category}'. Use one of: {', '.join(SEARCH_CATEGORY_PATHS)}."
            )
        query = (query or "").strip()
        if not query:
            raise InvalidInput("query must not be empty.")
        url = build_search_url(query, category)

        async with self._exclusive("search"):
            page = await self._authenticated_page()
            await self._open(page, url, settle=self._search_settle)
            return parse_search_results(await page.content(), query, category, url)

    # ── Generic Pages ────────────────────────────────────────────────────────

    async def navigate(self, url: str) -> str:
        url = validate_site_url(url)
        async with self._exclusive("navigate"):
            page = await self._authenticated_page()
            await self._open(page, url, settle=self._search_settle)
            final_url = page.url
            text = render_page_text(await page.content())
        return f"URL: {final_url}\n\n{truncate(text, PAGE_CHAR_LIMIT, PAGE_TRUNCATION_NOTICE)}"

    async def current_page(self) -> str:
        async with self._exclusive("current_page"):
            page = await self._runtime.active_page()
            url = page.url
            text = render_page_text(await page.content())
        return f"Current URL: {url}\n\n{truncate(text, PAGE_CHAR_LIMIT, CURRENT_PAGE_TRUNCATION_NOTICE)}"

    async def interact(self, action: str, selector: str = "", value: Optional[str] = None) -> str:
        if action not in INTERACT_ACTIONS:
            raise InvalidInput(f"Unknown action: {action}. Use 'click', 'fill', or 'screenshot'.")
        if action != "screenshot" and not (selector or "").strip():
            raise InvalidInput(f"'selector' is required for {action} action.")
        if action == "fill" and value is None:
            raise InvalidInput("'value' is required for fill action.")

        async with self._exclusive("interact"):
            page = await self._runtime.active_page()
            if action == "screenshot":
                self._screenshot_dir.mkdir(parents=True, exist_ok=True)
                path = self._screenshot_dir / f"ddb-screenshot-{int(time.time() * 1000)}.png"
                await page.screenshot(path=str(path), full_page=False)
                return f"Screenshot saved to: {path}"

            target = page.locator(selector).first
            try:
                if action == "click":
                    await target.click()
                else:
                    await target.fill(value)
            except PlaywrightTimeoutError as e:
                raise NavigationTimeout(f"Timed out waiting for element '{selector}'") from e
            await asyncio.sleep(self._interact_settle if action == "click" else self._interact_settle / 2)

        if action == "click":
            return f"Clicked element: {selector}"
        return f"Filled '{selector}' with: {value}"
