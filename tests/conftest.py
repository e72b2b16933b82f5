import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from dndbeyond_mcp.constants import DDB_BASE
from dndbeyond_mcp.session_manager.auth import AuthController
from dndbeyond_mcp.session_manager.router import OperationRouter
from dndbeyond_mcp.session_manager.store import SessionStore

SIGNED_IN_HOME = """
<html><head><title>D&amp;D Beyond</title></head>
<body>
  <header><a href="/my-campaigns">My Campaigns</a><a class="user" href="/members/thorin">thorin</a></header>
  <main><h1>Welcome back</h1></main>
</body></html>
"""

SIGNED_OUT_HOME = """
<html><head><title>D&amp;D Beyond</title></head>
<body>
  <header><a href="/sign-in">Sign In</a></header>
  <main><h1>Welcome</h1></main>
</body></html>
"""

EMPTY_PAGE = "<html><body></body></html>"


class FakePage:
    """Stands in for a Playwright page.

    ``routes`` maps a URL to the HTML served there, to a (final_url, html)
    pair for redirects, or to an exception that ``goto`` raises.
    """

    def __init__(self, routes=None, url="about:blank", html=EMPTY_PAGE, goto_delay=0.0):
        self.routes = dict(routes or {})
        self.url = url
        self.html = html
        self.visited = []
        self.closed = False
        self.goto_delay = goto_delay
        self.active = 0
        self.max_active = 0
        self.default_timeout = None
        self.evaluate = AsyncMock(return_value=None)
        self.screenshot = AsyncMock()
        self.wait_for_selector = AsyncMock()
        self.locator = MagicMock()
        self.locator.return_value.first.click = AsyncMock()
        self.locator.return_value.first.fill = AsyncMock()

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.goto_delay:
                await asyncio.sleep(self.goto_delay)
            route = self.routes.get(url, EMPTY_PAGE)
            if isinstance(route, Exception):
                raise route
            if isinstance(route, tuple):
                self.url, self.html = route
            else:
                self.url, self.html = url, route
        finally:
            self.active -= 1

    async def content(self):
        return self.html

    def is_closed(self):
        return self.closed

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout


class FakeContext:
    def __init__(self, pages=None, cookies=None):
        self.pages = list(pages or [])
        self.cookies = cookies if cookies is not None else [{"name": "CobaltSession", "value": "abc"}]
        self.saved_to = []
        self.close = AsyncMock()

    async def new_page(self):
        page = FakePage()
        self.pages.append(page)
        return page

    async def storage_state(self, path=None):
        state = {"cookies": self.cookies, "origins": []}
        if path:
            self.saved_to.append(path)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(state, f)
        return state


class FakeRuntime:
    """Browser runtime that hands out one fixed page without launching anything."""

    def __init__(self, page):
        self.page = page
        self.context = FakeContext([page])
        self.is_running = True
        self.release_count = 0

    @property
    def handle(self):
        if not self.is_running:
            return None
        return SimpleNamespace(context=self.context, engine="fake")

    async def acquire(self):
        self.is_running = True
        return self.handle

    async def active_page(self):
        await self.acquire()
        return self.page

    async def release(self):
        self.release_count += 1
        self.is_running = False


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "session.json")


@pytest.fixture
def make_auth(store):
    def factory(**overrides):
        options = dict(login_timeout=1.0, poll_interval=0.01, settle_delay=0, probe_timeout=1000)
        options.update(overrides)
        return AuthController(store, **options)

    return factory


@pytest.fixture
def make_router(tmp_path, make_auth):
    """Build a router over a FakePage that starts out signed in."""

    def factory(routes=None, page=None, auth=None):
        if page is None:
            all_routes = {DDB_BASE: SIGNED_IN_HOME}
            all_routes.update(routes or {})
            page = FakePage(all_routes)
        runtime = FakeRuntime(page)
        router = OperationRouter(
            runtime,
            auth or make_auth(),
            page_settle=0,
            search_settle=0,
            book_settle=0,
            interact_settle=0,
            download_dir=tmp_path / "downloads",
            screenshot_dir=tmp_path / "screenshots",
        )
        return router, page, runtime

    return factory
