"""Login state machine and session-validity probe for D&D Beyond.

The site signs users in through an external identity provider with an
arbitrary number of redirects, so there is no callback to hook into.
Instead the login page is opened in the visible browser and the current URL
is polled until it comes back to dndbeyond.com outside the sign-in paths.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import sys
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag
from playwright.async_api import BrowserContext, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import (
    LOGIN_POLL_INTERVAL,
    LOGIN_TIMEOUT,
    PAGE_TIMEOUT,
    PROBE_SETTLE,
    PROBE_TIMEOUT,
)
from ..constants import DDB_BASE, DDB_LOGIN_URL, LOGIN_PATH_MARKERS, SIGN_IN_LABELS, SITE_HOSTS
from ..errors import LoginCancelled, LoginFailed, LoginTimeout, NavigationTimeout, Unauthenticated
from ..models.session import LoginResult
from .browser import first_page
from .challenge import is_challenge_page, wait_for_challenge_resolution
from .store import SessionStore

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

_HIDDEN_STYLE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)


class AuthState(str, enum.Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


def is_site_landing(url: str) -> bool:
    """True when ``url`` is on dndbeyond.com and not part of the sign-in flow."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or (parsed.hostname or "") not in SITE_HOSTS:
        return False
    path = parsed.path.lower()
    return not any(marker in path for marker in LOGIN_PATH_MARKERS)


def _is_hidden(el: Tag) -> bool:
    node: Optional[Tag] = el
    while isinstance(node, Tag):
        if node.has_attr("hidden"):
            return True
        if str(node.get("aria-hidden", "")).lower() == "true":
            return True
        if _HIDDEN_STYLE.search(str(node.get("style", ""))):
            return True
        node = node.parent
    return False


def has_sign_in_control(html: str) -> bool:
    """Whether the page shows a 'Sign In' / 'Log In' link or button.

    These only render for anonymous visitors.
    """
    soup = BeautifulSoup(html, "html.parser")
    for el in soup.select("a, button, [role='button']"):
        label = " ".join(el.get_text(" ").split()).lower()
        if label in SIGN_IN_LABELS and not _is_hidden(el):
            return True
    return False


class AuthController:
    """Decides whether the shared browser context is signed in and drives login.

    There's no cached "logged in" flag: ``state`` is only for status
    reporting, and every operation probes again because the site may drop
    the session at any time.
    """

    def __init__(
        self,
        store: SessionStore,
        login_timeout: float = LOGIN_TIMEOUT,
        poll_interval: float = LOGIN_POLL_INTERVAL,
        settle_delay: float = PROBE_SETTLE,
        probe_timeout: int = PROBE_TIMEOUT,
    ):
        self._store = store
        self._login_timeout = login_timeout
        self._poll_interval = poll_interval
        self._settle_delay = settle_delay
        self._probe_timeout = probe_timeout
        self._cancel = asyncio.Event()
        self.state = AuthState.UNKNOWN
        self.login_in_progress = False

    # ── Probe ────────────────────────────────────────────────────────────────

    async def probe(self, page: Page) -> bool:
        """Load the site root and check whether it looks signed in.

        Fails closed: navigation or evaluation errors count as signed out.
        """
        self.state = AuthState.CHECKING
        try:
            await page.goto(DDB_BASE, wait_until="domcontentloaded", timeout=self._probe_timeout)
            await asyncio.sleep(self._settle_delay)
            await wait_for_challenge_resolution(page, interval=max(self._settle_delay, 0.1))
        except Exception as e:
            logger.warning(f"[AUTH] Probe navigation failed: {e}")
            self.state = AuthState.UNAUTHENTICATED
            return False
        return await self.probe_current_page(page)

    async def probe_current_page(self, page: Page) -> bool:
        """Check the page that's already loaded, without navigating."""
        self.state = AuthState.CHECKING
        try:
            url = page.url
            if not is_site_landing(url):
                logger.info(f"[AUTH] Not authenticated: off-site or sign-in URL {url}")
                authenticated = False
            else:
                html = await page.content()
                if is_challenge_page(html):
                    logger.info("[AUTH] Not authenticated: still on a Cloudflare interstitial")
                    authenticated = False
                elif has_sign_in_control(html):
                    logger.info("[AUTH] Not authenticated: Sign In control is visible")
                    authenticated = False
                else:
                    authenticated = True
        except Exception as e:
            logger.warning(f"[AUTH] Probe evaluation failed: {e}")
            authenticated = False

        self.state = AuthState.AUTHENTICATED if authenticated else AuthState.UNAUTHENTICATED
        return authenticated

    async def require_authenticated(self, page: Page):
        if not await self.probe(page):
            raise Unauthenticated()

    # ── Login ────────────────────────────────────────────────────────────────

    def cancel_login(self) -> bool:
        """Abort a login that is waiting on the redirect. Returns False if none is."""
        if not self.login_in_progress:
            return False
        self._cancel.set()
        return True

    async def login(self, context: BrowserContext) -> LoginResult:
        page = await first_page(context)
        self._cancel.clear()
        self.login_in_progress = True
        try:
            if await self.probe(page):
                # A restored session can still be valid; persist it so it survives restarts
                path = await self._store.save(context)
                return LoginResult(
                    authenticated=True,
                    already_authenticated=True,
                    session_path=str(path),
                    message="Already logged in. Session is active.",
                )

            logger.info("[AUTH] Opening D&D Beyond login page. Please complete login in the browser window.")
            try:
                await page.goto(DDB_LOGIN_URL, wait_until="domcontentloaded", timeout=PAGE_TIMEOUT)
            except PlaywrightTimeoutError as e:
                raise NavigationTimeout(f"Timed out opening the login page: {e}") from e

            await self.wait_for_redirect(page)
            await asyncio.sleep(self._settle_delay)

            if not await self.probe_current_page(page):
                raise LoginFailed(
                    "Login may not have completed successfully. Please try again or check if "
                    "D&D Beyond requires additional verification."
                )

            path = await self._store.save(context)
            logger.info("[AUTH] Login confirmed.")
            return LoginResult(
                authenticated=True,
                session_path=str(path),
                message="Successfully logged in to D&D Beyond. Session saved to disk.",
            )
        finally:
            self.login_in_progress = False

    async def wait_for_redirect(self, page: Page):
        """Block until the login flow hands the browser back to dndbeyond.com.

        Polls ``page.url`` every ``poll_interval`` seconds. Raises
        ``LoginTimeout`` after ``login_timeout`` seconds, ``LoginCancelled``
        when ``cancel_login`` is called and ``LoginFailed`` if the window
        is closed.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._login_timeout

        while True:
            if page.is_closed():
                raise LoginFailed("The login window was closed before login completed.")
            if is_site_landing(page.url):
                logger.info(f"[AUTH] Redirect settled on {page.url}")
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise LoginTimeout(
                    "Login timed out. Please complete login in the browser window and try again."
                )
            try:
                await asyncio.wait_for(self._cancel.wait(), timeout=min(self._poll_interval, remaining))
            except asyncio.TimeoutError:
                continue
            raise LoginCancelled("Login was cancelled.")
