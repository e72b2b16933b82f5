"""Browser runtime: one browser process, one context, shared by every operation."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from ..config import BROWSER_ENGINE, BROWSER_HEADLESS, BROWSER_TIMEOUT
from ..constants import (
    BROWSER_ENGINES,
    CHROMIUM_ARGS,
    CHROMIUM_IGNORE_DEFAULT_ARGS,
    USER_AGENT,
    VIEWPORT,
)
from .store import SessionStore

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

Shutdown = Callable[[], Awaitable[None]]


@dataclass
class BrowserHandle:
    """A live browser process paired with its single browsing context."""

    browser: Browser
    context: BrowserContext
    engine: str
    shutdown: Shutdown


async def first_page(context: BrowserContext, timeout: int = BROWSER_TIMEOUT) -> Page:
    """Return the context's first open page, opening one if there is none."""
    pages = context.pages
    if pages:
        return pages[0]
    page = await context.new_page()
    page.set_default_timeout(timeout)
    return page


class BrowserRuntime:
    """Owns the process-wide browser handle.

    ``acquire`` is idempotent and launches lazily; ``release`` tears
    everything down and may be called any number of times. Timeouts in
    individual operations never touch the handle.
    """

    def __init__(
        self,
        store: SessionStore,
        engine: str = BROWSER_ENGINE,
        headless: bool = BROWSER_HEADLESS,
        timeout: int = BROWSER_TIMEOUT,
    ):
        if engine not in BROWSER_ENGINES:
            raise ValueError(f"Unknown browser engine '{engine}'. Use one of: {', '.join(BROWSER_ENGINES)}")
        self._store = store
        self._engine = engine
        self._headless = headless
        self._timeout = timeout
        self._handle: Optional[BrowserHandle] = None
        self._launch_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[BrowserHandle]:
        return self._handle

    async def acquire(self) -> BrowserHandle:
        async with self._launch_lock:
            if self._handle is not None:
                if self._handle.browser.is_connected():
                    return self._handle
                logger.warning("[BROWSER] Browser disconnected (window closed?), relaunching...")
                await self._close_handle(self._handle)
                self._handle = None

            logger.info(f"[BROWSER] Launching {self._engine} (headless={self._headless})...")
            browser, shutdown = await self._start_browser()
            try:
                context = await self._new_context(browser)
            except Exception:
                await shutdown()
                raise
            self._handle = BrowserHandle(
                browser=browser, context=context, engine=self._engine, shutdown=shutdown
            )
            return self._handle

    async def active_page(self) -> Page:
        handle = await self.acquire()
        return await first_page(handle.context, self._timeout)

    async def release(self):
        async with self._launch_lock:
            handle, self._handle = self._handle, None
            if handle is None:
                return
            logger.info("[BROWSER] Stopping browser...")
            await self._close_handle(handle)
            logger.info("[BROWSER] Browser stopped.")

    async def _new_context(self, browser: Browser) -> BrowserContext:
        options = self._store.context_options()
        if options:
            logger.info(f"[BROWSER] Restoring saved session from {self._store.path}")
        else:
            logger.info("[BROWSER] No saved session, starting with a bare context")
        return await browser.new_context(
            user_agent=USER_AGENT,
            viewport=dict(VIEWPORT),
            **options,
        )

    async def _start_browser(self) -> tuple[Browser, Shutdown]:
        if self._engine == "camoufox":
            return await self._start_camoufox()
        return await self._start_chromium()

    async def _start_chromium(self) -> tuple[Browser, Shutdown]:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=self._headless,
                args=CHROMIUM_ARGS,
                ignore_default_args=CHROMIUM_IGNORE_DEFAULT_ARGS,
            )
        except Exception:
            await playwright.stop()
            raise

        async def shutdown():
            try:
                await browser.close()
            finally:
                await playwright.stop()

        return browser, shutdown

    async def _start_camoufox(self) -> tuple[Browser, Shutdown]:
        camoufox = AsyncCamoufox(
            headless=self._headless,
            humanize=True,
            i_know_what_im_doing=True,
        )
        browser = await camoufox.__aenter__()

        async def shutdown():
            await camoufox.__aexit__(None, None, None)

        return browser, shutdown

    async def _close_handle(self, handle: BrowserHandle):
        try:
            await handle.context.close()
        except Exception as e:
            logger.warning(f"[BROWSER] Error closing context: {e}")
        try:
            await handle.shutdown()
        except Exception as e:
            logger.warning(f"[BROWSER] Error closing {handle.engine}: {e}")
