"""Cloudflare interstitial detection for pages served in front of D&D Beyond."""

from __future__ import annotations

import asyncio
import logging
import sys

from bs4 import BeautifulSoup
from playwright.async_api import Page

from ..constants import CHALLENGE_SELECTORS, CHALLENGE_TITLES

logger = logging.getLogger(__name__)
# MCP servers MUST NOT write to stdout
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def is_challenge_page(html: str) -> bool:
    """Check whether rendered HTML is a Cloudflare "Just a moment..." page.

    Only the title and the challenge widgets count: the challenge-platform
    beacon script is present on ordinary pages too.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = soup.find("title")
    if title and title.get_text(strip=True).lower() in CHALLENGE_TITLES:
        return True
    return any(soup.select_one(selector) for selector in CHALLENGE_SELECTORS)


async def detect_challenge(page: Page) -> bool:
    try:
        return is_challenge_page(await page.content())
    except Exception:
        return False


async def wait_for_challenge_resolution(
    page: Page, timeout: float = 20.0, interval: float = 2.0
) -> bool:
    """Wait for a Cloudflare challenge to auto-resolve.

    Returns True if the page is (or becomes) a normal page, False on timeout.
    """
    if not await detect_challenge(page):
        return True

    logger.info("[CHALLENGE] Cloudflare challenge detected, waiting for auto-resolution...")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while loop.time() < deadline:
        await asyncio.sleep(interval)
        if not await detect_challenge(page):
            logger.info("[CHALLENGE] Challenge resolved automatically.")
            return True

    logger.warning("[CHALLENGE] Challenge did not auto-resolve within timeout.")
    return False
