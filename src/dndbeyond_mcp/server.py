"""MCP Server entry point for the D&D Beyond plugin.

Exposes 15 tools via the Model Context Protocol:
- Session: ddb_login, ddb_cancel_login, ddb_session_status, ddb_close_browser
- Characters: ddb_list_characters, ddb_get_character, ddb_download_character
- Campaigns: ddb_get_campaign, ddb_list_campaigns
- Browsing: ddb_navigate, ddb_interact, ddb_current_page
- Content: ddb_search, ddb_list_library, ddb_read_book

The Session Manager HTTP service (aiohttp on localhost:8025) is auto-started
as part of the MCP server lifecycle, no separate process needed.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import LOG_LEVEL, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT, ensure_dirs
from .tools.campaign_tools import get_campaign, list_campaigns
from .tools.character_tools import download_character, get_character, list_characters
from .tools.library_tools import list_library, read_book
from .tools.navigation_tools import current_page, interact, navigate
from .tools.search_tools import search
from .tools.session_tools import cancel_login, close_browser, login, session_status

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("dndbeyond-mcp")

# Ensure session and download directories exist
ensure_dirs()


# ── Lifespan: auto-start Session Manager ─────────────────────────────────────


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Start the Session Manager HTTP service alongside the MCP server."""
    from .session_manager.manager import create_app

    app = create_app()
    runner = AppRunner(app)
    await runner.setup()
    site = TCPSite(runner, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT)
    managed = False
    try:
        await site.start()
        logger.info(
            "Session Manager auto-started on %s:%s", SESSION_MANAGER_HOST, SESSION_MANAGER_PORT
        )
        managed = True
    except OSError:
        # Port already in use, assume Session Manager was started manually
        logger.info(
            "Session Manager already running on %s:%s", SESSION_MANAGER_HOST, SESSION_MANAGER_PORT
        )
        await runner.cleanup()

    try:
        yield {}
    finally:
        if managed:
            await runner.cleanup()
            logger.info("Session Manager stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "dndbeyond",
    lifespan=lifespan,
    instructions=(
        "D&D Beyond - read characters, campaigns, sourcebooks and search results "
        "through a signed-in browser. The Session Manager starts automatically with this server. "
        "Call ddb_session_status to see whether the browser is running and signed in. "
        "If a tool reports 'Not logged in', call ddb_login and ask the user to finish "
        "signing in in the browser window. "
        "Use ddb_list_characters and ddb_get_character for characters, ddb_list_campaigns "
        "and ddb_get_campaign for campaigns, ddb_search for rules content, and "
        "ddb_list_library with ddb_read_book for owned sourcebooks."
    ),
)


# ── Session Tools ────────────────────────────────────────────────────────────


@mcp.tool(name="ddb_login")
async def tool_login() -> str:
    """Log in to D&D Beyond.

    Opens the D&D Beyond login page in a visible browser window and waits
    up to 3 minutes for the user to complete sign-in. Returns immediately
    if the saved session is still valid. The session is saved for reuse.
    """
    return await login()


@mcp.tool(name="ddb_cancel_login")
async def tool_cancel_login() -> str:
    """Cancel a pending ddb_login that is waiting for the user."""
    return await cancel_login()


@mcp.tool(name="ddb_session_status")
async def tool_session_status() -> str:
    """Check whether the browser is running and the session is signed in.

    Returns: browser state, auth state, saved session path and cookie count.
    """
    return await session_status()


@mcp.tool(name="ddb_close_browser")
async def tool_close_browser() -> str:
    """Close the browser. The saved session remains for next time."""
    return await close_browser()


# ── Character Tools ──────────────────────────────────────────────────────────


@mcp.tool(name="ddb_list_characters")
async def tool_list_characters() -> str:
    """List all characters on the D&D Beyond account.

    Returns name, id, level, race, class and URL for each character.
    """
    return await list_characters()


@mcp.tool(name="ddb_get_character")
async def tool_get_character(character_id: str, fallback_scrape: bool = False) -> str:
    """Get full character data as JSON from the D&D Beyond character service.

    Args:
        character_id: The numeric character id (from the character URL).
        fallback_scrape: If the API fails, scrape the rendered character sheet instead.
    """
    return await get_character(character_id, fallback_scrape)


@mcp.tool(name="ddb_download_character")
async def tool_download_character(character_id: str, output_path: str = "") -> str:
    """Download a character's full JSON to a file.

    Args:
        character_id: The numeric character id.
        output_path: File or directory to write to. Defaults to ~/Downloads.
    """
    return await download_character(character_id, output_path)


# ── Campaign Tools ───────────────────────────────────────────────────────────


@mcp.tool(name="ddb_get_campaign")
async def tool_get_campaign(campaign_id: str) -> str:
    """Get campaign details: name, DM, description and character roster.

    Args:
        campaign_id: The numeric campaign id (from the campaign URL).
    """
    return await get_campaign(campaign_id)


@mcp.tool(name="ddb_list_campaigns")
async def tool_list_campaigns() -> str:
    """List all campaigns the account is part of, with the account's role."""
    return await list_campaigns()


# ── Browsing Tools ───────────────────────────────────────────────────────────


@mcp.tool(name="ddb_navigate")
async def tool_navigate(url: str) -> str:
    """Open any D&D Beyond page and return its visible text.

    Args:
        url: Full https://www.dndbeyond.com/... URL. Other sites are rejected.
    """
    return await navigate(url)


@mcp.tool(name="ddb_interact")
async def tool_interact(action: str, selector: str = "", value: Optional[str] = None) -> str:
    """Interact with the current page.

    Args:
        action: "click", "fill" or "screenshot".
        selector: CSS selector for click and fill.
        value: Text to type, required for fill.
    """
    return await interact(action, selector, value)


@mcp.tool(name="ddb_current_page")
async def tool_current_page() -> str:
    """Return the URL and text of the page the browser is currently showing."""
    return await current_page()


# ── Content Tools ────────────────────────────────────────────────────────────


@mcp.tool(name="ddb_search")
async def tool_search(query: str, category: str = "all") -> str:
    """Search D&D Beyond content.

    Args:
        query: Search text, e.g. "Fireball".
        category: "all", "spells", "monsters", "items", "races", "classes" or "feats".
    """
    return await search(query, category)


@mcp.tool(name="ddb_list_library")
async def tool_list_library() -> str:
    """List owned and shared sourcebooks with the slug to pass to ddb_read_book."""
    return await list_library()


@mcp.tool(name="ddb_read_book")
async def tool_read_book(book_slug: str, chapter_slug: str = "") -> str:
    """Read a sourcebook or one of its chapters as structured text.

    Long chapters are truncated; read a narrower chapter slug for the rest.

    Args:
        book_slug: Book slug from ddb_list_library, e.g. "players-handbook".
        chapter_slug: Optional chapter slug, e.g. "spells".
    """
    return await read_book(book_slug, chapter_slug)


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting D&D Beyond MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
