"""MCP tools for free-form browsing on dndbeyond.com."""

from __future__ import annotations

from .session_tools import call_tool


async def navigate(url: str) -> str:
    """Open a dndbeyond.com page and return its visible text.

    Args:
        url: Full https://www.dndbeyond.com/... URL.
    """
    return await call_tool("Navigation failed", "/navigate", {"url": url})


async def interact(action: str, selector: str = "", value: str | None = None) -> str:
    """Click, fill or screenshot on the current page.

    Args:
        action: "click", "fill" or "screenshot".
        selector: CSS selector of the target element (click and fill).
        value: Text to type (fill only).
    """
    body: dict = {"action": action, "selector": selector}
    if value is not None:
        body["value"] = value
    return await call_tool("Interaction failed", "/interact", body)


async def current_page() -> str:
    """Text of the page the browser is currently on, without navigating."""
    return await call_tool("Failed to get page content", "/current-page")
