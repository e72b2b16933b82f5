"""MCP tools for D&D Beyond characters."""

from __future__ import annotations

from .session_tools import call_tool


async def list_characters() -> str:
    """List every character on the account.

    Returns:
        JSON with name, id, level, race, class and sheet URL per character.
    """
    return await call_tool("Failed to list characters", "/characters")


async def get_character(character_id: str, fallback_scrape: bool = False) -> str:
    """Get full character data from the character service.

    Args:
        character_id: Numeric id from the character URL.
        fallback_scrape: Scrape the rendered sheet if the API fails.

    Returns:
        The character service JSON, or a scraped summary when the fallback ran.
    """
    return await call_tool(
        "Failed to get character",
        "/character",
        {"character_id": str(character_id), "fallback_scrape": fallback_scrape},
    )


async def download_character(character_id: str, output_path: str = "") -> str:
    """Save the character service JSON to a file.

    Args:
        character_id: Numeric id from the character URL.
        output_path: File or directory to write to (default ~/Downloads).

    Returns:
        The path the JSON was written to.
    """
    body = {"character_id": str(character_id)}
    if output_path:
        body["output_path"] = output_path
    return await call_tool("Download failed", "/character/download", body)
