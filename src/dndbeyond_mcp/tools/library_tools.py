"""MCP tools for the sourcebook library."""

from __future__ import annotations

from .session_tools import call_tool


async def list_library() -> str:
    """List sourcebooks the account owns or has shared to it."""
    return await call_tool("Failed to list library", "/library")


async def read_book(book_slug: str, chapter_slug: str = "") -> str:
    """Read a sourcebook section as structured text.

    Args:
        book_slug: Slug from the library, e.g. "players-handbook".
        chapter_slug: Optional chapter path, e.g. "spells".
    """
    body = {"book_slug": book_slug}
    if chapter_slug:
        body["chapter_slug"] = chapter_slug
    return await call_tool("Failed to read book", "/book", body)
