"""MCP tool for searching D&D Beyond."""

from __future__ import annotations

from .session_tools import call_tool


async def search(query: str, category: str = "all") -> str:
    """Search the whole site or one listing category.

    Args:
        query: Search text, e.g. "Fireball".
        category: "all", "spells", "monsters", "items", "races",
                  "classes" or "feats".

    Returns:
        JSON with query, resolved URL, count and results.
    """
    return await call_tool("Search failed", "/search", {"query": query, "category": category})
