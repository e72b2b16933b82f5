"""MCP tools for D&D Beyond campaigns."""

from __future__ import annotations

from .session_tools import call_tool


async def get_campaign(campaign_id: str) -> str:
    """Get a campaign's name, DM, description and character roster.

    Args:
        campaign_id: Numeric id from the campaign URL.
    """
    return await call_tool("Failed to get campaign", "/campaign", {"campaign_id": str(campaign_id)})


async def list_campaigns() -> str:
    """List campaigns the account plays in or runs."""
    return await call_tool("Failed to list campaigns", "/campaigns")
