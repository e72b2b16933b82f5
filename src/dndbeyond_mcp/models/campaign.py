"""Pydantic models for D&D Beyond campaigns."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CampaignCharacter(BaseModel):
    """One card in a campaign's active character roster."""

    id: Optional[str] = None
    name: str
    summary: Optional[str] = None  # e.g. "Level 6 | Human | Cleric"
    player: Optional[str] = None
    url: Optional[str] = None


class Campaign(BaseModel):
    id: str
    name: Optional[str] = None
    dungeon_master: Optional[str] = None
    description: Optional[str] = None
    characters: list[CampaignCharacter] = Field(default_factory=list)


class CampaignSummary(BaseModel):
    id: str
    name: str
    role: Optional[str] = None  # "DM" or "Player"
    url: Optional[str] = None


class CampaignList(BaseModel):
    count: int = 0
    campaigns: list[CampaignSummary] = Field(default_factory=list)
