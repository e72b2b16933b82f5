"""Pydantic models for D&D Beyond character data."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Character(BaseModel):
    """A character as seen on the roster page or the rendered sheet.

    Every field is optional: extraction is best-effort per field, and a
    missing value is omitted from the serialized record.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    level: Optional[int] = None
    race: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="class")
    hp: Optional[int] = None
    ability_scores: Optional[dict[str, str]] = None
    skills: Optional[dict[str, str]] = None
    url: Optional[str] = None


class CharacterList(BaseModel):
    """All characters on the account's /characters page."""

    count: int = 0
    characters: list[Character] = Field(default_factory=list)
