"""Pydantic models for search results."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    name: str
    category: Optional[str] = None
    url: Optional[str] = None
    slug: Optional[str] = None
    extras: Optional[str] = None  # e.g. "3rd Level | evocation"


class SearchResults(BaseModel):
    """A search response; ``count == 0`` means nothing matched, not a failure."""

    query: str
    category: str
    url: str
    count: int = 0
    results: list[SearchResult] = Field(default_factory=list)
    message: Optional[str] = None
