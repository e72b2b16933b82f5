"""Pydantic models for the sourcebook library and book content."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LibraryEntry(BaseModel):
    title: str
    slug: str
    ownership: Optional[str] = None  # e.g. "Owned", "Shared"
    url: Optional[str] = None


class Library(BaseModel):
    count: int = 0
    books: list[LibraryEntry] = Field(default_factory=list)


class BookContent(BaseModel):
    """Rendered text of a sourcebook page or chapter."""

    slug: str
    chapter: Optional[str] = None
    url: str
    text: str = ""
    truncated: bool = False

    def render(self) -> str:
        heading = f"# {self.slug}" + (f" / {self.chapter}" if self.chapter else "")
        return f"{heading}\nURL: {self.url}\n\n{self.text}"
