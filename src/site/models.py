"""Pydantic models for the content site the link graph is built over."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Item(BaseModel):
    """A content item (post, page, ...) owned by the site."""

    id: int
    type: str = "post"
    status: str = "publish"
    title: str = ""
    slug: str = ""
    content: str = ""
    excerpt: str = ""
    published_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)


class Taxonomy(BaseModel):
    """A named classification scheme and the item types it applies to."""

    name: str
    object_types: list[str] = Field(default_factory=list)
    public: bool = True
    label: str = ""

    def applies_to(self, item_type: str) -> bool:
        """Return ``True`` if items of *item_type* can carry terms of this taxonomy."""
        return item_type in self.object_types
