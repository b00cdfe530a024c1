"""Core Pydantic models for the link graph."""

from __future__ import annotations

from collections.abc import Collection
from enum import StrEnum

from pydantic import BaseModel, Field

from backlinks.site.models import Item


class ScanOutcome(StrEnum):
    """What a scan request did."""

    SCANNED = "scanned"
    INELIGIBLE = "ineligible"
    UNCHANGED = "unchanged"
    DEFERRED = "deferred"


class SuggestionDirection(StrEnum):
    """Which existing edges are excluded from suggestions."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


class BacklogPhase(StrEnum):
    """States of the backlog scheduler."""

    IDLE = "idle"
    PENDING = "pending"
    DRAINING = "draining"


class TrackingScope(BaseModel):
    """The item types and statuses the link graph tracks."""

    post_types: list[str] = Field(default_factory=lambda: ["post", "page"])
    post_statuses: list[str] = Field(default_factory=lambda: ["publish", "future"])

    def type_ok(self, item: Item) -> bool:
        return item.type in self.post_types

    def accepts(self, item: Item, statuses: Collection[str] | None = None) -> bool:
        """Return ``True`` if *item* has a tracked type and status."""
        return self.type_ok(item) and item.status in (statuses or self.post_statuses)


class ScanState(BaseModel):
    """Marks an item as registered; absent for backlog items."""

    item_id: int
    last_scanned_modified_at: int


class ExtractionResult(BaseModel):
    """Outgoing targets of an item body plus the hrefs that did not resolve."""

    targets: list[int] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)


class ScanResult(BaseModel):
    """Result of a single scan request."""

    item_id: int
    outcome: ScanOutcome
    targets: list[int] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)

    @property
    def scanned(self) -> bool:
        return self.outcome == ScanOutcome.SCANNED


class Suggestion(BaseModel):
    """A candidate item and the number of terms it shares with the subject."""

    item: Item
    score: int = 0


class DrainReport(BaseModel):
    """Outcome of one backlog drain batch."""

    scanned: list[int] = Field(default_factory=list)
    failed: dict[int, str] = Field(default_factory=dict)
    remaining: int = 0


class LinkStatusRow(BaseModel):
    """An item with its incoming and outgoing edge counts."""

    item: Item
    incoming: int = 0
    outgoing: int = 0
