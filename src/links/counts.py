"""Incoming-edge counts: a coarse display label plus the exact number."""

from __future__ import annotations

import logging

from backlinks.links.edges import EdgeStore
from backlinks.site.base import MetadataStore, TagStore

logger = logging.getLogger(__name__)

MANY_THRESHOLD = 10


def count_label(count: int) -> str:
    """Bucket *count* into its display label: zero, 1-9 exactly, or many."""
    if count <= 0:
        return "Has 0 backlinks"
    if count == 1:
        return "Has 1 backlink"
    if count < MANY_THRESHOLD:
        return f"Has {count} backlinks"
    return "Has many backlinks"


class CountLabelManager:
    """Keep each item's count label and numeric count in step with its edges."""

    def __init__(
        self,
        edges: EdgeStore,
        tags: TagStore,
        meta: MetadataStore,
        *,
        count_taxonomy: str,
        count_meta_key: str,
    ) -> None:
        self._edges = edges
        self._tags = tags
        self._meta = meta
        self._count_taxonomy = count_taxonomy
        self._count_meta_key = count_meta_key

    def refresh_count(self, item_id: int) -> int:
        """Recompute and store the incoming count of *item_id*; returns it."""
        count = len(self._edges.get_incoming_edges(item_id))
        self._tags.assign_labels(item_id, self._count_taxonomy, [count_label(count)])
        # Numeric copy for sorting by backlink count.
        self._meta.set_numeric_field(item_id, self._count_meta_key, count)
        logger.debug("Item %d: %d backlink(s)", item_id, count)
        return count

    def incoming_count(self, item_id: int) -> int | None:
        """The stored count, or ``None`` if the item was never counted."""
        return self._meta.get_numeric_field(item_id, self._count_meta_key)

    def label_of(self, item_id: int) -> str | None:
        labels = self._tags.labels_of(item_id, self._count_taxonomy)
        return labels[0] if labels else None
