"""Directed edges stored as synthetic labels in a tag store.

An edge ``source -> target`` exists exactly when *source* carries the
label ``p<target>`` in the link taxonomy.  Looking up everything that
bears ``p<target>`` is therefore the reverse ("who links here") index,
and replacing a source's labels replaces all its outgoing edges at once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from backlinks.errors import InvalidLabelError
from backlinks.links.models import TrackingScope
from backlinks.site.base import ItemRepository, TagStore
from backlinks.site.models import Item

logger = logging.getLogger(__name__)

LABEL_PREFIX = "p"

# Canonical decimal only, so "p07" can never alias "p7".
_LABEL_RE = re.compile(rf"^{LABEL_PREFIX}(0|[1-9][0-9]*)$")


def item_label(item_id: int) -> str:
    """Return the synthetic label for *item_id*."""
    if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id < 0:
        raise InvalidLabelError(f"Item id must be a non-negative int, got {item_id!r}")
    return f"{LABEL_PREFIX}{item_id}"


def label_item_id(label: str) -> int:
    """Inverse of :func:`item_label`."""
    match = _LABEL_RE.match(label)
    if match is None:
        raise InvalidLabelError(f"Not an item label: {label!r}")
    return int(match.group(1))


class EdgeStore:
    """Outgoing and incoming edge queries over a ``TagStore``."""

    def __init__(
        self,
        tags: TagStore,
        items: ItemRepository,
        scope: TrackingScope,
        *,
        taxonomy: str,
        count_taxonomy: str,
    ) -> None:
        self._tags = tags
        self._items = items
        self._scope = scope
        self._taxonomy = taxonomy
        self._count_taxonomy = count_taxonomy

    @property
    def taxonomy(self) -> str:
        return self._taxonomy

    # -- Writes --------------------------------------------------------------

    def set_outgoing_edges(self, source_id: int, targets: Iterable[int]) -> None:
        """Replace every outgoing edge of *source_id* with edges to *targets*."""
        labels = [item_label(t) for t in targets]
        self._tags.assign_labels(source_id, self._taxonomy, labels)
        logger.debug("Item %d: %d outgoing edge(s) stored", source_id, len(labels))

    # -- Raw id queries ------------------------------------------------------

    def outgoing_ids(self, source_id: int) -> list[int]:
        """Targets recorded for *source_id*, eligible or not."""
        ids: list[int] = []
        for label in self._tags.labels_of(source_id, self._taxonomy):
            try:
                ids.append(label_item_id(label))
            except InvalidLabelError:
                logger.warning("Item %d carries foreign label %r in %s", source_id, label, self._taxonomy)
        return ids

    def incoming_ids(self, target_id: int) -> set[int]:
        """Sources recorded as linking to *target_id*, eligible or not."""
        return self._tags.items_with_label(self._taxonomy, item_label(target_id))

    # -- Item queries (restricted to tracked items) --------------------------

    def get_outgoing_edges(self, source_id: int) -> list[Item]:
        return self._eligible(self.outgoing_ids(source_id))

    def get_incoming_edges(self, target_id: int) -> list[Item]:
        return self._eligible(self.incoming_ids(target_id))

    def get_items_with_no_recorded_count(self) -> list[Item]:
        """Tracked items that have never been given a count label."""
        return [
            item
            for item in self._items.query_items(self._scope.post_types, self._scope.post_statuses)
            if not self._tags.labels_of(item.id, self._count_taxonomy)
        ]

    def _eligible(self, ids: Iterable[int]) -> list[Item]:
        return self._items.query_items(
            self._scope.post_types, self._scope.post_statuses, include=set(ids)
        )
