"""Scan coordination: extract links, replace edges, refresh counts, record state."""

from __future__ import annotations

import logging

from backlinks.links.counts import CountLabelManager
from backlinks.links.edges import EdgeStore
from backlinks.links.extractor import ContentLinkExtractor
from backlinks.links.models import ScanOutcome, ScanResult, ScanState, TrackingScope
from backlinks.site.base import ItemRepository, MetadataStore
from backlinks.site.models import Item

logger = logging.getLogger(__name__)


def modified_stamp(item: Item) -> int:
    """Second-resolution timestamp of the item's last modification."""
    return int(item.modified_at.timestamp())


class ScanCoordinator:
    """Decides when an item needs scanning and performs the scan.

    The presence of the scan-state metadata field is what separates
    registered items from the backlog.
    """

    def __init__(
        self,
        extractor: ContentLinkExtractor,
        edges: EdgeStore,
        counts: CountLabelManager,
        items: ItemRepository,
        meta: MetadataStore,
        scope: TrackingScope,
        *,
        scan_meta_key: str,
    ) -> None:
        self._extractor = extractor
        self._edges = edges
        self._counts = counts
        self._items = items
        self._meta = meta
        self._scope = scope
        self._scan_meta_key = scan_meta_key

    # -- Scan state ----------------------------------------------------------

    def scan_state(self, item_id: int) -> ScanState | None:
        stamp = self._meta.get_numeric_field(item_id, self._scan_meta_key)
        if stamp is None:
            return None
        return ScanState(item_id=item_id, last_scanned_modified_at=stamp)

    def is_registered(self, item_id: int) -> bool:
        return self.scan_state(item_id) is not None

    def unregistered_items(self) -> list[Item]:
        """Tracked items that have never been scanned (the backlog)."""
        return [
            item
            for item in self._items.query_items(self._scope.post_types, self._scope.post_statuses)
            if not self.is_registered(item.id)
        ]

    def registered_count(self) -> int:
        return sum(
            1
            for item in self._items.query_items(self._scope.post_types, self._scope.post_statuses)
            if self.is_registered(item.id)
        )

    def should_rescan(self, item: Item, new_status: str) -> bool:
        """Return ``True`` if a status transition to *new_status* warrants a scan.

        Saves that do not change the modification timestamp are ignored.
        """
        if new_status not in self._scope.post_statuses:
            return False
        if not self._scope.type_ok(item):
            return False
        state = self.scan_state(item.id)
        return state is None or state.last_scanned_modified_at != modified_stamp(item)

    # -- Scanning ------------------------------------------------------------

    def scan(self, item: Item) -> ScanResult:
        """Replace the outgoing edges of *item* from its current content.

        Edge replacement always happens before any count refresh.  Counts
        are refreshed for the item, its new targets, targets it no longer
        links to, and every tracked item that has never been counted.
        """
        if not self._scope.accepts(item):
            logger.debug("Item %d (%s/%s) is not tracked", item.id, item.type, item.status)
            return ScanResult(item_id=item.id, outcome=ScanOutcome.INELIGIBLE)

        extraction = self._extractor.extract(item)
        previous = self._edges.outgoing_ids(item.id)

        self._edges.set_outgoing_edges(item.id, extraction.targets)

        refreshed: set[int] = set()
        self._refresh(item.id, refreshed)
        for target in extraction.targets:
            self._refresh(target, refreshed)
        for target in previous:
            self._refresh(target, refreshed)
        for uncounted in self._edges.get_items_with_no_recorded_count():
            self._refresh(uncounted.id, refreshed)

        self._meta.set_numeric_field(item.id, self._scan_meta_key, modified_stamp(item))
        logger.info("Scanned item %d: %d outgoing link(s)", item.id, len(extraction.targets))

        return ScanResult(
            item_id=item.id,
            outcome=ScanOutcome.SCANNED,
            targets=extraction.targets,
            unresolved=extraction.unresolved,
        )

    def deregister(self, item: Item) -> list[int]:
        """Clear the outgoing edges of *item* and return it to the backlog.

        Former targets have their counts refreshed.  Returns their ids.
        """
        previous = self._edges.outgoing_ids(item.id)
        self._edges.set_outgoing_edges(item.id, [])
        self._meta.delete_numeric_field(item.id, self._scan_meta_key)

        refreshed: set[int] = set()
        for target in previous:
            self._refresh(target, refreshed)

        logger.info("Deregistered item %d (%d former target(s))", item.id, len(previous))
        return previous

    def _refresh(self, item_id: int, refreshed: set[int]) -> None:
        if item_id in refreshed:
            return
        self._counts.refresh_count(item_id)
        refreshed.add(item_id)
