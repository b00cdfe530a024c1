"""``LinkGraph`` — wires the link-graph components over a site.

This is the surface the excluded layers (admin screens, CLI, request
hooks) talk to: scan entry points, status-transition handling, edge
queries, suggestions, reporting, and the backlog tick/drain pair.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from backlinks.config import BacklinksConfig, filter_option_list
from backlinks.errors import ItemNotFoundError
from backlinks.links.backlog import BacklogScheduler
from backlinks.links.counts import CountLabelManager
from backlinks.links.edges import EdgeStore
from backlinks.links.events import ITEM_EVENTS, EventBus, EventType, StatusTransition
from backlinks.links.extractor import ContentLinkExtractor
from backlinks.links.models import (
    DrainReport,
    LinkStatusRow,
    ScanOutcome,
    ScanResult,
    Suggestion,
    SuggestionDirection,
    TrackingScope,
)
from backlinks.links.scanner import ScanCoordinator
from backlinks.links.suggestions import SuggestionEngine
from backlinks.site.base import ItemRepository, LockScheduler, MetadataStore, TagStore, UrlResolver
from backlinks.site.models import Item, Taxonomy
from backlinks.site.resolver import PermalinkResolver
from backlinks.site.scheduler import TransientScheduler
from backlinks.site.store import SiteStore

logger = logging.getLogger(__name__)

ItemRef = Item | int


class LinkGraph:
    """The link graph of one site.

    Several graphs can coexist: every name it uses (taxonomies, metadata
    keys, lock key, task id) comes from its ``BacklinksConfig``.
    """

    def __init__(
        self,
        *,
        tags: TagStore,
        meta: MetadataStore,
        items: ItemRepository,
        resolver: UrlResolver,
        locks: LockScheduler,
        config: BacklinksConfig | None = None,
        defer_scans: bool = False,
    ) -> None:
        self.config = config or BacklinksConfig()
        self._tags = tags
        self._meta = meta
        self._items = items
        self._locks = locks
        self._defer_scans = defer_scans
        self._pending: dict[int, Item] = {}

        defaults = BacklinksConfig().tracking
        self.scope = TrackingScope(
            post_types=filter_option_list(
                self.config.tracking.post_types, items.known_types(), defaults.post_types
            ),
            post_statuses=filter_option_list(
                self.config.tracking.post_statuses, items.known_statuses(), defaults.post_statuses
            ),
        )

        names = self.config.taxonomy
        self._register_taxonomies()

        self.extractor = ContentLinkExtractor(resolver)
        self.edges = EdgeStore(
            tags, items, self.scope,
            taxonomy=names.link_taxonomy,
            count_taxonomy=names.count_taxonomy,
        )
        self.counts = CountLabelManager(
            self.edges, tags, meta,
            count_taxonomy=names.count_taxonomy,
            count_meta_key=names.count_meta_key,
        )
        self.scanner = ScanCoordinator(
            self.extractor, self.edges, self.counts, items, meta, self.scope,
            scan_meta_key=names.scan_meta_key,
        )
        self.suggestions = SuggestionEngine(
            tags, items, self.edges, self.scope,
            common_term_divisor=self.config.suggestions.common_term_divisor,
            published_status=self.config.suggestions.published_status,
        )
        backlog = self.config.backlog
        self.backlog = BacklogScheduler(
            self.scanner, locks,
            lock_key=backlog.lock_key,
            task_id=backlog.task_id,
            batch_size=backlog.batch_size,
            delay_seconds=backlog.delay_seconds,
            lock_ttl_seconds=backlog.lock_ttl_seconds,
        )

    @classmethod
    def open(cls, config: BacklinksConfig, **kwargs: Any) -> tuple[LinkGraph, SiteStore]:
        """Open the JSON-backed site in ``config.site.directory``.

        Returns the graph and the store, so callers can ``save()`` it.
        """
        directory = config.site_directory
        store = SiteStore(directory)
        graph = cls(
            tags=store,
            meta=store,
            items=store,
            resolver=PermalinkResolver(store, config.site.base_url),
            locks=TransientScheduler(directory),
            config=config,
            **kwargs,
        )
        return graph, store

    def _register_taxonomies(self) -> None:
        names = self.config.taxonomy
        for name, label in [
            (names.link_taxonomy, "Backlinks"),
            (names.count_taxonomy, "Backlink counts"),
        ]:
            self._tags.register_taxonomy(
                Taxonomy(name=name, object_types=list(self.scope.post_types), public=False, label=label)
            )

    # -- Item lookup ---------------------------------------------------------

    def get_item(self, ref: ItemRef) -> Item:
        """Return the current version of *ref*; raise if it does not exist."""
        item_id = ref.id if isinstance(ref, Item) else ref
        item = self._items.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def eligible_items(self) -> list[Item]:
        return self._items.query_items(self.scope.post_types, self.scope.post_statuses)

    # -- Scanning ------------------------------------------------------------

    def scan(self, ref: ItemRef) -> ScanResult:
        return self.scanner.scan(self.get_item(ref))

    def scan_many(self, refs: Iterable[ItemRef]) -> list[ScanResult]:
        return [self.scan(ref) for ref in refs]

    def deregister(self, ref: ItemRef) -> list[int]:
        return self.scanner.deregister(self.get_item(ref))

    def deregister_many(self, refs: Iterable[ItemRef]) -> dict[int, list[int]]:
        results: dict[int, list[int]] = {}
        for ref in refs:
            item = self.get_item(ref)
            results[item.id] = self.scanner.deregister(item)
        return results

    def should_rescan(self, ref: ItemRef, new_status: str) -> bool:
        return self.scanner.should_rescan(self.get_item(ref), new_status)

    def is_registered(self, ref: ItemRef) -> bool:
        item_id = ref.id if isinstance(ref, Item) else ref
        return self.scanner.is_registered(item_id)

    def on_status_transition(self, transition: StatusTransition) -> ScanResult:
        """Handle an item create/update/publish event.

        Returns ``INELIGIBLE`` or ``UNCHANGED`` when nothing needs doing.
        With ``defer_scans`` the scan is queued (``DEFERRED``) until
        :meth:`end_request`; a second event for the same item before then
        is ``UNCHANGED``.
        """
        item = self._items.get_item(transition.item.id) or transition.item
        if item.status != transition.new_status:
            item = item.model_copy(update={"status": transition.new_status})
        if transition.new_status not in self.scope.post_statuses or not self.scope.type_ok(item):
            return ScanResult(item_id=item.id, outcome=ScanOutcome.INELIGIBLE)
        if item.id in self._pending or not self.scanner.should_rescan(item, transition.new_status):
            logger.debug("Item %d unchanged since last scan, skipping", item.id)
            return ScanResult(item_id=item.id, outcome=ScanOutcome.UNCHANGED)

        if self._defer_scans:
            self._pending[item.id] = item
            return ScanResult(item_id=item.id, outcome=ScanOutcome.DEFERRED)
        return self.scanner.scan(item)

    def end_request(self) -> list[ScanResult]:
        """Run deferred scans, then give the backlog a tick.

        A failing scan does not stop the others.  The backlog is still
        ticked, and the first failure is re-raised at the end.
        """
        results: list[ScanResult] = []
        errors: list[Exception] = []
        while self._pending:
            item_id = next(iter(self._pending))
            item = self._pending.pop(item_id)
            try:
                results.append(self.scanner.scan(item))
            except Exception as exc:
                logger.warning("Deferred scan of item %d failed: %s", item_id, exc)
                errors.append(exc)
        self.backlog.tick()
        if errors:
            raise errors[0]
        return results

    # -- Backlog -------------------------------------------------------------

    def unregistered_items(self) -> list[Item]:
        return self.scanner.unregistered_items()

    def registered_count(self) -> int:
        return self.scanner.registered_count()

    def backlog_notice(self) -> str | None:
        """Warning text when unscanned items exist."""
        count = len(self.unregistered_items())
        if not count:
            return None
        return f"There are {count} unregistered items; they will be scanned shortly."

    def tick_backlog(self) -> bool:
        return self.backlog.tick()

    def drain_backlog(self) -> DrainReport:
        return self.backlog.drain()

    def run_due_tasks(self) -> list[DrainReport]:
        """Fire the backlog drain if its scheduled time has come."""
        reports: list[DrainReport] = []
        for task_id in self._locks.pop_due():
            if task_id == self.backlog.task_id:
                reports.append(self.backlog.drain())
            else:
                logger.debug("Ignoring foreign task %s", task_id)
        return reports

    # -- Queries -------------------------------------------------------------

    def get_incoming_edges(self, ref: ItemRef) -> list[Item]:
        return self.edges.get_incoming_edges(self.get_item(ref).id)

    def get_outgoing_edges(self, ref: ItemRef) -> list[Item]:
        return self.edges.get_outgoing_edges(self.get_item(ref).id)

    def incoming_count(self, ref: ItemRef) -> int | None:
        return self.counts.incoming_count(self.get_item(ref).id)

    def count_label(self, ref: ItemRef) -> str | None:
        return self.counts.label_of(self.get_item(ref).id)

    def suggestions_for_item(
        self,
        ref: ItemRef,
        direction: SuggestionDirection = SuggestionDirection.INCOMING,
    ) -> list[Suggestion]:
        return self.suggestions.suggestions_for_item(self.get_item(ref), direction)

    def suggestions_by_taxonomy(
        self,
        ref: ItemRef,
        taxonomy: str,
        exclude: Iterable[int] = (),
    ) -> list[Item]:
        return self.suggestions.suggestions_by_taxonomy(self.get_item(ref), taxonomy, exclude)

    def status_row(self, item: Item) -> LinkStatusRow:
        return LinkStatusRow(
            item=item,
            incoming=len(self.edges.get_incoming_edges(item.id)),
            outgoing=len(self.edges.outgoing_ids(item.id)),
        )

    def status_pools(self, max_count: int | None = None) -> dict[int, list[LinkStatusRow]]:
        """Tracked items grouped by incoming edge count, lowest count first."""
        pools: dict[int, list[LinkStatusRow]] = defaultdict(list)
        for item in self.eligible_items():
            row = self.status_row(item)
            pools[row.incoming].append(row)
        return {
            count: pools[count]
            for count in sorted(pools)
            if max_count is None or count <= max_count
        }

    def items_by_backlink_count(self, descending: bool = True) -> list[Item]:
        """Tracked items ordered by their stored count; uncounted items last."""
        counted: list[tuple[int, Item]] = []
        uncounted: list[Item] = []
        for item in self.eligible_items():
            count = self.counts.incoming_count(item.id)
            if count is None:
                uncounted.append(item)
            else:
                counted.append((count, item))
        counted.sort(key=lambda pair: pair[0], reverse=descending)
        return [item for _count, item in counted] + uncounted

    # -- Events --------------------------------------------------------------

    def connect(self, bus: EventBus) -> None:
        """Subscribe this graph's handlers to *bus*."""
        for event_type in ITEM_EVENTS:
            bus.subscribe(event_type, self.on_status_transition)
        bus.subscribe(EventType.REQUEST_FINISHED, lambda _payload: self.end_request())
        bus.subscribe(EventType.BACKLOG_DUE, lambda _payload: self.run_due_tasks())
