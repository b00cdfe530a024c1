"""Link suggestions ranked by shared taxonomy terms.

Candidates are items that share at least one *discriminating* term with
the subject in some public taxonomy.  A term is discriminating when fewer
than a third (by default) of the published items carry it; drafts and
untracked types count toward neither side of that comparison.  Each
candidate is then scored by the number of terms it shares with the
subject across every taxonomy that applies to both of them; the
over-common filter only gates admission, never the score.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from backlinks.links.edges import EdgeStore
from backlinks.links.models import Suggestion, SuggestionDirection, TrackingScope
from backlinks.site.base import ItemRepository, TagStore
from backlinks.site.models import Item, Taxonomy

logger = logging.getLogger(__name__)


class SuggestionEngine:
    """Compute ranked link suggestions for an item."""

    def __init__(
        self,
        tags: TagStore,
        items: ItemRepository,
        edges: EdgeStore,
        scope: TrackingScope,
        *,
        common_term_divisor: int = 3,
        published_status: str = "publish",
    ) -> None:
        self._tags = tags
        self._items = items
        self._edges = edges
        self._scope = scope
        self._common_term_divisor = common_term_divisor
        self._published_status = published_status

    def applicable_taxonomies(self, item: Item) -> list[Taxonomy]:
        """Public taxonomies whose object types include the item's type."""
        return [t for t in self._tags.taxonomies_applicable_to(item.type) if t.public]

    def common_term_threshold(self) -> int:
        """Usage count at which a term stops being useful for finding candidates."""
        counts = self._items.count_by_status(self._scope.post_types)
        return counts.get(self._published_status, 0) // self._common_term_divisor

    def term_usage(self, taxonomy: str, term: str) -> int:
        """Number of published tracked items carrying *term*.

        Measured over the same population as :meth:`common_term_threshold`.
        """
        holders = self._tags.items_with_label(taxonomy, term)
        if not holders:
            return 0
        return len(
            self._items.query_items(
                self._scope.post_types, [self._published_status], include=holders
            )
        )

    def suggestions_by_taxonomy(
        self,
        item: Item,
        taxonomy: str,
        exclude: Iterable[int] = (),
    ) -> list[Item]:
        """Tracked items sharing a discriminating *taxonomy* term with *item*.

        *item* itself and the ids in *exclude* are never returned.
        """
        terms = self._tags.labels_of(item.id, taxonomy)
        if not terms:
            return []

        limit = self.common_term_threshold()
        surviving = [t for t in terms if self.term_usage(taxonomy, t) < limit]
        if len(surviving) < len(terms):
            logger.debug(
                "Item %d: dropped %d over-common %s term(s) (limit %d)",
                item.id, len(terms) - len(surviving), taxonomy, limit,
            )
        if not surviving:
            return []

        candidate_ids: set[int] = set()
        for term in surviving:
            candidate_ids |= self._tags.items_with_label(taxonomy, term)
        candidate_ids -= {item.id, *exclude}

        return self._items.query_items(
            self._scope.post_types, self._scope.post_statuses, include=candidate_ids
        )

    def excluded_ids(self, item: Item, direction: SuggestionDirection) -> set[int]:
        """Ids already connected to *item* in the given direction."""
        if direction == SuggestionDirection.OUTGOING:
            return {i.id for i in self._edges.get_outgoing_edges(item.id)}
        return {i.id for i in self._edges.get_incoming_edges(item.id)}

    def suggestions_for_item(
        self,
        item: Item,
        direction: SuggestionDirection = SuggestionDirection.INCOMING,
    ) -> list[Suggestion]:
        """Rank candidate items for linking with *item*, best first.

        Ties keep the order in which candidates were found (taxonomy
        processing order, then newest first).
        """
        exclude = self.excluded_ids(item, direction)
        taxonomies = self.applicable_taxonomies(item)

        candidates: dict[int, Item] = {}
        for taxonomy in taxonomies:
            for candidate in self.suggestions_by_taxonomy(item, taxonomy.name, exclude):
                candidates.setdefault(candidate.id, candidate)

        scores = dict.fromkeys(candidates, 0)
        for taxonomy in taxonomies:
            subject_terms = set(self._tags.labels_of(item.id, taxonomy.name))
            if not subject_terms:
                continue
            for candidate in candidates.values():
                if not taxonomy.applies_to(candidate.type):
                    continue
                shared = subject_terms & set(self._tags.labels_of(candidate.id, taxonomy.name))
                scores[candidate.id] += len(shared)

        ranked = sorted(candidates.values(), key=lambda c: scores[c.id], reverse=True)
        return [Suggestion(item=c, score=scores[c.id]) for c in ranked]
