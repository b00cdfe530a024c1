"""In-memory site store with JSON persistence.

One object plays all three storage collaborators the link graph needs:
the item repository, the tag store, and the per-item metadata store.
Persistence follows the load-on-init, explicit ``save()`` pattern.
"""

from __future__ import annotations

import json
import logging
from collections import Counter, defaultdict
from collections.abc import Collection, Iterable
from pathlib import Path

from pydantic import BaseModel, Field

from backlinks.errors import CollaboratorError
from backlinks.site.base import ItemRepository, MetadataStore, TagStore
from backlinks.site.models import Item, Taxonomy

logger = logging.getLogger(__name__)

SITE_STORE_FILENAME = ".backlinks-site.json"

DEFAULT_ITEM_TYPES = ("post", "page")
DEFAULT_ITEM_STATUSES = ("publish", "future", "draft", "pending", "private")


class _SiteData(BaseModel):
    """Internal wrapper for JSON serialization."""

    item_types: list[str] = Field(default_factory=list)
    item_statuses: list[str] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    taxonomies: list[Taxonomy] = Field(default_factory=list)
    # taxonomy -> item id -> labels (JSON object keys are strings)
    terms: dict[str, dict[str, list[str]]] = Field(default_factory=dict)
    meta: dict[str, dict[str, int]] = Field(default_factory=dict)


class SiteStore(ItemRepository, TagStore, MetadataStore):
    """Items, taxonomy terms and numeric metadata with optional JSON persistence.

    Internal indices:
    - ``_items``: item id -> Item
    - ``_terms``: taxonomy -> item id -> ordered labels
    - ``_index``: taxonomy -> label -> item ids (the reverse index)
    - ``_meta``: item id -> key -> int
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        item_types: Iterable[str] = DEFAULT_ITEM_TYPES,
        item_statuses: Iterable[str] = DEFAULT_ITEM_STATUSES,
    ) -> None:
        self._path = path
        self._item_types: list[str] = list(item_types)
        self._item_statuses: list[str] = list(item_statuses)
        self._items: dict[int, Item] = {}
        self._taxonomies: dict[str, Taxonomy] = {}
        self._terms: dict[str, dict[int, list[str]]] = defaultdict(dict)
        self._index: dict[str, dict[str, set[int]]] = defaultdict(lambda: defaultdict(set))
        self._meta: dict[int, dict[str, int]] = defaultdict(dict)

        if path is not None:
            self._load()

    # -- Items ---------------------------------------------------------------

    def upsert_item(self, item: Item) -> Item:
        """Insert or replace an item, registering its type and status."""
        self._items[item.id] = item
        if item.type not in self._item_types:
            self._item_types.append(item.type)
        if item.status not in self._item_statuses:
            self._item_statuses.append(item.status)
        return item

    def remove_item(self, item_id: int) -> None:
        """Delete an item together with its terms and metadata."""
        self._items.pop(item_id, None)
        for taxonomy in list(self._terms):
            self.assign_labels(item_id, taxonomy, [])
        self._meta.pop(item_id, None)

    def get_item(self, item_id: int) -> Item | None:
        return self._items.get(item_id)

    def find_by_slug(self, slug: str) -> Item | None:
        for item in self._items.values():
            if item.slug and item.slug == slug:
                return item
        return None

    def query_items(
        self,
        types: Collection[str],
        statuses: Collection[str],
        *,
        include: Collection[int] | None = None,
        exclude: Collection[int] | None = None,
    ) -> list[Item]:
        if include is not None:
            candidates = [self._items[i] for i in include if i in self._items]
        else:
            candidates = list(self._items.values())
        excluded = set(exclude or ())
        results = [
            item
            for item in candidates
            if item.type in types and item.status in statuses and item.id not in excluded
        ]
        results.sort(key=lambda item: (item.published_at, item.id), reverse=True)
        return results

    def count_by_status(self, types: Collection[str]) -> dict[str, int]:
        counts = Counter(item.status for item in self._items.values() if item.type in types)
        return dict(counts)

    def known_types(self) -> list[str]:
        return list(self._item_types)

    def known_statuses(self) -> list[str]:
        return list(self._item_statuses)

    def item_count(self) -> int:
        """Return the number of items in the store."""
        return len(self._items)

    # -- Taxonomies and terms ------------------------------------------------

    def register_taxonomy(self, taxonomy: Taxonomy) -> None:
        self._taxonomies[taxonomy.name] = taxonomy

    def get_taxonomy(self, name: str) -> Taxonomy | None:
        """Return a registered taxonomy by name, or ``None``."""
        return self._taxonomies.get(name)

    def taxonomies_applicable_to(self, item_type: str) -> list[Taxonomy]:
        return [t for t in self._taxonomies.values() if t.applies_to(item_type)]

    def assign_labels(self, item_id: int, taxonomy: str, labels: Iterable[str]) -> None:
        new_labels = list(dict.fromkeys(labels))
        index = self._index[taxonomy]

        for old in self._terms[taxonomy].get(item_id, []):
            holders = index.get(old)
            if holders is None:
                continue
            holders.discard(item_id)
            if not holders:
                del index[old]

        if new_labels:
            self._terms[taxonomy][item_id] = new_labels
            for label in new_labels:
                index[label].add(item_id)
        else:
            self._terms[taxonomy].pop(item_id, None)

    def labels_of(self, item_id: int, taxonomy: str) -> list[str]:
        return list(self._terms.get(taxonomy, {}).get(item_id, []))

    def items_with_label(self, taxonomy: str, label: str) -> set[int]:
        return set(self._index.get(taxonomy, {}).get(label, ()))

    # -- Metadata ------------------------------------------------------------

    def get_numeric_field(self, item_id: int, key: str) -> int | None:
        return self._meta.get(item_id, {}).get(key)

    def set_numeric_field(self, item_id: int, key: str, value: int) -> None:
        self._meta[item_id][key] = int(value)

    def delete_numeric_field(self, item_id: int, key: str) -> None:
        fields = self._meta.get(item_id)
        if fields is None:
            return
        fields.pop(key, None)
        if not fields:
            del self._meta[item_id]

    # -- Persistence ---------------------------------------------------------

    def save(self) -> None:
        """Serialize the site to JSON at ``path / SITE_STORE_FILENAME``."""
        if self._path is None:
            return

        data = _SiteData(
            item_types=self._item_types,
            item_statuses=self._item_statuses,
            items=list(self._items.values()),
            taxonomies=list(self._taxonomies.values()),
            terms={
                taxonomy: {str(item_id): labels for item_id, labels in assigned.items()}
                for taxonomy, assigned in self._terms.items()
                if assigned
            },
            meta={str(item_id): dict(fields) for item_id, fields in self._meta.items() if fields},
        )

        filepath = self._path / SITE_STORE_FILENAME
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            raise CollaboratorError(f"Could not write site store {filepath}: {exc}") from exc

    def _load(self) -> None:
        """Deserialize from JSON and rebuild the reverse index."""
        if self._path is None:
            return

        filepath = self._path / SITE_STORE_FILENAME
        if not filepath.exists():
            return

        try:
            data = _SiteData.model_validate(json.loads(filepath.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError):
            logger.warning("Corrupt site store at %s, starting fresh", filepath)
            return

        for name in data.item_types:
            if name not in self._item_types:
                self._item_types.append(name)
        for name in data.item_statuses:
            if name not in self._item_statuses:
                self._item_statuses.append(name)
        for item in data.items:
            self.upsert_item(item)
        for taxonomy in data.taxonomies:
            self.register_taxonomy(taxonomy)
        for taxonomy, assigned in data.terms.items():
            for item_id, labels in assigned.items():
                self.assign_labels(int(item_id), taxonomy, labels)
        for item_id, fields in data.meta.items():
            self._meta[int(item_id)].update(fields)
