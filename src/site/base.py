"""Abstract contracts for the collaborators the link graph runs on.

The link graph never owns items, terms, or timers.  It talks to a site
through these interfaces; ``SiteStore``, ``PermalinkResolver`` and
``TransientScheduler`` are the reference implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable

from backlinks.site.models import Item, Taxonomy


class TagStore(ABC):
    """Assigns labels (terms) to items per taxonomy and answers reverse lookups."""

    @abstractmethod
    def register_taxonomy(self, taxonomy: Taxonomy) -> None:
        """Register or replace a taxonomy definition."""

    @abstractmethod
    def taxonomies_applicable_to(self, item_type: str) -> list[Taxonomy]:
        """Return taxonomies whose object types include *item_type*."""

    @abstractmethod
    def assign_labels(self, item_id: int, taxonomy: str, labels: Iterable[str]) -> None:
        """Replace the labels of *item_id* under *taxonomy* with *labels*."""

    @abstractmethod
    def labels_of(self, item_id: int, taxonomy: str) -> list[str]:
        """Return the labels assigned to *item_id* under *taxonomy*."""

    @abstractmethod
    def items_with_label(self, taxonomy: str, label: str) -> set[int]:
        """Return ids of all items bearing *label* under *taxonomy*."""


class MetadataStore(ABC):
    """Per-item numeric metadata fields."""

    @abstractmethod
    def get_numeric_field(self, item_id: int, key: str) -> int | None:
        """Return the value of *key* for *item_id*, or ``None`` if absent."""

    @abstractmethod
    def set_numeric_field(self, item_id: int, key: str, value: int) -> None:
        """Set *key* for *item_id*."""

    @abstractmethod
    def delete_numeric_field(self, item_id: int, key: str) -> None:
        """Remove *key* for *item_id*; missing keys are ignored."""


class ItemRepository(ABC):
    """Read access to the site's items."""

    @abstractmethod
    def get_item(self, item_id: int) -> Item | None:
        """Return the item with *item_id*, or ``None``."""

    @abstractmethod
    def find_by_slug(self, slug: str) -> Item | None:
        """Return the item with *slug*, or ``None``."""

    @abstractmethod
    def query_items(
        self,
        types: Collection[str],
        statuses: Collection[str],
        *,
        include: Collection[int] | None = None,
        exclude: Collection[int] | None = None,
    ) -> list[Item]:
        """Return matching items, newest ``published_at`` first.

        ``include=None`` means no id restriction; an empty *include*
        matches nothing.
        """

    @abstractmethod
    def count_by_status(self, types: Collection[str]) -> dict[str, int]:
        """Return ``{status: count}`` over items of the given *types*."""

    @abstractmethod
    def known_types(self) -> list[str]:
        """Return every item type the site knows about."""

    @abstractmethod
    def known_statuses(self) -> list[str]:
        """Return every item status the site knows about."""


class UrlResolver(ABC):
    """Turns a hyperlink reference into an item id."""

    @abstractmethod
    def resolve(self, href: str) -> int | None:
        """Return the id of the item *href* points at, or ``None``."""


class LockScheduler(ABC):
    """TTL-bounded named locks and single-shot deferred tasks."""

    @abstractmethod
    def try_acquire_lock(self, key: str, ttl: float) -> bool:
        """Take lock *key* for *ttl* seconds; ``False`` if already held."""

    @abstractmethod
    def release_lock(self, key: str) -> None:
        """Release lock *key*; releasing a free lock is a no-op."""

    @abstractmethod
    def schedule_once(self, delay: float, task_id: str) -> None:
        """Schedule *task_id* to fire once after *delay* seconds."""

    @abstractmethod
    def is_scheduled(self, task_id: str) -> bool:
        """Return ``True`` if *task_id* is waiting to fire."""

    @abstractmethod
    def pop_due(self) -> list[str]:
        """Remove and return the ids of tasks whose delay has elapsed."""
