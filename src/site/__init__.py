"""Site collaborators — items, taxonomy terms, metadata, permalinks, timers.

Abstract contracts plus the JSON-backed reference implementations.
"""

from backlinks.site.base import (
    ItemRepository,
    LockScheduler,
    MetadataStore,
    TagStore,
    UrlResolver,
)
from backlinks.site.models import Item, Taxonomy
from backlinks.site.resolver import PermalinkResolver
from backlinks.site.scheduler import SCHEDULE_FILENAME, TransientScheduler
from backlinks.site.store import SITE_STORE_FILENAME, SiteStore

__all__ = [
    # models
    "Item",
    "Taxonomy",
    # contracts
    "ItemRepository",
    "LockScheduler",
    "MetadataStore",
    "TagStore",
    "UrlResolver",
    # implementations
    "PermalinkResolver",
    "SCHEDULE_FILENAME",
    "SITE_STORE_FILENAME",
    "SiteStore",
    "TransientScheduler",
]
