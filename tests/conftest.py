"""Shared fixtures: an in-memory site, a hand-stepped clock, and a link graph over both."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from backlinks.links.graph import LinkGraph
from backlinks.site.models import Item, Taxonomy
from backlinks.site.resolver import PermalinkResolver
from backlinks.site.scheduler import TransientScheduler
from backlinks.site.store import SiteStore

BASE_URL = "https://example.com/"
EPOCH = datetime(2024, 1, 1, 12, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def link_html(*targets: int) -> str:
    return " ".join(f'<a href="/?p={t}">to {t}</a>' for t in targets)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> SiteStore:
    store = SiteStore()
    store.register_taxonomy(Taxonomy(name="post_tag", object_types=["post"], label="Tags"))
    store.register_taxonomy(Taxonomy(name="category", object_types=["post"], label="Categories"))
    return store


@pytest.fixture
def make_item(store):
    """Factory that creates an item in the store.

    ``links`` renders query-string anchors to the given ids; ``tags`` are
    assigned in the ``post_tag`` taxonomy.
    """

    def _make(item_id: int, *, links=(), tags=(), content=None, **fields) -> Item:
        fields.setdefault("title", f"Item {item_id}")
        fields.setdefault("slug", f"item-{item_id}")
        fields.setdefault("published_at", EPOCH + timedelta(days=item_id))
        fields.setdefault("modified_at", EPOCH + timedelta(days=item_id))
        body = content if content is not None else link_html(*links)
        item = store.upsert_item(Item(id=item_id, content=body, **fields))
        if tags:
            store.assign_labels(item_id, "post_tag", list(tags))
        return item

    return _make


@pytest.fixture
def scheduler(clock) -> TransientScheduler:
    return TransientScheduler(clock=clock)


@pytest.fixture
def graph(store, scheduler) -> LinkGraph:
    return LinkGraph(
        tags=store,
        meta=store,
        items=store,
        resolver=PermalinkResolver(store, BASE_URL),
        locks=scheduler,
    )
