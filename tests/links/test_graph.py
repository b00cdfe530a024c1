"""Tests for the LinkGraph facade: lookup, reporting and JSON-backed opening."""

from __future__ import annotations

import logging

import pytest
from backlinks.config import BacklinksConfig, SiteConfig, TrackingConfig
from backlinks.errors import ItemNotFoundError
from backlinks.links.graph import LinkGraph
from backlinks.links.models import ScanOutcome
from backlinks.site.models import Item
from backlinks.site.resolver import PermalinkResolver
from backlinks.site.scheduler import TransientScheduler
from backlinks.site.store import SiteStore


class TestLookup:
    def test_get_item_by_id_or_item(self, graph, make_item):
        item = make_item(1)
        assert graph.get_item(1) == item
        assert graph.get_item(item).id == 1

    def test_missing_item_raises(self, graph):
        with pytest.raises(ItemNotFoundError) as excinfo:
            graph.get_item(404)
        assert str(excinfo.value) == "No such item: 404"

    def test_missing_item_is_a_key_error(self, graph):
        with pytest.raises(KeyError):
            graph.scan(404)

    def test_eligible_items(self, graph, make_item):
        make_item(1)
        make_item(2, status="draft")
        make_item(3, type="page")
        assert [i.id for i in graph.eligible_items()] == [3, 1]


class TestScope:
    def test_unknown_configured_values_fall_back(self, caplog):
        store = SiteStore()
        config = BacklinksConfig(tracking=TrackingConfig(post_types=["widget"], post_statuses=["publish", "bogus"]))
        with caplog.at_level(logging.WARNING):
            graph = LinkGraph(
                tags=store,
                meta=store,
                items=store,
                resolver=PermalinkResolver(store, "https://example.com/"),
                locks=TransientScheduler(),
                config=config,
            )
        assert graph.scope.post_types == ["post", "page"]
        assert graph.scope.post_statuses == ["publish"]
        assert "widget" in caplog.text

    def test_bookkeeping_taxonomies_registered_private(self, graph, store):
        backlink = store.get_taxonomy("backlink")
        counts = store.get_taxonomy("backlink_count")
        assert backlink is not None and not backlink.public
        assert counts is not None and not counts.public
        assert backlink.object_types == ["post", "page"]


class TestReporting:
    def _site(self, graph, make_item):
        for i in (1, 2, 3, 4):
            make_item(i)
        graph.scan(make_item(1, links=[3, 4]))
        graph.scan(make_item(2, links=[3]))

    def test_status_pools(self, graph, make_item):
        self._site(graph, make_item)
        pools = graph.status_pools()
        assert list(pools) == [0, 1, 2]
        assert {row.item.id for row in pools[0]} == {1, 2}
        assert [row.item.id for row in pools[2]] == [3]
        assert pools[0][-1].outgoing == 2

    def test_status_pools_max(self, graph, make_item):
        self._site(graph, make_item)
        assert list(graph.status_pools(max_count=1)) == [0, 1]

    def test_items_by_backlink_count(self, graph, make_item):
        self._site(graph, make_item)
        make_item(5, status="future")
        ordered = [i.id for i in graph.items_by_backlink_count()]
        assert ordered[:2] == [3, 4]
        assert ordered[-1] == 5

    def test_registered_count(self, graph, make_item):
        self._site(graph, make_item)
        assert graph.registered_count() == 2
        assert {i.id for i in graph.unregistered_items()} == {3, 4}

    def test_scan_many(self, graph, make_item):
        make_item(1)
        make_item(2, status="draft")
        outcomes = [r.outcome for r in graph.scan_many([1, 2])]
        assert outcomes == [ScanOutcome.SCANNED, ScanOutcome.INELIGIBLE]


class TestOpen:
    def test_open_and_persist(self, tmp_path):
        config = BacklinksConfig(site=SiteConfig(directory=str(tmp_path), base_url="https://blog.test/"))
        graph, store = LinkGraph.open(config)
        store.upsert_item(Item(id=1, slug="one", content='<a href="https://blog.test/two/">2</a>'))
        store.upsert_item(Item(id=2, slug="two"))
        graph.scan(1)
        store.save()

        reopened, _store = LinkGraph.open(config)
        assert reopened.is_registered(1)
        assert [i.id for i in reopened.get_incoming_edges(2)] == [1]
        assert reopened.count_label(2) == "Has 1 backlink"
