"""Tests for ScanCoordinator through the LinkGraph wiring."""

from __future__ import annotations

from datetime import timedelta

from backlinks.links.models import ScanOutcome


class TestScan:
    def test_scan_records_edges_and_state(self, graph, make_item):
        make_item(2)
        make_item(3)
        item = make_item(1, links=[2, 3])

        result = graph.scan(item)

        assert result.outcome == ScanOutcome.SCANNED
        assert result.scanned
        assert result.targets == [2, 3]
        assert graph.edges.outgoing_ids(1) == [2, 3]
        assert graph.is_registered(1)

    def test_ineligible_item_is_left_alone(self, graph, make_item):
        make_item(2)
        draft = make_item(1, links=[2], status="draft")

        result = graph.scan(draft)

        assert result.outcome == ScanOutcome.INELIGIBLE
        assert graph.edges.outgoing_ids(1) == []
        assert not graph.is_registered(1)

    def test_unknown_type_is_ineligible(self, graph, make_item):
        item = make_item(1, type="attachment")
        assert graph.scan(item).outcome == ScanOutcome.INELIGIBLE

    def test_rescan_with_same_content_is_idempotent(self, graph, make_item, store):
        make_item(2)
        item = make_item(1, links=[2])
        graph.scan(item)
        graph.scan(item)
        assert store.labels_of(1, "backlink") == ["p2"]
        assert graph.incoming_count(2) == 1

    def test_unresolved_links_reported(self, graph, make_item):
        item = make_item(1, content='<a href="https://elsewhere.org/">x</a>')
        result = graph.scan(item)
        assert result.targets == []
        assert result.unresolved == ["https://elsewhere.org/"]


class TestCountConsistency:
    def test_new_target_counted(self, graph, make_item):
        make_item(2)
        graph.scan(make_item(1, links=[2]))
        assert graph.incoming_count(2) == 1
        assert graph.count_label(2) == "Has 1 backlink"

    def test_scanned_item_gets_own_count(self, graph, make_item):
        make_item(2)
        graph.scan(make_item(1, links=[2]))
        assert graph.incoming_count(1) == 0
        assert graph.count_label(1) == "Has 0 backlinks"

    def test_dropped_target_is_recounted(self, graph, make_item):
        make_item(2)
        make_item(3)
        first = make_item(1, links=[2])
        graph.scan(first)
        graph.scan(make_item(1, links=[3], modified_at=first.modified_at + timedelta(hours=1)))

        assert graph.incoming_count(2) == 0
        assert graph.count_label(2) == "Has 0 backlinks"
        assert graph.incoming_count(3) == 1

    def test_counts_match_edges_after_many_scans(self, graph, make_item):
        for i in range(1, 7):
            make_item(i)
        layout = {1: [2, 3], 2: [3], 4: [3, 1], 5: [6], 6: [1]}
        for source, targets in layout.items():
            graph.scan(make_item(source, links=targets))

        for target in range(1, 7):
            assert graph.incoming_count(target) == len(graph.get_incoming_edges(target))

    def test_never_counted_items_swept(self, graph, make_item):
        for i in (2, 3, 4):
            make_item(i)
        graph.scan(make_item(1))
        for i in (2, 3, 4):
            assert graph.incoming_count(i) == 0


class TestShouldRescan:
    def test_unregistered_needs_scan(self, graph, make_item):
        assert graph.should_rescan(make_item(1), "publish")

    def test_unchanged_timestamp_skipped(self, graph, make_item):
        item = make_item(1)
        graph.scan(item)
        assert not graph.should_rescan(item, "publish")

    def test_new_timestamp_rescanned(self, graph, make_item):
        item = make_item(1)
        graph.scan(item)
        make_item(1, modified_at=item.modified_at + timedelta(minutes=5))
        assert graph.should_rescan(1, "publish")

    def test_untracked_status_never_rescanned(self, graph, make_item):
        assert not graph.should_rescan(make_item(1), "draft")


class TestDeregister:
    def test_round_trip(self, graph, make_item):
        make_item(2)
        item = make_item(1, links=[2])
        graph.scan(item)

        former = graph.deregister(item)

        assert former == [2]
        assert not graph.is_registered(1)
        assert graph.edges.outgoing_ids(1) == []
        assert graph.incoming_count(2) == 0
        assert 1 in {i.id for i in graph.unregistered_items()}

        graph.scan(item)
        assert graph.is_registered(1)
        assert graph.incoming_count(2) == 1

    def test_deregister_many(self, graph, make_item):
        make_item(3)
        graph.scan(make_item(1, links=[3]))
        graph.scan(make_item(2, links=[3]))

        assert graph.deregister_many([1, 2]) == {1: [3], 2: [3]}
        assert graph.incoming_count(3) == 0
