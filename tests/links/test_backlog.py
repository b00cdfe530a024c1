"""Tests for BacklogScheduler — debounced, single-flight backlog draining."""

from __future__ import annotations

import logging

import pytest
from backlinks.links.models import BacklogPhase


@pytest.fixture
def backlog_of(make_item):
    def _fill(count: int) -> None:
        for i in range(1, count + 1):
            make_item(i)

    return _fill


class TestTick:
    def test_no_backlog_schedules_nothing(self, graph, scheduler):
        assert graph.tick_backlog() is False
        assert not scheduler.is_scheduled(graph.backlog.task_id)

    def test_first_tick_schedules_with_delay(self, graph, scheduler, clock, backlog_of):
        backlog_of(3)
        assert graph.tick_backlog() is True
        assert graph.backlog.phase == BacklogPhase.PENDING
        assert graph.run_due_tasks() == []

        clock.advance(60)
        assert len(graph.run_due_tasks()) == 1

    def test_concurrent_ticks_schedule_once(self, graph, backlog_of):
        backlog_of(3)
        results = [graph.tick_backlog() for _ in range(5)]
        assert results == [True, False, False, False, False]

    def test_held_lock_blocks_scheduling(self, graph, scheduler, backlog_of):
        backlog_of(1)
        scheduler.try_acquire_lock(graph.config.backlog.lock_key, 1800)
        assert graph.tick_backlog() is False

    def test_lost_drain_recovers_after_ttl(self, graph, scheduler, clock, backlog_of):
        backlog_of(1)
        graph.tick_backlog()
        clock.advance(60)
        assert scheduler.pop_due() == [graph.backlog.task_id]
        assert graph.tick_backlog() is False

        clock.advance(1801)
        assert graph.tick_backlog() is True


class TestDrain:
    def test_batches_until_empty(self, graph, clock, backlog_of):
        backlog_of(45)
        remaining = []
        for _ in range(3):
            assert graph.tick_backlog() is True
            clock.advance(60)
            (report,) = graph.run_due_tasks()
            remaining.append(report.remaining)

        assert remaining == [25, 5, 0]
        assert graph.unregistered_items() == []
        assert graph.registered_count() == 45

        assert graph.tick_backlog() is False
        assert graph.backlog.phase == BacklogPhase.IDLE

    def test_drain_releases_lock(self, graph, scheduler, clock, backlog_of):
        backlog_of(2)
        graph.tick_backlog()
        assert scheduler.is_locked(graph.config.backlog.lock_key)
        clock.advance(60)
        graph.run_due_tasks()
        assert not scheduler.is_locked(graph.config.backlog.lock_key)

    def test_drain_of_empty_backlog(self, graph):
        report = graph.drain_backlog()
        assert report.scanned == []
        assert report.remaining == 0

    def test_failing_item_is_skipped(self, graph, backlog_of, monkeypatch, caplog):
        backlog_of(3)
        real_scan = graph.scanner.scan

        def flaky_scan(item):
            if item.id == 2:
                raise RuntimeError("tag store unavailable")
            return real_scan(item)

        monkeypatch.setattr(graph.scanner, "scan", flaky_scan)
        with caplog.at_level(logging.WARNING):
            report = graph.drain_backlog()

        assert sorted(report.scanned) == [1, 3]
        assert report.failed == {2: "tag store unavailable"}
        assert report.remaining == 1
        assert "Backlog scan of item 2 failed" in caplog.text

    def test_drain_scans_newest_first(self, graph, backlog_of):
        backlog_of(25)
        report = graph.drain_backlog()
        assert report.scanned == list(range(25, 5, -1))


class TestNotice:
    def test_no_notice_without_backlog(self, graph):
        assert graph.backlog_notice() is None

    def test_notice_counts_unscanned(self, graph, backlog_of):
        backlog_of(4)
        assert "4 unregistered items" in graph.backlog_notice()
