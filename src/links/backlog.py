"""Background catch-up of never-scanned items.

There is no worker process.  Every external tick (typically the end of
a request) may schedule one deferred drain; the drain scans a bounded
batch and releases the lock, and the next tick schedules the next batch
if anything is left.  A TTL lock keeps at most one drain in flight
across independent request contexts, and expires on its own if a
scheduled drain is ever lost.
"""

from __future__ import annotations

import logging

from backlinks.links.models import BacklogPhase, DrainReport
from backlinks.links.scanner import ScanCoordinator
from backlinks.site.base import LockScheduler

logger = logging.getLogger(__name__)


class BacklogScheduler:
    """Single-flight, debounced draining of the scan backlog."""

    def __init__(
        self,
        scanner: ScanCoordinator,
        locks: LockScheduler,
        *,
        lock_key: str,
        task_id: str,
        batch_size: int = 20,
        delay_seconds: float = 60,
        lock_ttl_seconds: float = 1800,
    ) -> None:
        self._scanner = scanner
        self._locks = locks
        self._lock_key = lock_key
        self._task_id = task_id
        self._batch_size = batch_size
        self._delay_seconds = delay_seconds
        self._lock_ttl_seconds = lock_ttl_seconds
        self._draining = False

    @property
    def task_id(self) -> str:
        return self._task_id

    @property
    def phase(self) -> BacklogPhase:
        if self._draining:
            return BacklogPhase.DRAINING
        if self._locks.is_scheduled(self._task_id):
            return BacklogPhase.PENDING
        return BacklogPhase.IDLE

    def tick(self) -> bool:
        """Schedule a drain if there is backlog and none is in flight.

        Returns ``True`` if this call scheduled the drain.
        """
        if self._draining or self._locks.is_scheduled(self._task_id):
            return False
        if not self._scanner.unregistered_items():
            return False
        if not self._locks.try_acquire_lock(self._lock_key, self._lock_ttl_seconds):
            logger.debug("Backlog lock %s is held, not scheduling", self._lock_key)
            return False

        self._locks.schedule_once(self._delay_seconds, self._task_id)
        logger.info("Scheduled backlog drain %s in %ss", self._task_id, self._delay_seconds)
        return True

    def drain(self) -> DrainReport:
        """Scan up to one batch of backlog items, then release the lock.

        A failing item is logged and skipped; the rest of the batch still
        runs and the lock is released regardless.
        """
        report = DrainReport()
        self._draining = True
        try:
            batch = self._scanner.unregistered_items()[: self._batch_size]
            if batch:
                logger.info("Draining %d backlog item(s)", len(batch))
            for item in batch:
                try:
                    self._scanner.scan(item)
                except Exception as exc:
                    logger.warning("Backlog scan of item %d failed: %s", item.id, exc, exc_info=True)
                    report.failed[item.id] = str(exc)
                else:
                    report.scanned.append(item.id)
            report.remaining = len(self._scanner.unregistered_items())
        finally:
            self._draining = False
            self._locks.release_lock(self._lock_key)

        if report.scanned or report.failed:
            logger.info(
                "Backlog drain done: %d scanned, %d failed, %d remaining",
                len(report.scanned), len(report.failed), report.remaining,
            )
        return report
