"""TTL locks and single-shot scheduled tasks, optionally persisted to JSON.

Both kinds of entry are plain deadlines on a wall clock: a lock is held
until its expiry passes, a task is due once its fire time passes.  The
clock is injectable so tests can step time by hand.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field

from backlinks.errors import CollaboratorError
from backlinks.site.base import LockScheduler

logger = logging.getLogger(__name__)

SCHEDULE_FILENAME = ".backlinks-schedule.json"


class _ScheduleData(BaseModel):
    """Internal wrapper for JSON serialization."""

    locks: dict[str, float] = Field(default_factory=dict)
    tasks: dict[str, float] = Field(default_factory=dict)


class TransientScheduler(LockScheduler):
    """Expiring locks plus a queue of one-off tasks keyed by id."""

    def __init__(
        self,
        path: Path | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = path
        self._clock = clock
        self._data = self._load()

    def try_acquire_lock(self, key: str, ttl: float) -> bool:
        now = self._clock()
        expires = self._data.locks.get(key)
        if expires is not None and expires > now:
            return False
        self._data.locks[key] = now + ttl
        self._save()
        return True

    def release_lock(self, key: str) -> None:
        if self._data.locks.pop(key, None) is not None:
            self._save()

    def is_locked(self, key: str) -> bool:
        """Return ``True`` while lock *key* is held and unexpired."""
        expires = self._data.locks.get(key)
        return expires is not None and expires > self._clock()

    def schedule_once(self, delay: float, task_id: str) -> None:
        self._data.tasks[task_id] = self._clock() + delay
        self._save()

    def is_scheduled(self, task_id: str) -> bool:
        return task_id in self._data.tasks

    def pop_due(self) -> list[str]:
        now = self._clock()
        due = sorted(
            (fire_at, task_id) for task_id, fire_at in self._data.tasks.items() if fire_at <= now
        )
        for _fire_at, task_id in due:
            del self._data.tasks[task_id]
        if due:
            self._save()
        return [task_id for _fire_at, task_id in due]

    # -- Persistence ---------------------------------------------------------

    def _load(self) -> _ScheduleData:
        if self._path is None:
            return _ScheduleData()
        filepath = self._path / SCHEDULE_FILENAME
        if not filepath.exists():
            return _ScheduleData()
        try:
            return _ScheduleData.model_validate(json.loads(filepath.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError):
            logger.warning("Corrupt schedule at %s, starting fresh", filepath)
            return _ScheduleData()

    def _save(self) -> None:
        if self._path is None:
            return
        filepath = self._path / SCHEDULE_FILENAME
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_text(self._data.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            raise CollaboratorError(f"Could not write schedule {filepath}: {exc}") from exc
