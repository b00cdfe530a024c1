"""Synchronous event dispatch with a fixed set of event types.

Handlers subscribe to an ``EventType`` member; emitting a type outside
the enum raises ``UnknownEventError``.  Handlers run in subscription
order and their exceptions propagate to the emitter.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from backlinks.errors import UnknownEventError
from backlinks.site.models import Item

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Events the link graph reacts to."""

    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_PUBLISHED = "item_published"
    REQUEST_FINISHED = "request_finished"
    BACKLOG_DUE = "backlog_due"


ITEM_EVENTS = (EventType.ITEM_CREATED, EventType.ITEM_UPDATED, EventType.ITEM_PUBLISHED)


class StatusTransition(BaseModel):
    """Payload of the item events."""

    item: Item
    previous_status: str | None = None
    new_status: str


Handler = Callable[[Any], Any]


class EventBus:
    """In-process publish/subscribe keyed by ``EventType``."""

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[Handler]] = defaultdict(list)
        self._stats: dict[EventType, int] = defaultdict(int)

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        self._subscribers[_coerce(event_type)].append(handler)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> None:
        handlers = self._subscribers.get(_coerce(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_type: EventType | str, payload: Any = None) -> list[Any]:
        """Call every handler of *event_type* with *payload*; return their results."""
        kind = _coerce(event_type)
        self._stats[kind] += 1
        handlers = list(self._subscribers.get(kind, []))
        logger.debug("Emitting %s to %d handler(s)", kind, len(handlers))
        return [handler(payload) for handler in handlers]

    def stats(self) -> dict[str, int]:
        """Return how many times each event type has been emitted."""
        return {kind.value: count for kind, count in self._stats.items()}


def _coerce(event_type: EventType | str) -> EventType:
    try:
        return EventType(event_type)
    except ValueError:
        raise UnknownEventError(f"Unknown event type: {event_type!r}") from None
