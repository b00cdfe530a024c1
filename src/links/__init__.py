"""Link graph domain — item bodies -> directed link graph -> suggestions.

Public API re-exports for the links domain.
"""

from backlinks.links.backlog import BacklogScheduler
from backlinks.links.counts import CountLabelManager, count_label
from backlinks.links.edges import LABEL_PREFIX, EdgeStore, item_label, label_item_id
from backlinks.links.events import EventBus, EventType, StatusTransition
from backlinks.links.extractor import ContentLinkExtractor, parse_hrefs
from backlinks.links.graph import LinkGraph
from backlinks.links.models import (
    BacklogPhase,
    DrainReport,
    ExtractionResult,
    LinkStatusRow,
    ScanOutcome,
    ScanResult,
    ScanState,
    Suggestion,
    SuggestionDirection,
    TrackingScope,
)
from backlinks.links.scanner import ScanCoordinator
from backlinks.links.suggestions import SuggestionEngine

__all__ = [
    # models
    "BacklogPhase",
    "DrainReport",
    "ExtractionResult",
    "LinkStatusRow",
    "ScanOutcome",
    "ScanResult",
    "ScanState",
    "Suggestion",
    "SuggestionDirection",
    "TrackingScope",
    # extractor
    "ContentLinkExtractor",
    "parse_hrefs",
    # edges
    "EdgeStore",
    "LABEL_PREFIX",
    "item_label",
    "label_item_id",
    # counts
    "CountLabelManager",
    "count_label",
    # scanning
    "ScanCoordinator",
    # suggestions
    "SuggestionEngine",
    # backlog
    "BacklogScheduler",
    # events
    "EventBus",
    "EventType",
    "StatusTransition",
    # facade
    "LinkGraph",
]
