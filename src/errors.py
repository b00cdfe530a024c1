"""Exception hierarchy for the backlinks package.

Conditions that are *not* errors (an unresolvable link, an ineligible
item, an unchanged item) are reported as values on ``ScanResult`` and
``ExtractionResult`` instead of being raised.
"""


class BacklinksError(Exception):
    """Base class for all backlinks errors."""


class CollaboratorError(BacklinksError):
    """A tag store, metadata store, or item repository call failed."""


class ItemNotFoundError(BacklinksError, KeyError):
    """No item exists for the given identifier."""

    def __init__(self, item_id: int) -> None:
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"No such item: {self.item_id}"


class InvalidLabelError(BacklinksError, ValueError):
    """An identifier or label that cannot round-trip through ``p<id>``."""


class UnknownEventError(BacklinksError, ValueError):
    """An event type outside the enumerated set."""


class ConfigError(BacklinksError):
    """Configuration values are invalid."""
