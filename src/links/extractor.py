"""Extract outgoing item references from an item body."""

from __future__ import annotations

import logging
from html.parser import HTMLParser

from backlinks.links.models import ExtractionResult
from backlinks.site.base import UrlResolver
from backlinks.site.models import Item

logger = logging.getLogger(__name__)


class _AnchorParser(HTMLParser):
    """Collect ``href`` values of ``<a>`` tags in document order."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.hrefs: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag.lower() != "a":
            return
        for name, value in attrs:
            if name.lower() == "href" and value and value.strip():
                self.hrefs.append(value.strip())
                return


def parse_hrefs(html: str) -> list[str]:
    """Return every anchor ``href`` in *html*, in order, duplicates included."""
    parser = _AnchorParser()
    parser.feed(html)
    parser.close()
    return parser.hrefs


class ContentLinkExtractor:
    """Turn an item body into the ordered-unique list of items it links to.

    Links that the resolver cannot map to an item (external sites,
    dangling permalinks, ``mailto:``) are not part of the graph; they are
    returned in ``unresolved`` and otherwise ignored.
    """

    def __init__(self, resolver: UrlResolver) -> None:
        self._resolver = resolver

    def extract(self, item: Item) -> ExtractionResult:
        targets: dict[int, None] = {}
        unresolved: list[str] = []

        for href in parse_hrefs(item.content):
            target = self._resolver.resolve(href)
            if target is None:
                unresolved.append(href)
                continue
            targets.setdefault(target, None)

        if unresolved:
            logger.debug("Item %d: %d unresolved link(s)", item.id, len(unresolved))
        return ExtractionResult(targets=list(targets), unresolved=unresolved)
