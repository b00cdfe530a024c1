"""Resolve hyperlink references to site item ids.

Understands the two permalink shapes a site emits: query-string links
(``/?p=42``, ``/?page_id=42``) and pretty links ending in the item slug
(``/2024/05/some-slug/``).  Anything pointing off-site resolves to
``None``.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urldefrag, urljoin, urlparse

from backlinks.site.base import ItemRepository, UrlResolver

logger = logging.getLogger(__name__)

_ID_QUERY_KEYS = ("p", "page_id")
_WEB_SCHEMES = {"http", "https"}


class PermalinkResolver(UrlResolver):
    """Map on-site permalinks to item ids through an ``ItemRepository``."""

    def __init__(self, items: ItemRepository, base_url: str) -> None:
        self._items = items
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._host = urlparse(self._base_url).netloc.lower()

    def resolve(self, href: str) -> int | None:
        href = href.strip()
        if not href:
            return None

        url, _fragment = urldefrag(urljoin(self._base_url, href))
        parsed = urlparse(url)
        if parsed.scheme not in _WEB_SCHEMES:
            return None
        if parsed.netloc.lower() != self._host:
            return None

        query = parse_qs(parsed.query)
        for key in _ID_QUERY_KEYS:
            for raw in query.get(key, []):
                if raw.isdigit() and self._items.get_item(int(raw)) is not None:
                    return int(raw)

        segments = [s for s in parsed.path.split("/") if s]
        if not segments:
            return None
        item = self._items.find_by_slug(segments[-1])
        if item is None:
            logger.debug("No item for slug %r (href %s)", segments[-1], href)
            return None
        return item.id
