"""Tests for anchor parsing and ContentLinkExtractor."""

from backlinks.links.extractor import ContentLinkExtractor, parse_hrefs
from backlinks.site.models import Item
from backlinks.site.resolver import PermalinkResolver
from backlinks.site.store import SiteStore


class TestParseHrefs:
    def test_document_order_with_duplicates(self):
        html = '<p><a href="/b">B</a> then <a href="/a">A</a> and <a href="/b">B again</a></p>'
        assert parse_hrefs(html) == ["/b", "/a", "/b"]

    def test_ignores_anchors_without_href(self):
        assert parse_hrefs('<a name="top">x</a><a href="">empty</a>') == []

    def test_ignores_other_tags(self):
        assert parse_hrefs('<link href="/style.css"><img src="/a.png">') == []

    def test_decodes_entities_and_case(self):
        assert parse_hrefs('<A HREF="/?p=1&amp;x=2">x</A>') == ["/?p=1&x=2"]

    def test_plain_text(self):
        assert parse_hrefs("no markup at all") == []


class TestContentLinkExtractor:
    def _extractor(self) -> ContentLinkExtractor:
        store = SiteStore()
        store.upsert_item(Item(id=2, slug="two"))
        store.upsert_item(Item(id=3, slug="three"))
        return ContentLinkExtractor(PermalinkResolver(store, "https://example.com/"))

    def test_ordered_unique_targets(self):
        item = Item(
            id=1,
            content='<a href="/three/">3</a> <a href="/?p=2">2</a> <a href="https://example.com/three">3</a>',
        )
        result = self._extractor().extract(item)
        assert result.targets == [3, 2]
        assert result.unresolved == []

    def test_unresolved_links_are_reported_not_stored(self):
        item = Item(
            id=1,
            content='<a href="https://other.org/">x</a> <a href="/missing/">y</a> <a href="/two/">2</a>',
        )
        result = self._extractor().extract(item)
        assert result.targets == [2]
        assert result.unresolved == ["https://other.org/", "/missing/"]

    def test_empty_body(self):
        result = self._extractor().extract(Item(id=1))
        assert result.targets == []
        assert result.unresolved == []
