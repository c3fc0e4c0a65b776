from datetime import datetime
from pathlib import Path

from quire.build import RenderedPage
from quire.collections import DocumentCollection, Pager
from quire.config import SiteConfig
from quire.content import Document
from quire.feeds import (
    FeedRegistry,
    RSSGenerator,
    SitemapGenerator,
    create_default_feed_registry,
)


def make_page(relative, url, title, date=None, collection="posts", pager=None, body=""):
    document = Document(
        path=Path("/project/site") / relative,
        relative_path=Path(relative),
        metadata={"title": title},
        body=body,
        source_type="markdown",
        collection=collection,
        date=date,
        url=url,
    )
    return RenderedPage(document=document, url=url, html="", pager=pager)


def make_pages():
    old = make_page(
        "posts/old.md", "/2026/02/22/old/", "Old & Gold", datetime(2026, 2, 22), body="Old body."
    )
    new = make_page("posts/new.md", "/2026/02/27/new/", "New", datetime(2026, 2, 27))
    about = make_page("about.md", "/about/", "About", collection="pages")
    listing = make_page(
        "blog/index.html",
        "/blog/page/2/",
        "Blog",
        collection="posts",
        pager=Pager(DocumentCollection(), 2, 1, 2, 2, "/blog/page/2/", "/blog/", None),
    )
    return [about, old, new, listing]


def test_sitemap_lists_every_page():
    config = SiteConfig.from_mapping({"url": "https://example.com", "baseurl": "/b"})
    xml = SitemapGenerator().generate(make_pages(), config)
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<url><loc>https://example.com/b/about/</loc></url>" in xml
    assert (
        "<url><loc>https://example.com/b/2026/02/27/new/</loc>"
        "<lastmod>2026-02-27</lastmod></url>"
    ) in xml
    assert "https://example.com/b/blog/page/2/" in xml


def test_rss_lists_posts_newest_first():
    config = SiteConfig.from_mapping(
        {"url": "https://example.com", "title": "Blog", "feed_limit": 5}
    )
    xml = RSSGenerator().generate(make_pages(), config)
    assert "<title>Blog</title>" in xml
    assert xml.index("<title>New</title>") < xml.index("<title>Old &amp; Gold</title>")
    assert "<link>https://example.com/2026/02/22/old/</link>" in xml
    assert "<description>Old body.</description>" in xml
    assert "<pubDate>Sun, 22 Feb 2026 00:00:00 +0000</pubDate>" in xml
    assert "<title>About</title>" not in xml
    assert "page/2" not in xml


def test_rss_respects_feed_limit():
    config = SiteConfig.from_mapping({"url": "https://example.com", "feed_limit": 1})
    xml = RSSGenerator().generate(make_pages(), config)
    assert xml.count("<item>") == 1
    assert "<title>New</title>" in xml


def test_feeds_need_absolute_url(tmp_path):
    registry = create_default_feed_registry()
    written = registry.generate_all(tmp_path, make_pages(), SiteConfig.from_mapping({}))
    assert written == []
    assert list(tmp_path.iterdir()) == []


def test_registry_writes_files(tmp_path):
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    written = registry.generate_all(
        tmp_path, iter(make_pages()), SiteConfig.from_mapping({"url": "https://example.com"})
    )
    assert written == ["sitemap.xml"]
    assert "<urlset" in (tmp_path / "sitemap.xml").read_text(encoding="utf-8")
