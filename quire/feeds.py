"""Sitemap and RSS output for Quire.

Both feeds are built from the pages a build wrote. Links in them must be
absolute, so neither is written unless ``url`` is set in ``quire.yaml``.

Classes:
    FeedGenerator: One XML file derived from the written pages.
    SitemapGenerator: ``sitemap.xml`` with every page.
    RSSGenerator: ``feed.xml`` with the newest posts.
    FeedRegistry: Writes a list of generators in order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from .collections import POSTS, sort_posts
from .html_utils import escape_html, join_root_url

if TYPE_CHECKING:
    from .build import RenderedPage
    from .config import SiteConfig

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


def _absolute(config: SiteConfig, url: str) -> str:
    return join_root_url(config.url, join_root_url(config.baseurl, url))


def _tag(name: str, text: str) -> str:
    return f"<{name}>{escape_html(text)}</{name}>"


class FeedGenerator(ABC):
    """Produces one XML file in the output root.

    Subclasses set ``filename`` and implement :meth:`generate`.
    """

    filename: str = ""

    @abstractmethod
    def generate(self, pages: list[RenderedPage], config: SiteConfig) -> str | None:
        """Return the file content, or None to skip writing it."""

    def write(self, output_dir: Path, pages: list[RenderedPage], config: SiteConfig) -> bool:
        content = self.generate(pages, config)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Every written page, including listing pages, sorted by URL."""

    filename = "sitemap.xml"

    def generate(self, pages: list[RenderedPage], config: SiteConfig) -> str | None:
        if not config.url:
            return None
        entries = []
        for page in sorted(pages, key=lambda p: p.url):
            entry = _tag("loc", _absolute(config, page.url))
            if page.document.date is not None:
                entry += f"<lastmod>{page.document.date:%Y-%m-%d}</lastmod>"
            entries.append(f"  <url>{entry}</url>")
        return "\n".join([XML_DECLARATION, f'<urlset xmlns="{SITEMAP_NS}">', *entries, "</urlset>"])


class RSSGenerator(FeedGenerator):
    """RSS 2.0 channel of the newest ``feed_limit`` posts.

    Listing pages (those with a pager) never become items.
    """

    filename = "feed.xml"

    def generate(self, pages: list[RenderedPage], config: SiteConfig) -> str | None:
        if not config.url:
            return None
        single = [p for p in pages if p.pager is None]
        url_of = {id(p.document): p.url for p in single}
        posts = [p.document for p in single if p.document.collection == POSTS]

        channel = [
            _tag("title", config.title),
            _tag("link", _absolute(config, "/")),
            _tag("description", config.description or config.title),
            f"<lastBuildDate>{datetime.now(timezone.utc).strftime(RFC822_FORMAT)}</lastBuildDate>",
        ]
        for post in sort_posts(posts, warn=False)[: config.feed_limit]:
            link = _absolute(config, url_of[id(post)])
            parts = [
                _tag("title", post.title),
                _tag("link", link),
                _tag("guid", link),
                _tag("description", post.excerpt or post.title),
            ]
            if post.date is not None:
                parts.append(f"<pubDate>{post.date.strftime(RFC822_FORMAT)}</pubDate>")
            channel.append("<item>" + "".join(parts) + "</item>")
        return "\n".join([XML_DECLARATION, '<rss version="2.0"><channel>', *channel, "</channel></rss>"])


class FeedRegistry:
    """Ordered feed generators written after the pages."""

    def __init__(self, generators: Iterable[FeedGenerator] = ()) -> None:
        self.generators = list(generators)

    def register(self, generator: FeedGenerator) -> None:
        self.generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        pages: Iterable[RenderedPage],
        config: SiteConfig,
    ) -> list[str]:
        """Write every feed that can be produced; return the filenames written."""
        pages = list(pages)
        return [g.filename for g in self.generators if g.write(output_dir, pages, config)]


def create_default_feed_registry() -> FeedRegistry:
    return FeedRegistry([SitemapGenerator(), RSSGenerator()])
