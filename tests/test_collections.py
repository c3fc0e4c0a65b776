import logging
import math
from datetime import datetime
from pathlib import Path

import pytest

from quire.collections import (
    DocumentCollection,
    build_index,
    collection_for,
    pager_url,
    paginate,
    partition,
    sort_posts,
)


class FakeDocument:
    def __init__(self, name, date=None, tags=(), categories=(), collection="posts"):
        self.relative_path = Path(collection) / name
        self.path = Path("/site") / self.relative_path
        self.date = date
        self.tags = list(tags)
        self.categories = list(categories)
        self.collection = collection
        self.title = name


def names(documents):
    return [d.relative_path.name for d in documents]


def test_collection_for():
    assert collection_for(Path("posts/2026-02-27-mcp.md"), {}) == "posts"
    assert collection_for(Path("docs/guide/setup.md"), {}) == "docs"
    assert collection_for(Path("about.md"), {}) == "pages"
    assert collection_for(Path("about.md"), {"collection": "posts"}) == "posts"


def test_sort_posts_newest_first():
    posts = [
        FakeDocument("a.md", datetime(2026, 2, 22)),
        FakeDocument("b.md", datetime(2026, 2, 27)),
        FakeDocument("c.md", datetime(2025, 12, 31, 23, 59)),
    ]
    ordered = sort_posts(posts)
    assert names(ordered) == ["b.md", "a.md", "c.md"]
    dates = [d.date for d in ordered]
    assert all(earlier > later for earlier, later in zip(dates, dates[1:]))


def test_sort_posts_breaks_date_ties_by_path():
    same_day = datetime(2026, 2, 27)
    posts = [
        FakeDocument("zeta.md", same_day),
        FakeDocument("alpha.md", same_day),
        FakeDocument("mid.md", same_day),
    ]
    assert names(sort_posts(posts)) == ["alpha.md", "mid.md", "zeta.md"]
    assert names(sort_posts(reversed(posts))) == ["alpha.md", "mid.md", "zeta.md"]


def test_undated_posts_sort_last_with_warning(caplog):
    posts = [
        FakeDocument("undated-b.md"),
        FakeDocument("dated.md", datetime(2020, 1, 1)),
        FakeDocument("undated-a.md"),
    ]
    with caplog.at_level(logging.WARNING, logger="quire.collections"):
        ordered = sort_posts(posts)
    assert names(ordered) == ["dated.md", "undated-a.md", "undated-b.md"]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 2
    assert "undated-a.md" in warnings[0].getMessage()

    caplog.clear()
    sort_posts(posts, warn=False)
    assert not caplog.records


def test_partition_groups_and_always_has_posts():
    docs = [
        FakeDocument("b.md", collection="pages"),
        FakeDocument("a.md", collection="pages"),
        FakeDocument("guide.md", collection="docs"),
    ]
    collections = partition(docs)
    assert list(collections) == ["docs", "pages", "posts"]
    assert len(collections["posts"]) == 0
    assert names(collections["pages"]) == ["a.md", "b.md"]


@pytest.mark.parametrize("total", [0, 1, 2, 5, 6, 7, 12])
@pytest.mark.parametrize("per_page", [1, 3, 5])
def test_paginate_page_counts(total, per_page):
    posts = [FakeDocument(f"{i:02d}.md", datetime(2026, 1, 1 + i)) for i in range(total)]
    pagers = paginate(posts, per_page, "/blog/")

    assert len(pagers) == max(1, math.ceil(total / per_page))
    assert sum(len(p.posts) for p in pagers) == total
    assert all(len(p.posts) == per_page for p in pagers[:-1])
    assert [d for p in pagers for d in p.posts] == posts
    for number, pager in enumerate(pagers, start=1):
        assert pager.page == number
        assert pager.total_pages == len(pagers)
        assert pager.total_posts == total


def test_paginate_with_no_posts_gives_one_empty_page():
    (pager,) = paginate([], 5, "/blog/")
    assert len(pager.posts) == 0
    assert pager.url == "/blog/"
    assert pager.previous_page_path is None
    assert pager.next_page_path is None


def test_pager_links():
    posts = [FakeDocument(f"{i}.md", datetime(2026, 2, 1 + i)) for i in range(5)]
    first, second, third = paginate(posts, 2, "/blog/")

    assert first.url == "/blog/"
    assert first.previous_page_path is None
    assert first.next_page_path == "/blog/page/2/"
    assert (first.previous_page, first.next_page) == (None, 2)

    assert second.url == "/blog/page/2/"
    assert second.previous_page_path == "/blog/"
    assert second.next_page_path == "/blog/page/3/"

    assert third.next_page_path is None
    assert third.next_page is None
    assert len(third.posts) == 1


def test_paginate_rejects_non_positive_page_size():
    with pytest.raises(ValueError):
        paginate([], 0)


def test_pager_url():
    assert pager_url("/", 2) == "/page/2/"
    assert pager_url("/blog/", 1) == "/blog/"
    assert pager_url("/blog/", 4, "p:num/") == "/blog/p4/"
    assert pager_url("/blog/index.html", 2) == "/blog/page/2/"


def test_build_index_and_helpers():
    a = FakeDocument("a.md", datetime(2026, 2, 22), tags=["react"], categories=["dev"])
    b = FakeDocument("b.md", datetime(2026, 2, 27), tags=["react", "mcp"])
    posts = sort_posts([a, b])

    tags = build_index(posts, "tags")
    assert list(tags) == ["mcp", "react"]
    assert names(tags["react"]) == ["b.md", "a.md"]
    assert names(build_index(posts, "categories")["dev"]) == ["a.md"]

    collection = DocumentCollection([a, b])
    assert names(collection.with_tag("mcp")) == ["b.md"]
    assert names(collection.in_category("dev")) == ["a.md"]
    assert names(collection.latest(1)) == ["b.md"]
    assert isinstance(collection[:1], DocumentCollection)
