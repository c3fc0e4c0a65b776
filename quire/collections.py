"""Collection indexing for Quire.

Documents are grouped into named collections, posts are ordered newest
first, and blog indexes are split into fixed-size pages.

Key pieces:
- DocumentCollection: Read-only sequence of documents with template helpers.
- TagCollection: Mapping of tag (or category) name to DocumentCollection.
- Pager: One page of a paginated post listing.
- partition / sort_posts / paginate / build_index: the indexing operations.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .content import Document

logger = logging.getLogger(__name__)

POSTS = "posts"
PAGES = "pages"


def collection_for(relative_path: Path, metadata: Mapping[str, Any]) -> str:
    """Name the collection a document belongs to.

    An explicit ``collection`` front matter value wins; otherwise the first
    directory under the site root names it, and top-level files are pages.

    Examples:
        >>> collection_for(Path("posts/2026-02-27-mcp.md"), {})
        'posts'

        >>> collection_for(Path("about.md"), {})
        'pages'
    """
    explicit = metadata.get("collection")
    if explicit:
        return str(explicit)
    if len(relative_path.parts) > 1:
        return relative_path.parts[0]
    return PAGES


class DocumentCollection(Sequence["Document"]):
    """Lightweight helper for working with lists of documents in templates and code."""

    def __init__(self, documents: Iterable[Document] = ()):
        self._documents = list(documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return DocumentCollection(self._documents[item])
        return self._documents[item]

    def with_tag(self, tag: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if tag in d.tags)

    def in_category(self, category: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if category in d.categories)

    def latest(self, count: int = 5) -> DocumentCollection:
        return sort_posts(self._documents, warn=False)[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


class TagCollection(Mapping[str, DocumentCollection]):
    """Mapping of tag name to DocumentCollection with convenience helpers."""

    def __init__(self, mapping: Mapping[str, Iterable[Document]]):
        self._mapping = {k: DocumentCollection(v) for k, v in sorted(mapping.items())}

    def __getitem__(self, key: str) -> DocumentCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"


def sort_posts(documents: Iterable[Document], warn: bool = True) -> DocumentCollection:
    """Order posts by date, newest first.

    Ties are broken by source path so the order is deterministic. Posts with
    no usable date sort after every dated post.

    Args:
        documents: Posts to order.
        warn: Log a warning for each undated post.

    Returns:
        A new DocumentCollection.
    """
    by_path = sorted(documents, key=lambda d: d.path.as_posix())
    if warn:
        for document in by_path:
            if document.date is None:
                logger.warning(
                    "%s has no usable date; listing it after dated posts",
                    document.relative_path,
                )
    # Stable sort keeps path order within equal dates, even when reversed
    ordered = sorted(
        by_path,
        key=lambda d: (d.date is not None, d.date or datetime.min),
        reverse=True,
    )
    return DocumentCollection(ordered)


def partition(documents: Iterable[Document]) -> dict[str, DocumentCollection]:
    """Group documents by their collection name.

    The posts collection is ordered with :func:`sort_posts`; every other
    collection keeps source path order.

    Returns:
        Mapping of collection name to DocumentCollection. ``posts`` is always
        present, even when empty.
    """
    grouped: dict[str, list[Document]] = {POSTS: []}
    for document in documents:
        grouped.setdefault(document.collection, []).append(document)
    collections: dict[str, DocumentCollection] = {}
    for name, members in sorted(grouped.items()):
        if name == POSTS:
            collections[name] = sort_posts(members)
        else:
            collections[name] = DocumentCollection(
                sorted(members, key=lambda d: d.path.as_posix())
            )
    return collections


def build_index(documents: Iterable[Document], attribute: str) -> TagCollection:
    """Build a tag or category index, preserving document order per key.

    Args:
        documents: Ordered documents (usually the sorted posts).
        attribute: ``"tags"`` or ``"categories"``.
    """
    index: dict[str, list[Document]] = {}
    for document in documents:
        for key in getattr(document, attribute):
            index.setdefault(key, []).append(document)
    return TagCollection(index)


@dataclass
class Pager:
    """One page of a paginated post listing.

    Attributes:
        posts: Posts shown on this page.
        page: 1-based page number.
        per_page: Configured page size.
        total_pages: Number of pages in the listing (at least 1).
        total_posts: Number of posts across all pages.
        url: URL of this page.
        previous_page_path: URL of the previous page, or None on the first.
        next_page_path: URL of the next page, or None on the last.
    """

    posts: DocumentCollection
    page: int
    per_page: int
    total_pages: int
    total_posts: int
    url: str
    previous_page_path: str | None
    next_page_path: str | None

    @property
    def previous_page(self) -> int | None:
        return self.page - 1 if self.page > 1 else None

    @property
    def next_page(self) -> int | None:
        return self.page + 1 if self.page < self.total_pages else None


def pager_url(base_url: str, page: int, path_pattern: str = "page/:num/") -> str:
    """URL of listing page ``page``; page 1 is the listing itself.

    Examples:
        >>> pager_url("/blog/", 1)
        '/blog/'

        >>> pager_url("/blog/", 3)
        '/blog/page/3/'
    """
    if page == 1:
        return base_url
    base = base_url if base_url.endswith("/") else base_url.rsplit("/", 1)[0] + "/"
    suffix = path_pattern.replace(":num", str(page)).lstrip("/")
    return f"{base}{suffix}"


def paginate(
    posts: Sequence[Document],
    per_page: int,
    base_url: str = "/",
    path_pattern: str = "page/:num/",
) -> list[Pager]:
    """Split posts into fixed-size pages.

    N posts with page size P give ``ceil(N / P)`` pages; the last one may be
    partially filled. No posts still give exactly one, empty, page.

    Args:
        posts: Posts in listing order.
        per_page: Page size, at least 1.
        base_url: URL of the first page.
        path_pattern: Relative path of later pages, with a ``:num`` placeholder.

    Raises:
        ValueError: ``per_page`` is smaller than 1.
    """
    if per_page < 1:
        raise ValueError(f"per_page must be at least 1, got {per_page}")
    items = list(posts)
    total_pages = max(1, math.ceil(len(items) / per_page))
    urls = [pager_url(base_url, n, path_pattern) for n in range(1, total_pages + 1)]
    pagers = []
    for index in range(total_pages):
        start = index * per_page
        pagers.append(
            Pager(
                posts=DocumentCollection(items[start : start + per_page]),
                page=index + 1,
                per_page=per_page,
                total_pages=total_pages,
                total_posts=len(items),
                url=urls[index],
                previous_page_path=urls[index - 1] if index > 0 else None,
                next_page_path=urls[index + 1] if index + 1 < total_pages else None,
            )
        )
    return pagers
