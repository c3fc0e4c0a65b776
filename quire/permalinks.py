"""Permalink resolution for Quire.

Maps each document to the URL it is published at, and each URL to a file in
the output directory. Patterns use ``:placeholder`` tokens, for example
``/:categories/:year/:month/:day/:title/``.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from .collections import POSTS
from .utils import slugify

if TYPE_CHECKING:
    from .config import SiteConfig
    from .content import Document

STYLES = {
    "date": "/:categories/:year/:month/:day/:title.html",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "none": "/:categories/:title.html",
}

_PLACEHOLDER_RE = re.compile(
    r":(i_month|i_day|year|month|day|title|slug|categories|collection|path|name)"
)


def placeholders(document: Document) -> dict[str, str]:
    """Values available to permalink patterns for one document."""
    date = document.date
    return {
        "year": f"{date:%Y}" if date else "",
        "month": f"{date:%m}" if date else "",
        "day": f"{date:%d}" if date else "",
        "i_month": str(date.month) if date else "",
        "i_day": str(date.day) if date else "",
        "title": document.slug,
        "slug": document.slug,
        "categories": "/".join(slugify(c) for c in document.categories),
        "collection": document.collection or "",
        "path": document.relative_path.with_suffix("").as_posix(),
        "name": document.path.stem,
    }


def expand_permalink(pattern: str, document: Document) -> str:
    """Expand a permalink pattern or style name for a document.

    Empty placeholders (an undated post's ``:year``) collapse away along with
    the doubled slashes they leave behind.

    Args:
        pattern: A pattern such as ``/:year/:title/`` or a style name from STYLES.
        document: Document supplying the values.

    Returns:
        A root-relative URL.
    """
    template = STYLES.get(pattern, pattern)
    values = placeholders(document)
    url = _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)
    return re.sub(r"/{2,}", "/", f"/{url}")


def location_url(relative_path: Path, slug: str) -> str:
    """URL derived from a document's location under the site directory.

    Examples:
        >>> location_url(Path("index.md"), "index")
        '/'

        >>> location_url(Path("blog/index.html"), "index")
        '/blog/'

        >>> location_url(Path("about.md"), "about")
        '/about/'
    """
    segments = [p for p in relative_path.parent.parts if p]
    url_parts = segments if slug == "index" else segments + [slug]
    path = "/".join(url_parts)
    return f"/{path}/" if path else "/"


def permalink_for(document: Document, config: SiteConfig) -> str:
    """Resolve the URL a document is published at.

    Front matter ``permalink`` wins; posts otherwise use the site-wide post
    pattern, and every other document is placed by its location.
    """
    explicit = document.metadata.get("permalink")
    if explicit:
        return expand_permalink(str(explicit), document)
    if document.collection == POSTS:
        return expand_permalink(config.permalink, document)
    return location_url(document.relative_path, document.slug)


def output_path_for(url: str) -> Path:
    """Relative output file for a URL.

    Directory-style URLs map to ``index.html`` inside them; URLs with a file
    suffix map to that file.

    Examples:
        >>> output_path_for("/2026/02/27/mcp/")
        PosixPath('2026/02/27/mcp/index.html')

        >>> output_path_for("/404.html")
        PosixPath('404.html')
    """
    rel = url.strip("/")
    if not rel or url.endswith("/") or not PurePosixPath(rel).suffix:
        return Path(rel) / "index.html"
    return Path(rel)
