"""HTML string helpers for Quire.

Functions:
    escape_html: Entity-escape text for HTML and XML output.
    join_root_url: Join a base URL or prefix with a site path.
    local_file_references: Root-relative src/href values that point at files.
"""

from __future__ import annotations

import posixpath
import re
from urllib.parse import unquote, urlsplit

_REFERENCE_RE = re.compile(r'\b(?:href|src)=(["\'])(?P<url>[^"\']+)\1')

_ENTITIES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"}
_ENTITY_RE = re.compile("[&<>\"]")

# Links to pages, not files.
_PAGE_SUFFIXES = ("", ".html", ".htm")


def escape_html(text: str) -> str:
    """Replace ``& < > "`` with entities.

    >>> escape_html('Tom & Jerry')
    'Tom &amp; Jerry'
    """
    return _ENTITY_RE.sub(lambda m: _ENTITIES[m.group()], text)


def join_root_url(root_url: str, path: str) -> str:
    """Join ``root_url`` and ``path`` with exactly one slash between them.

    With an empty ``root_url`` the result is ``path`` made root-relative.

    >>> join_root_url('https://example.com/', 'about')
    'https://example.com/about'
    """
    if not path.startswith("/"):
        path = "/" + path
    return root_url.rstrip("/") + path


def local_file_references(html: str, baseurl: str = "") -> list[str]:
    """Collect root-relative references to static files in rendered HTML.

    Only ``href``/``src`` values starting with a single ``/`` and ending in a
    non-page suffix (``.css``, ``.png``, ...) are returned. Query strings and
    fragments are dropped and the site ``baseurl`` prefix is removed, so the
    result can be looked up directly under the output directory.

    Args:
        html: Rendered HTML.
        baseurl: Path prefix the site is served under (e.g. ``/blog``).

    Returns:
        Unique paths in document order.

    Examples:
        >>> local_file_references('<img src="/images/a.png?v=2"><a href="/about/">')
        ['/images/a.png']
    """
    prefix = baseurl.rstrip("/")
    found: list[str] = []
    for match in _REFERENCE_RE.finditer(html):
        url = match.group("url").strip()
        if not url.startswith("/") or url.startswith("//"):
            continue
        path = unquote(urlsplit(url).path)
        if prefix and (path == prefix or path.startswith(f"{prefix}/")):
            path = path[len(prefix) :] or "/"
        if posixpath.splitext(path)[1].lower() in _PAGE_SUFFIXES:
            continue
        if path not in found:
            found.append(path)
    return found
