"""Small helpers shared across Quire.

Key functions:
    slugify: Filename stem or title to URL slug.
    titleize: Filename to a readable fallback title.
    extract_date_from_name: Date from a ``YYYY-MM-DD-`` filename prefix.
    first_paragraph: Plain-text first paragraph, used for excerpts.
    ensure_clean_dir: Empty a directory, creating it when needed.
    is_internal_path, is_markdown, is_html, is_document: Source classification.
"""

from __future__ import annotations

import re
import shutil
import unicodedata
from datetime import datetime
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")
HTML_SUFFIXES = (".html", ".htm")

_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?=-|$)")
_DATED_NAME_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}-")
_TAG_RE = re.compile(r"<[^>]+>")
_JINJA_RE = re.compile(r"\{[%#{].*?[%#}]\}")
# Blocks that never make a good excerpt: headings, images, fences, rules, tags.
_NON_PROSE = ("#", "![", "```", "---", "{%")


def _strip_date_prefix(name: str) -> str:
    return _DATED_NAME_RE.sub("", name, count=1)


def slugify(name: str) -> str:
    """Lowercase slug of ``name`` without its date prefix.

    Letters and digits from any script are kept. A name with none at all
    becomes ``untitled``.

    >>> slugify("2026-02-27-Building an MCP Server")
    'building-an-mcp-server'
    >>> slugify("日本語")
    '日本語'
    """
    text = unicodedata.normalize("NFKC", _strip_date_prefix(name)).lower()
    slug = re.sub(r"[\W_]+", "-", text)
    return slug.strip("-") or "untitled"


def titleize(filename: str) -> str:
    """Readable title from a filename, e.g. ``2024-01-15-hello-world.md`` -> ``Hello World``."""
    words = re.split(r"[-_\s]+", _strip_date_prefix(Path(filename).stem))
    title = " ".join(word.capitalize() for word in words if word)
    return title or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Parse the ``YYYY-MM-DD`` prefix of a filename stem.

    Returns None when there is no prefix or it is not a real calendar date.
    """
    match = _DATE_PREFIX_RE.match(name)
    if match is None:
        return None
    try:
        return datetime(*(int(group) for group in match.groups()))
    except ValueError:
        return None


def first_paragraph(text: str, limit: int | None = None) -> str:
    """Return the first prose paragraph of ``text`` as plain text.

    Markup and Jinja syntax are stripped and whitespace collapsed.

    Args:
        text: Markdown or HTML body.
        limit: Truncate the result to this many characters.
    """
    for block in text.split("\n\n"):
        block = block.strip()
        if not block or block.startswith(_NON_PROSE):
            continue
        plain = " ".join(_JINJA_RE.sub("", _TAG_RE.sub("", block)).split())
        if plain:
            return plain[:limit] if limit else plain
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Make ``path`` an existing, empty directory."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def is_internal_path(path: Path) -> bool:
    """True when any part of ``path`` starts with ``_`` (layouts, includes, drafts)."""
    return any(part.startswith("_") for part in path.parts)


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    return path.suffix.lower() in HTML_SUFFIXES


def is_document(path: Path) -> bool:
    """Documents are rendered; every other file under ``site/`` is copied."""
    return is_markdown(path) or is_html(path)
