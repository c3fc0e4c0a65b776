"""Front matter parsing for Quire documents.

A document may start with a YAML block fenced by ``---`` lines::

    ---
    title: Hello
    date: 2026-02-22
    tags: [react, mcp]
    ---
    Body text...

Functions:
    parse_front_matter: Split raw text into (metadata, body).
    coerce_date: Normalize YAML/string dates into naive datetimes.
    as_list: Normalize a scalar or list value into a list of strings.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import MalformedFrontMatterError

_OPENING_RE = re.compile(r"^---[ \t]*$")
_CLOSING_RE = re.compile(r"^(?:---|\.\.\.)[ \t]*$")


class _FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that keeps impossible timestamps, like ``2026-02-30``, as strings."""

    def construct_yaml_timestamp(self, node):
        try:
            return super().construct_yaml_timestamp(node)
        except ValueError:
            return self.construct_scalar(node)


_FrontMatterLoader.add_constructor(
    "tag:yaml.org,2002:timestamp", _FrontMatterLoader.construct_yaml_timestamp
)

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
)


def parse_front_matter(
    text: str, source: Path | None = None
) -> tuple[dict[str, Any], str]:
    """Split a document into its front matter and body.

    Args:
        text: Raw file content.
        source: Path used in error messages.

    Returns:
        Tuple of (metadata dict, remaining body). Without a leading ``---``
        line the metadata is empty and the body is the full text.

    Raises:
        MalformedFrontMatterError: The block is never closed, is not valid
            YAML, or is not a mapping.
    """
    content = text[1:] if text.startswith("\ufeff") else text
    lines = content.splitlines(keepends=True)
    if not lines or not _OPENING_RE.match(lines[0].rstrip("\r\n")):
        return {}, text

    for index in range(1, len(lines)):
        if _CLOSING_RE.match(lines[index].rstrip("\r\n")):
            block = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        raise MalformedFrontMatterError(
            source, "Front matter is missing its closing '---' delimiter"
        )

    try:
        data = yaml.load(block, Loader=_FrontMatterLoader)  # noqa: S506 - SafeLoader subclass
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        raise MalformedFrontMatterError(
            source, f"Invalid YAML in front matter: {exc}"
        ) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatterError(
            source, f"Front matter must be a mapping, got {type(data).__name__}"
        )
    return {str(key): value for key, value in data.items()}, body


def coerce_date(value: Any) -> datetime | None:
    """Convert a front matter date value into a naive datetime.

    Timezone offsets are dropped after parsing so that every date sorts
    against every other; the wall-clock time is kept.

    Args:
        value: A datetime, date, or string such as ``2026-02-22 10:30:00 +0100``.

    Returns:
        The parsed datetime, or None if the value cannot be interpreted.

    Examples:
        >>> coerce_date("2026-02-27")
        datetime.datetime(2026, 2, 27, 0, 0)

        >>> coerce_date("someday") is None
        True
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    raw = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=None)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(raw).replace(tzinfo=None)
    except ValueError:
        return None


def as_list(value: Any) -> list[str]:
    """Normalize a tags/categories value into a list of strings.

    Strings are split on commas when they contain one, otherwise on whitespace.

    Examples:
        >>> as_list("react, mcp")
        ['react', 'mcp']

        >>> as_list(["ai", None, 2026])
        ['ai', '2026']
    """
    if value is None:
        return []
    if isinstance(value, str):
        separator = "," if "," in value else None
        return [part.strip() for part in value.split(separator) if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]
