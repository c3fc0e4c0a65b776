"""Content loading for Quire.

This module discovers source files, reads them into Document objects and
renders their bodies once.

Key classes:
- Document: A parsed source document.
- SourceLoader: Finds documents and static files under the site directory.
- DocumentReader: Builds a Document from one source file.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from pathlib import Path
from typing import Any

from .collections import collection_for
from .config import SiteConfig
from .errors import DocumentError
from .frontmatter import as_list, coerce_date, parse_front_matter
from .renderers import Heading, RendererRegistry, default_renderer_registry
from .utils import (
    extract_date_from_name,
    first_paragraph,
    is_document,
    is_internal_path,
    is_markdown,
    slugify,
    titleize,
)


@dataclass(eq=False)
class Document:
    """A source document and everything derived from it during one build.

    Metadata keys are also reachable by item access, so templates can write
    ``page.author`` for any front matter field.

    Attributes:
        path: Absolute path to the source file.
        relative_path: Path relative to the site directory.
        metadata: Front matter merged over scoped defaults, in source order.
        body: Raw body text after the front matter.
        source_type: "markdown" or "html".
        collection: Collection name ("posts", "pages", ...).
        date: Publication date, or None when missing or unparseable.
        draft: Whether the document is a draft.
        url: Resolved permalink, assigned by the builder.
        toc: Headings found while rendering.
    """

    path: Path
    relative_path: Path
    metadata: dict[str, Any]
    body: str
    source_type: str
    collection: str
    date: datetime | None = None
    draft: bool = False
    url: str = ""
    toc: list[Heading] = field(default_factory=list)
    renderer: Any = field(default=None, repr=False)

    @cached_property
    def rendered(self) -> str:
        """Body converted to HTML, computed on first access only."""
        if self.renderer is None:
            return self.body
        html, toc = self.renderer.render(self.body)
        self.toc = toc
        return html

    @property
    def title(self) -> str:
        title = self.metadata.get("title")
        if title:
            return str(title)
        if is_markdown(self.path):
            for line in self.body.splitlines():
                stripped = line.strip()
                if stripped.startswith("# "):
                    return stripped[2:].strip()
        return titleize(self.path.name)

    @property
    def slug(self) -> str:
        return slugify(str(self.metadata.get("slug") or self.path.stem))

    @property
    def tags(self) -> list[str]:
        return as_list(self.metadata.get("tags"))

    @property
    def categories(self) -> list[str]:
        return as_list(self.metadata.get("categories", self.metadata.get("category")))

    @property
    def excerpt(self) -> str:
        excerpt = self.metadata.get("excerpt")
        if excerpt:
            return str(excerpt)
        return first_paragraph(self.body)

    @property
    def published(self) -> bool:
        return self.metadata.get("published", True) is not False

    def __getitem__(self, key: str) -> Any:
        return self.metadata[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)


class SourceLoader:
    """Finds documents and static files under the site directory.

    Underscore-prefixed directories (``_layouts``, ``_includes``) are never
    emitted. Underscore-prefixed files are drafts. Dot files are ignored.

    Attributes:
        site_dir: Directory containing site content.
        exclude: Glob patterns (relative POSIX paths) to skip.
    """

    def __init__(self, site_dir: Path, exclude: list[str] | None = None):
        self.site_dir = site_dir
        self.exclude = list(exclude or [])

    def scan(self, include_drafts: bool = False) -> tuple[list[Path], list[Path]]:
        """Return (document paths, static file paths), both sorted.

        Args:
            include_drafts: Whether to include underscore-prefixed files.
        """
        documents: list[Path] = []
        static_files: list[Path] = []
        for path in sorted(self.site_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.site_dir)
            if is_internal_path(rel.parent) or any(
                part.startswith(".") for part in rel.parts
            ):
                continue
            if self._is_excluded(rel):
                continue
            if is_document(path):
                if rel.name.startswith("_") and not include_drafts:
                    continue
                documents.append(path)
            elif not rel.name.startswith("_"):
                static_files.append(path)
        return documents, static_files

    def _is_excluded(self, rel: Path) -> bool:
        posix = rel.as_posix()
        for pattern in self.exclude:
            cleaned = pattern.strip("/")
            if fnmatch.fnmatch(posix, cleaned) or posix.startswith(f"{cleaned}/"):
                return True
        return False


def apply_defaults(
    defaults: list[dict[str, Any]],
    relative_path: Path,
    collection: str,
    front_matter: dict[str, Any],
) -> dict[str, Any]:
    """Merge scoped defaults under a document's front matter.

    Each entry looks like ``{"scope": {"path": "posts", "type": "posts"},
    "values": {"layout": "post"}}``. Matching entries apply in order; the
    document's own front matter always wins.
    """
    posix = relative_path.as_posix()
    merged: dict[str, Any] = {}
    for entry in defaults:
        scope = entry.get("scope") or {}
        scope_path = str(scope.get("path") or "").strip("/")
        scope_type = scope.get("type")
        if scope_path and not (posix == scope_path or posix.startswith(f"{scope_path}/")):
            continue
        if scope_type and scope_type != collection:
            continue
        merged.update(entry.get("values") or {})
    merged.update(front_matter)
    return merged


class DocumentReader:
    """Builds Document objects from source files.

    Attributes:
        site_dir: Directory containing site content.
        config: Site configuration (for scoped defaults).
        renderer_registry: Registry of content renderers.
    """

    def __init__(
        self,
        site_dir: Path,
        config: SiteConfig,
        renderer_registry: RendererRegistry | None = None,
    ):
        self.site_dir = site_dir
        self.config = config
        self.renderer_registry = renderer_registry or default_renderer_registry

    def read(self, path: Path) -> Document:
        """Read and parse one source file; the body is rendered lazily.

        Raises:
            MalformedFrontMatterError: The front matter cannot be parsed.
            DocumentError: The file is unreadable or not UTF-8 text.
        """
        rel = path.relative_to(self.site_dir)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise DocumentError(path, f"Not UTF-8 text: {exc}") from exc
        except OSError as exc:
            raise DocumentError(path, f"Cannot read file: {exc.strerror or exc}") from exc
        front_matter, body = parse_front_matter(text, path)
        collection = collection_for(rel, front_matter)
        metadata = apply_defaults(self.config.defaults, rel, collection, front_matter)

        if "date" in metadata:
            date = coerce_date(metadata["date"])
        else:
            date = extract_date_from_name(path.stem)

        renderer = self.renderer_registry.get_renderer(path)
        document = Document(
            path=path,
            relative_path=rel,
            metadata=metadata,
            body=body,
            source_type=renderer.source_type if renderer else "unknown",
            collection=collection,
            date=date,
            renderer=renderer,
        )
        document.draft = path.name.startswith("_") or not document.published
        return document
