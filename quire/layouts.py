"""Layouts and layout composition for Quire.

A layout is an HTML/Jinja file in ``site/_layouts``. Its body holds a
``{{ content }}`` placeholder for the child content, and its own front matter
may name a parent layout::

    ---
    layout: default
    ---
    <article>{{ content }}</article>

Composition wraps a rendered body in its layout, then in that layout's
parent, and so on until a layout without a parent is reached.

Key classes:
- Layout: One named template with an optional parent.
- LayoutRegistry: Read-only name -> Layout mapping loaded once per build.
- LayoutComposer: Wraps bodies in their layout chain.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import (
    DocumentError,
    LayoutCycleError,
    MalformedFrontMatterError,
    UnknownLayoutError,
    UnresolvableConfigurationError,
)
from .frontmatter import parse_front_matter

if TYPE_CHECKING:
    from .config import SiteConfig
    from .templates import TemplateEngine

logger = logging.getLogger(__name__)

LAYOUT_SUFFIXES = (".html", ".htm", ".jinja")
_NO_LAYOUT = ("", "none", "null", "false")


def layout_name_from(value: Any) -> str | None:
    """Interpret a front matter ``layout`` value; None means "no layout"."""
    if value is None:
        return None
    name = str(value).strip()
    if name.lower() in _NO_LAYOUT:
        return None
    return name


@dataclass
class Layout:
    """A named template wrapping child content.

    Attributes:
        name: Layout name (file name up to its first dot).
        template: Template text containing the ``{{ content }}`` placeholder.
        parent: Name of the enclosing layout, or None at the top of a chain.
        metadata: The layout's own front matter.
        path: Source file, when loaded from disk.
    """

    name: str
    template: str
    parent: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    path: Path | None = None


class LayoutRegistry(Mapping[str, Layout]):
    """Read-only mapping of layout name to Layout."""

    def __init__(self, layouts: Iterable[Layout] = ()):
        self._layouts: dict[str, Layout] = {}
        for layout in layouts:
            self._layouts[layout.name] = layout

    @classmethod
    def load(cls, layouts_dir: Path) -> LayoutRegistry:
        """Load every layout file in ``layouts_dir``.

        A missing directory yields an empty registry.

        Raises:
            UnresolvableConfigurationError: A layout's front matter is
                malformed, or two files define the same layout name.
        """
        layouts: dict[str, Layout] = {}
        if not layouts_dir.is_dir():
            return cls()
        for path in sorted(layouts_dir.iterdir()):
            if not path.is_file() or path.suffix.lower() not in LAYOUT_SUFFIXES:
                continue
            name = path.name.split(".")[0]
            if name in layouts:
                raise UnresolvableConfigurationError(
                    f"Layout '{name}' is defined twice "
                    f"({layouts[name].path.name} and {path.name})",
                    path,
                )
            try:
                metadata, template = parse_front_matter(
                    path.read_text(encoding="utf-8"), path
                )
            except MalformedFrontMatterError as exc:
                raise UnresolvableConfigurationError(exc.message, path) from exc
            layouts[name] = Layout(
                name=name,
                template=template,
                parent=layout_name_from(metadata.get("layout")),
                metadata=metadata,
                path=path,
            )
        logger.debug("Loaded %d layouts from %s", len(layouts), layouts_dir)
        return cls(layouts.values())

    def __getitem__(self, name: str) -> Layout:
        return self._layouts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._layouts)

    def __len__(self) -> int:
        return len(self._layouts)

    def chain(self, name: str, source_path: Path | None = None) -> list[Layout]:
        """Resolve a layout and its ancestors, innermost first.

        Walks parent links with an explicit visited set, so a cycle ends the
        walk with an error instead of recursing forever.

        Raises:
            UnknownLayoutError: A name in the chain is not registered.
            LayoutCycleError: A name repeats within the chain.
        """
        chain: list[Layout] = []
        visited: list[str] = []
        current: str | None = name
        while current is not None:
            if current in visited:
                raise LayoutCycleError(source_path, visited + [current])
            layout = self._layouts.get(current)
            if layout is None:
                raise UnknownLayoutError(source_path, current)
            visited.append(current)
            chain.append(layout)
            current = layout.parent
        return chain

    def resolve_default(self, config: SiteConfig) -> str | None:
        """Check the site-wide default layout before any document is built.

        When ``quire.yaml`` names ``default_layout`` it must exist and have a
        sound parent chain. When it is left implicit and no such layout
        exists, documents without a layout are written bare.

        Returns:
            The default layout name, or None for "no default layout".

        Raises:
            UnresolvableConfigurationError: The configured default layout is
                missing or its chain is broken.
        """
        name = config.default_layout
        if name not in self._layouts and "default_layout" not in config.declared:
            logger.debug("No '%s' layout; documents without a layout are written bare", name)
            return None
        try:
            self.chain(name)
        except DocumentError as exc:
            raise UnresolvableConfigurationError(
                f"Default layout '{name}' cannot be resolved: {exc.message}",
                config.source_path,
            ) from exc
        return name


def resolve_layout_name(metadata: Mapping[str, Any], default: str | None) -> str | None:
    """Layout a document should use.

    An explicit ``layout`` key wins, including ``layout: none`` for "no
    layout"; without one the site default applies.
    """
    if "layout" in metadata:
        return layout_name_from(metadata["layout"])
    return default


class LayoutComposer:
    """Wraps rendered bodies in their layout chain.

    Attributes:
        registry: Layouts available to this build.
        engine: Template engine that renders each layout.
    """

    def __init__(self, registry: LayoutRegistry, engine: TemplateEngine):
        self.registry = registry
        self.engine = engine

    def compose(
        self,
        body: str,
        layout_name: str | None,
        context: dict[str, Any],
        source_path: Path | None = None,
    ) -> str:
        """Substitute ``body`` into its layout, then into each parent in turn.

        Args:
            body: Rendered HTML of the document.
            layout_name: Innermost layout, or None to return the body as is.
            context: Template variables (``page``, ``paginator``, ...).
            source_path: Document path used in error messages.

        Returns:
            The fully wrapped HTML.

        Raises:
            UnknownLayoutError: A layout in the chain is not registered.
            LayoutCycleError: The chain loops back on itself.
            TemplateRenderError: A layout template fails to render.
        """
        if layout_name is None:
            return body
        current = body
        for layout in self.registry.chain(layout_name, source_path):
            current = self.engine.render_layout(layout, current, context, source_path)
        return current
