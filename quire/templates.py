"""Template rendering engine for Quire.

This module wraps a Jinja2 environment shared by every layout and HTML
document in a build. Includes are loaded from ``site/_includes``.

Key class:
- TemplateEngine: Renders HTML document bodies and layouts with site context.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from .config import SiteConfig
from .errors import TemplateRenderError
from .html_utils import escape_html, join_root_url
from .utils import slugify

if TYPE_CHECKING:
    from .content import Document
    from .layouts import Layout


def format_date(value: datetime | None, format_str: str = "%Y-%m-%d") -> str:
    """Format a datetime for templates; missing dates render as ''.

    Args:
        value: Datetime to format.
        format_str: strftime format string.
    """
    if not isinstance(value, datetime):
        return "" if value is None else str(value)
    return value.strftime(format_str)


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly error message."""
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"

    error_type = type(exc).__name__
    error_msg = str(exc)
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Include not found: {error_msg}"
    return f"{error_type}: {error_msg}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        site_dir: Directory containing ``_includes`` and ``_layouts``.
        config: Site configuration.
        env: Jinja2 environment.
    """

    def __init__(self, site_dir: Path, config: SiteConfig):
        self.site_dir = site_dir
        self.config = config
        self.env = Environment(
            loader=FileSystemLoader([site_dir / "_includes", site_dir / "_layouts"]),
            autoescape=select_autoescape(["html", "xml"], default_for_string=True),
            enable_async=False,
        )
        self._layout_templates: dict[str, Template] = {}
        self._install_globals()

    def _install_globals(self) -> None:
        """Install global variables, functions and filters."""
        self.env.globals["url_for"] = self.url_for
        self.env.globals["absolute_url"] = self.absolute_url
        self.env.filters["date"] = format_date
        self.env.filters["slugify"] = slugify
        self.env.filters["xml_escape"] = escape_html
        self.env.filters["relative_url"] = self.url_for
        self.env.filters["absolute_url"] = self.absolute_url

    def install_site(self, site: Any) -> None:
        """Expose the site aggregate to every template as ``site``."""
        self.env.globals["site"] = site

    def url_for(self, path: str) -> str:
        """Prefix a root-relative path with the configured ``baseurl``."""
        if path.startswith(("http://", "https://", "//")):
            return path
        return join_root_url(self.config.baseurl, path)

    def absolute_url(self, path: str) -> str:
        """Full URL for a path, using ``url`` and ``baseurl``."""
        if path.startswith(("http://", "https://", "//")):
            return path
        return join_root_url(self.config.url, self.url_for(path))

    def compile_body(self, document: Document) -> Template:
        """Compile an HTML document's rendered body as a template.

        Raises:
            TemplateRenderError: The body is not a valid template.
        """
        try:
            return self.env.from_string(document.rendered)
        except TemplateSyntaxError as exc:
            raise TemplateRenderError(
                document.path, _format_error_message(exc), exc
            ) from exc

    def render_body(
        self, document: Document, context: dict[str, Any], template: Template | None = None
    ) -> str:
        """Render a document body with site context.

        Markdown bodies are already HTML and are returned untouched; HTML
        bodies are evaluated as Jinja templates.

        Raises:
            TemplateRenderError: Rendering the template failed.
        """
        if document.source_type != "html":
            return document.rendered
        template = template or self.compile_body(document)
        return self._render(template, context, document.path)

    def render_layout(
        self,
        layout: Layout,
        content: str,
        context: dict[str, Any],
        source_path: Path | None = None,
    ) -> str:
        """Render one layout around already-rendered content.

        Raises:
            TemplateRenderError: The layout fails to compile or render; the
                message names the layout.
        """
        template = self._layout_templates.get(layout.name)
        if template is None:
            try:
                template = self.env.from_string(layout.template)
            except TemplateSyntaxError as exc:
                raise TemplateRenderError(
                    source_path,
                    f"Layout '{layout.name}': {_format_error_message(exc)}",
                    exc,
                ) from exc
            self._layout_templates[layout.name] = template
        layout_context = {**context, "layout": layout.metadata, "content": Markup(content)}
        try:
            return template.render(**layout_context)
        except Exception as exc:
            raise TemplateRenderError(
                source_path,
                f"Layout '{layout.name}': {_format_error_message(exc)}",
                exc,
            ) from exc

    def _render(self, template: Template, context: dict[str, Any], source_path: Path) -> str:
        try:
            return template.render(**context)
        except Exception as exc:
            raise TemplateRenderError(
                source_path, _format_error_message(exc), exc
            ) from exc
