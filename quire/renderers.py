"""Body renderers for Quire.

A renderer turns one kind of document body into an HTML fragment plus the
headings it found.

Key classes:
- MarkdownRenderer: mistune with heading anchors and Pygments code blocks.
- HTMLRenderer: Passthrough; HTML bodies are evaluated as Jinja later.
- RendererRegistry: Picks a renderer for a source path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html
from .utils import is_html, is_markdown


@dataclass
class Heading:
    """One rendered heading; ``id`` is the anchor written into the HTML."""

    id: str
    text: str
    level: int


def _anchor_for(text: str) -> str:
    plain = re.sub(r"<[^>]+>", "", text).lower()
    words = re.sub(r"[^\w\s-]", "", plain).strip()
    return re.sub(r"[-\s]+", "-", words).strip("-")


def _lexer_for(language: str):
    if not language:
        return None
    try:
        return get_lexer_by_name(language, stripall=True)
    except ClassNotFound:
        return None


class _QuireHTMLRenderer(mistune.HTMLRenderer):
    """mistune renderer that anchors headings and highlights fenced code.

    A new instance is used per document; ``toc`` collects the headings.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.toc: list[Heading] = []
        self._anchors: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        anchor = _anchor_for(text) or "section"
        repeats = self._anchors.get(anchor, 0)
        self._anchors[anchor] = repeats + 1
        if repeats:
            anchor = f"{anchor}-{repeats}"
        self.toc.append(Heading(anchor, text, level))
        return f'<h{level} id="{anchor}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        language = info.split(None, 1)[0] if info and info.strip() else ""
        lexer = _lexer_for(language)
        if lexer is not None:
            return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        css = f' class="language-{escape_html(language)}"' if language else ""
        return f"<pre><code{css}>{escape_html(code)}</code></pre>\n"


class MarkdownRenderer:
    """Markdown bodies to HTML.

    The only module that talks to mistune. Literal ``{{ }}`` in Markdown
    stays literal; Markdown is never evaluated as a template.
    """

    source_type = "markdown"
    plugins = ("strikethrough", "footnotes", "table", "url")

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> tuple[str, list[Heading]]:
        renderer = _QuireHTMLRenderer()
        to_html = mistune.create_markdown(renderer=renderer, plugins=list(self.plugins))
        return to_html(content), renderer.toc


class HTMLRenderer:
    """Leaves HTML bodies alone until the template stage."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> tuple[str, list[Heading]]:
        return content, []


class RendererRegistry:
    """Ordered renderers; the first whose ``can_render`` accepts a path wins.

    Args:
        renderers: Renderers to consult, defaulting to Markdown then HTML.
    """

    def __init__(self, renderers=None):
        if renderers is None:
            renderers = [MarkdownRenderer(), HTMLRenderer()]
        self._renderers = list(renderers)

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        return next((r for r in self._renderers if r.can_render(path)), None)


default_renderer_registry = RendererRegistry()
