"""Quire static blog generator.

Quire turns a directory of Markdown and HTML documents with YAML front matter
into a static site: posts are ordered newest first and paginated, pages are
wrapped in nested Jinja layouts, and static assets are copied through.

The main entry point is the CLI module, which provides commands for building
the site, previewing it with live reload, and creating new posts.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
