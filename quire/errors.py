"""Error types raised while building a Quire site.

Errors fall into two families:

- DocumentError subclasses are fatal for a single document only. The site
  builder catches them, reports the offending path and keeps going.
- UnresolvableConfigurationError aborts the whole build.

MissingAssetError is never raised by the builder; it is collected and
reported as a warning.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base class for all Quire errors."""


class DocumentError(QuireError):
    """Error tied to one source document.

    Attributes:
        source_path: Path to the document (or layout) that caused the error.
        message: Human-readable error message.
    """

    def __init__(self, source_path: Path | None, message: str):
        self.source_path = source_path
        self.message = message
        if source_path is None:
            super().__init__(message)
        else:
            super().__init__(f"{source_path}: {message}")


class MalformedFrontMatterError(DocumentError):
    """Front matter opened with ``---`` but could not be read."""


class UnknownLayoutError(DocumentError):
    """A document or layout named a layout that is not registered."""

    def __init__(self, source_path: Path | None, layout_name: str):
        self.layout_name = layout_name
        super().__init__(source_path, f"Unknown layout '{layout_name}'")


class LayoutCycleError(DocumentError):
    """A layout chain refers back to a layout already in the chain."""

    def __init__(self, source_path: Path | None, chain: list[str]):
        self.chain = list(chain)
        super().__init__(source_path, f"Layout cycle: {' -> '.join(self.chain)}")


class TemplateRenderError(DocumentError):
    """Jinja failed while rendering a document body or one of its layouts."""

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.original_error = original_error
        super().__init__(source_path, message)


class PermalinkCollisionError(DocumentError):
    """Two documents resolved to the same output path."""


class UnresolvableConfigurationError(QuireError):
    """Site-wide configuration is unusable; the build cannot proceed."""

    def __init__(self, message: str, source_path: Path | None = None):
        self.message = message
        self.source_path = source_path
        if source_path is None:
            super().__init__(message)
        else:
            super().__init__(f"{source_path}: {message}")


class MissingAssetError(QuireError):
    """A page references a static file that is not in the output tree.

    Attributes:
        asset: The referenced URL path.
        referenced_by: Source document that holds the reference.
    """

    def __init__(self, asset: str, referenced_by: Path):
        self.asset = asset
        self.referenced_by = referenced_by
        super().__init__(f"{referenced_by}: missing asset '{asset}'")
