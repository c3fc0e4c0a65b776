"""Static asset handling for Quire.

Static files are copied through unchanged: everything under ``assets/`` goes
to ``<output>/assets/``, and non-document files inside ``site/`` (images next
to a post, ``favicon.ico``, ``CNAME``) keep their relative location.

After pages are written, rendered HTML is scanned for root-relative
references to files that never made it into the output tree.

Key components:
- AssetPipeline: Copies static files into the output directory.
- find_missing_assets: Reports references to absent static files.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from .errors import MissingAssetError
from .html_utils import local_file_references

logger = logging.getLogger(__name__)


class AssetPipeline:
    """Copies static assets into the output directory.

    Attributes:
        project_root: Root directory of the project.
        site_dir: Directory containing site content.
        assets_dir: Directory containing passthrough assets.
        output_dir: Directory where assets are written.
    """

    def __init__(self, project_root: Path, site_dir: Path, output_dir: Path):
        self.project_root = project_root
        self.site_dir = site_dir
        self.assets_dir = project_root / "assets"
        self.output_dir = output_dir

    def run(self, static_files: Iterable[Path] = ()) -> list[Path]:
        """Copy ``assets/`` and the given site static files.

        Args:
            static_files: Non-document files found under the site directory.

        Returns:
            Output paths written, in copy order.
        """
        written: list[Path] = []
        if self.assets_dir.exists():
            target = self.output_dir / "assets"
            for item in sorted(self.assets_dir.rglob("*")):
                if item.is_dir() or item.name.startswith("."):
                    continue
                written.append(self._copy(item, target / item.relative_to(self.assets_dir)))
        for item in static_files:
            written.append(self._copy(item, self.output_dir / item.relative_to(self.site_dir)))
        logger.debug("Copied %d static files", len(written))
        return written

    def _copy(self, source: Path, dest: Path) -> Path:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        return dest


def find_missing_assets(
    output_dir: Path,
    pages: Iterable[tuple[Path, str]],
    baseurl: str = "",
) -> list[MissingAssetError]:
    """Find static file references that do not resolve in the output tree.

    Args:
        output_dir: Built site directory.
        pages: ``(source path, rendered html)`` pairs.
        baseurl: Site path prefix stripped before lookup.

    Returns:
        One MissingAssetError per (document, missing file) pair. Each is also
        logged as a warning; none of them stop the build.
    """
    missing: list[MissingAssetError] = []
    for source_path, html in pages:
        for reference in local_file_references(html, baseurl):
            if (output_dir / reference.lstrip("/")).is_file():
                continue
            error = MissingAssetError(reference, source_path)
            logger.warning("%s references missing asset %s", source_path, reference)
            missing.append(error)
    return missing
