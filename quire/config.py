"""Site configuration for Quire.

The site-wide configuration lives in ``quire.yaml`` at the project root and is
read exactly once per build. Values are merged over DEFAULT_CONFIG, validated,
and handed to every component as a SiteConfig instance.

Key functions:
- load_config: Load and validate quire.yaml.
- load_data: Load YAML files from the data directory (exposed as site.data).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import UnresolvableConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quire.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Quire",
    "description": "",
    "url": "",
    "baseurl": "",
    "default_layout": "default",
    "output_dir": "output",
    "permalink": "/:year/:month/:day/:title/",
    "paginate": 5,
    "paginate_path": "page/:num/",
    "feed_limit": 20,
    "defaults": [],
    "exclude": [],
    "workers": 1,
    "port": 4000,
    "ws_port": 4001,
}

_POSITIVE_INTS = ("paginate", "feed_limit", "workers", "port", "ws_port")
_STRINGS = (
    "title",
    "description",
    "url",
    "baseurl",
    "default_layout",
    "output_dir",
    "permalink",
    "paginate_path",
)


@dataclass
class SiteConfig:
    """Validated site-wide configuration.

    Attributes:
        title: Site title.
        description: Short site description used by feeds.
        url: Absolute base URL (scheme and host), used for feeds and sitemaps.
        baseurl: Path prefix the site is served under.
        default_layout: Layout for documents that name none.
        output_dir: Output directory, relative to the project root.
        permalink: Permalink pattern or style name for posts.
        paginate: Posts per blog index page.
        paginate_path: Relative path of index pages 2..n (``:num`` placeholder).
        feed_limit: Number of posts in the RSS feed.
        defaults: Scoped front matter defaults.
        exclude: Glob patterns excluded from the site directory.
        workers: Threads used to parse and render documents.
        port: Dev server HTTP port.
        ws_port: Dev server live-reload websocket port.
        declared: Keys set explicitly in quire.yaml.
        raw: Merged configuration mapping, including unknown keys.
        source_path: Path of the loaded file, if any.
    """

    title: str = DEFAULT_CONFIG["title"]
    description: str = DEFAULT_CONFIG["description"]
    url: str = DEFAULT_CONFIG["url"]
    baseurl: str = DEFAULT_CONFIG["baseurl"]
    default_layout: str = DEFAULT_CONFIG["default_layout"]
    output_dir: str = DEFAULT_CONFIG["output_dir"]
    permalink: str = DEFAULT_CONFIG["permalink"]
    paginate: int = DEFAULT_CONFIG["paginate"]
    paginate_path: str = DEFAULT_CONFIG["paginate_path"]
    feed_limit: int = DEFAULT_CONFIG["feed_limit"]
    defaults: list[dict[str, Any]] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    workers: int = DEFAULT_CONFIG["workers"]
    port: int = DEFAULT_CONFIG["port"]
    ws_port: int = DEFAULT_CONFIG["ws_port"]
    declared: frozenset[str] = frozenset()
    raw: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_CONFIG))
    source_path: Path | None = None

    @classmethod
    def from_mapping(
        cls, values: dict[str, Any], source_path: Path | None = None
    ) -> SiteConfig:
        """Build a config from a mapping, validating every known key.

        Raises:
            UnresolvableConfigurationError: A value has the wrong type.
        """
        merged = {**DEFAULT_CONFIG, **values}
        for key in _POSITIVE_INTS:
            value = merged[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise UnresolvableConfigurationError(
                    f"'{key}' must be a positive integer, got {value!r}", source_path
                )
        for key in _STRINGS:
            value = merged[key]
            if value is None:
                merged[key] = ""
            elif not isinstance(value, str):
                raise UnresolvableConfigurationError(
                    f"'{key}' must be a string, got {value!r}", source_path
                )
        if not merged["default_layout"]:
            raise UnresolvableConfigurationError(
                "'default_layout' must not be empty", source_path
            )
        defaults = merged["defaults"] or []
        if not isinstance(defaults, list) or not all(
            isinstance(entry, dict) and isinstance(entry.get("values", {}), dict)
            for entry in defaults
        ):
            raise UnresolvableConfigurationError(
                "'defaults' must be a list of {scope, values} mappings", source_path
            )
        exclude = merged["exclude"] or []
        if not isinstance(exclude, list) or not all(isinstance(p, str) for p in exclude):
            raise UnresolvableConfigurationError(
                "'exclude' must be a list of glob patterns", source_path
            )
        return cls(
            title=merged["title"],
            description=merged["description"],
            url=merged["url"].rstrip("/"),
            baseurl=merged["baseurl"].rstrip("/"),
            default_layout=merged["default_layout"],
            output_dir=merged["output_dir"] or "output",
            permalink=merged["permalink"],
            paginate=merged["paginate"],
            paginate_path=merged["paginate_path"] or "page/:num/",
            feed_limit=merged["feed_limit"],
            defaults=list(defaults),
            exclude=list(exclude),
            workers=merged["workers"],
            port=merged["port"],
            ws_port=merged["ws_port"],
            declared=frozenset(values),
            raw=merged,
            source_path=source_path,
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Return any configuration value, including keys Quire does not use."""
        return self.raw.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.raw[key]


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from quire.yaml.

    A missing file is not an error: every key has a default.

    Args:
        project_root: Root directory of the project.

    Returns:
        Validated SiteConfig.

    Raises:
        UnresolvableConfigurationError: The file is not valid YAML, is not a
            mapping, or holds invalid values.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        logger.debug("No %s found; using defaults", CONFIG_FILENAME)
        return SiteConfig.from_mapping({})
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        raise UnresolvableConfigurationError(
            f"Invalid YAML: {exc}", config_path
        ) from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise UnresolvableConfigurationError(
            "Configuration must be a mapping", config_path
        )
    return SiteConfig.from_mapping(
        {str(k): v for k, v in loaded.items()}, source_path=config_path
    )


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    Each ``data/<name>.yaml`` file becomes ``site.data.<name>``.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary keyed by file stem.

    Raises:
        UnresolvableConfigurationError: A data file is not valid YAML.
    """
    data_dir = project_root / "data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted([*data_dir.glob("*.yaml"), *data_dir.glob("*.yml")]):
        try:
            with open(path, encoding="utf-8") as f:
                payload = yaml.safe_load(f)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            raise UnresolvableConfigurationError(f"Invalid YAML: {exc}", path) from exc
        data[path.stem] = payload
    return data
