"""The ``quire`` command.

Commands:
- build: Write the site once, or keep rebuilding with --watch/--serve.
- serve: Preview with live reload.
- post: Start a new dated post in site/posts/.

Exit status is 1 when a document fails or the configuration is unusable.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .errors import UnresolvableConfigurationError
from .utils import slugify

logger = logging.getLogger("quire")


class _ClickHandler(logging.Handler):
    """Routes log records through click so they respect CliRunner and colors."""

    _COLORS = {logging.WARNING: "yellow", logging.ERROR: "red", logging.CRITICAL: "red"}

    def emit(self, record: logging.LogRecord) -> None:
        message = self.format(record)
        color = self._COLORS.get(record.levelno)
        click.echo(
            click.style(message, fg=color) if color else message,
            err=record.levelno >= logging.WARNING,
        )


def _configure_logging(verbose: bool) -> None:
    handler = _ClickHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


@click.group()
@click.version_option(version=__version__, prog_name="quire")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """Quire static blog generator."""
    _configure_logging(verbose)


@cli.command()
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Write the site here instead of the configured output_dir",
)
@click.option("--drafts", is_flag=True, help="Also build drafts")
@click.option("--watch", is_flag=True, help="Rebuild when sources change")
@click.option("--serve", is_flag=True, help="Serve the site with live reload")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Reader threads")
def build(
    output_dir: Path | None,
    drafts: bool,
    watch: bool,
    serve: bool,
    workers: int | None,
):
    """Build the site once (or keep rebuilding with --watch/--serve)."""
    project_root = Path.cwd()
    if watch or serve:
        _run_dev_server(project_root, output_dir, drafts, serve=serve)
        return

    from .build import build_site

    try:
        result = build_site(
            project_root, output_dir=output_dir, include_drafts=drafts, workers=workers
        )
    except UnresolvableConfigurationError as exc:
        _error("Build failed:", [(f"  Error: {exc}", "white")])
        raise SystemExit(1) from None

    summary = f"Built {len(result.pages)} pages into {result.output_dir}"
    if result.ok:
        click.echo(summary)
        return
    details = []
    for failure in result.failures:
        details.append((f"  File: {_display(failure.path, project_root)}", "yellow"))
        details.append((f"  Error: {failure.message}", "white"))
    _error(f"{summary}; {len(result.failures)} documents failed:", details)
    raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Also build drafts")
@click.option("--port", type=int, default=None, help="HTTP port (default: quire.yaml port)")
@click.option(
    "--ws-port",
    type=int,
    default=None,
    help="Live reload websocket port (default: --port + 1, or quire.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Preview the site locally with live reload."""
    _run_dev_server(Path.cwd(), None, drafts, serve=True, port=port, ws_port=ws_port)


def _run_dev_server(
    project_root: Path,
    output_dir: Path | None,
    drafts: bool,
    serve: bool,
    port: int | None = None,
    ws_port: int | None = None,
) -> None:
    from .server import DevServer

    try:
        dev = DevServer(
            project_root, http_port=port, ws_port=ws_port, output_dir=output_dir, serve=serve
        )
        dev.start(include_drafts=drafts)
    except UnresolvableConfigurationError as exc:
        raise click.ClickException(str(exc)) from None


@cli.command()
def post():
    """Ask for a title and tags, then write site/posts/<date>-<slug>.md."""
    project_root = Path.cwd()
    posts_dir = project_root / "site" / "posts"
    if not posts_dir.parent.is_dir():
        raise click.ClickException(
            "No site/ directory found. Run this command from a Quire project root."
        )

    title = _ask("Title:", validate=lambda text: bool(text.strip()) or "A title is required")
    tags = _ask("Tags (comma separated, optional):")

    slug = slugify(title)
    taken = sorted(p.name for p in posts_dir.glob("*.md") if slugify(p.stem) == slug)
    if taken:
        raise click.ClickException(f"A post with slug '{slug}' already exists: {taken[0]}")

    now = datetime.now()
    header = yaml.safe_dump(
        {
            "title": title.strip(),
            "date": f"{now:%Y-%m-%d %H:%M:%S}",
            "tags": [tag.strip() for tag in tags.split(",") if tag.strip()],
        },
        sort_keys=False,
        allow_unicode=True,
    )
    target = posts_dir / f"{now:%Y-%m-%d}-{slug}.md"
    posts_dir.mkdir(exist_ok=True)
    target.write_text(f"---\n{header}---\n\n", encoding="utf-8")
    click.echo(f"Created {_display(target, project_root)}")


PROMPT_STYLE = questionary.Style(
    [
        ("qmark", "fg:green bold"),
        ("question", "bold"),
        ("answer", "fg:green"),
        ("instruction", "fg:grey italic"),
    ]
)


def _ask(question: str, **kwargs) -> str:
    answer = questionary.text(question, style=PROMPT_STYLE, **kwargs).ask()
    if answer is None:
        raise click.Abort()
    return answer


def _error(headline: str, details: list[tuple[str, str]]) -> None:
    click.echo(click.style(headline, fg="red", bold=True), err=True)
    for line, colour in details:
        click.echo(click.style(line, fg=colour), err=True)


def _display(path: Path, project_root: Path) -> str:
    try:
        return path.relative_to(project_root).as_posix()
    except ValueError:
        return str(path)


def main():
    cli()
