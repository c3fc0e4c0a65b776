"""Site building for Quire.

This module drives one build: it reads every source document, renders it,
indexes the posts, wraps each page in its layouts and writes the output tree
together with static assets and feeds.

A build is a single synchronous pass. Parsing and Markdown rendering may run
on a thread pool because documents do not depend on each other at that stage;
indexing waits for all of them, and every file write happens on the calling
thread.

Errors tied to one document are recorded in ``BuildResult.failures`` and the
document is left out of the output. Configuration errors raise
UnresolvableConfigurationError and stop the build.

Key pieces:
- build_site: Main function to build the entire site.
- SiteBuilder: The build driver.
- Site: Aggregate exposed to templates as ``site``.
- BuildResult: What a build produced.
"""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Template

from .assets import AssetPipeline, find_missing_assets
from .collections import (
    POSTS,
    DocumentCollection,
    Pager,
    TagCollection,
    build_index,
    paginate,
    partition,
)
from .config import SiteConfig, load_config, load_data
from .content import Document, DocumentReader, SourceLoader
from .errors import (
    DocumentError,
    MissingAssetError,
    PermalinkCollisionError,
    UnresolvableConfigurationError,
)
from .feeds import create_default_feed_registry
from .layouts import LayoutComposer, LayoutRegistry, resolve_layout_name
from .permalinks import output_path_for, permalink_for
from .renderers import RendererRegistry
from .templates import TemplateEngine
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)


@dataclass
class DocumentFailure:
    """A document left out of the build, with the reason.

    Attributes:
        path: Source path of the document.
        error: The per-document error that excluded it.
    """

    path: Path
    error: DocumentError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class RenderedPage:
    """One output page: a document, or one page of a paginated document.

    Attributes:
        document: Source document.
        url: URL the page is published at.
        html: Final HTML, layouts included.
        pager: Pagination state for listing pages, otherwise None.
    """

    document: Document
    url: str
    html: str
    pager: Pager | None = None

    @property
    def output_path(self) -> Path:
        return output_path_for(self.url)


@dataclass
class Site:
    """Everything one build knows about the site; exposed to templates as ``site``.

    Attributes:
        config: Site configuration.
        layouts: Layouts registered for this build.
        documents: Every document being built, in source path order.
        collections: Documents grouped by collection name.
        tags: Posts by tag.
        categories: Posts by category.
        data: Contents of the data directory.
        time: Build start time.
    """

    config: SiteConfig
    layouts: LayoutRegistry
    documents: list[Document]
    collections: dict[str, DocumentCollection]
    tags: TagCollection
    categories: TagCollection
    data: dict[str, Any] = field(default_factory=dict)
    time: datetime = field(default_factory=datetime.now)

    @property
    def posts(self) -> DocumentCollection:
        return self.collections.get(POSTS, DocumentCollection())

    @property
    def pages(self) -> DocumentCollection:
        return DocumentCollection(d for d in self.documents if d.collection != POSTS)

    @property
    def title(self) -> str:
        return self.config.title

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def baseurl(self) -> str:
        return self.config.baseurl


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        site: The indexed site.
        pages: Pages written, in write order.
        output_dir: Directory where the site was built.
        failures: Documents excluded because of per-document errors.
        missing_assets: Static file references that did not resolve.
        static_files: Static files copied into the output.
        feeds: Feed filenames written.
    """

    site: Site
    pages: list[RenderedPage]
    output_dir: Path
    failures: list[DocumentFailure] = field(default_factory=list)
    missing_assets: list[MissingAssetError] = field(default_factory=list)
    static_files: list[Path] = field(default_factory=list)
    feeds: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no document failed."""
        return not self.failures

    @property
    def documents(self) -> list[Document]:
        """Documents that made it into the output, in write order."""
        seen: list[Document] = []
        for page in self.pages:
            if not seen or seen[-1] is not page.document:
                seen.append(page.document)
        return seen


class SiteBuilder:
    """Drives a build: read, check, index, compose, write.

    Everything global (configuration, data files, layouts and the default
    layout) is loaded in the constructor, so configuration errors surface
    before the output directory is touched.

    Attributes:
        project_root: Root directory of the project.
        site_dir: Directory containing site content.
        config: Site configuration.
        include_drafts: Whether drafts and unpublished documents are built.
        workers: Threads used for reading and rendering documents.
    """

    def __init__(
        self,
        project_root: Path,
        config: SiteConfig,
        include_drafts: bool = False,
        workers: int | None = None,
        renderer_registry: RendererRegistry | None = None,
    ):
        self.project_root = project_root
        self.site_dir = project_root / "site"
        if not self.site_dir.is_dir():
            raise UnresolvableConfigurationError(
                f"Expected site directory at {self.site_dir}"
            )
        self.config = config
        self.include_drafts = include_drafts
        self.workers = workers or config.workers
        self.data = load_data(project_root)
        self.layouts = LayoutRegistry.load(self.site_dir / "_layouts")
        self.default_layout = self.layouts.resolve_default(config)
        self.engine = TemplateEngine(self.site_dir, config)
        self.composer = LayoutComposer(self.layouts, self.engine)
        self.reader = DocumentReader(self.site_dir, config, renderer_registry)
        self.loader = SourceLoader(self.site_dir, config.exclude)

    def build(self, output_dir: Path, clean_output: bool = True) -> BuildResult:
        """Run the whole pipeline and write the site to ``output_dir``.

        Args:
            output_dir: Destination directory.
            clean_output: Whether to wipe the output directory first.

        Raises:
            UnresolvableConfigurationError: ``output_dir`` would overwrite sources.
        """
        self._check_output_dir(output_dir)
        failures: list[DocumentFailure] = []

        sources, static_files = self.loader.scan(self.include_drafts)
        documents = self.read_documents(sources, failures)
        documents = self.prepare(documents, failures)
        site, pages = self.compose_site(documents, failures)

        if clean_output:
            ensure_clean_dir(output_dir)
        else:
            output_dir.mkdir(parents=True, exist_ok=True)
        for page in pages:
            _write_page(output_dir, page)
        copied = AssetPipeline(self.project_root, self.site_dir, output_dir).run(
            static_files
        )
        feeds = create_default_feed_registry().generate_all(output_dir, pages, self.config)
        missing = find_missing_assets(
            output_dir, [(p.document.path, p.html) for p in pages], self.config.baseurl
        )

        failures.sort(key=lambda f: f.path.as_posix())
        logger.info(
            "Wrote %d pages and %d static files to %s", len(pages), len(copied), output_dir
        )
        return BuildResult(
            site=site,
            pages=pages,
            output_dir=output_dir,
            failures=failures,
            missing_assets=missing,
            static_files=copied,
            feeds=feeds,
        )

    def read_documents(
        self, paths: list[Path], failures: list[DocumentFailure]
    ) -> list[Document]:
        """Parse and render every source file, isolating per-document errors."""
        if self.workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                outcomes = list(pool.map(self._read_one, paths))
        else:
            outcomes = [self._read_one(path) for path in paths]

        documents: list[Document] = []
        for outcome in outcomes:
            if isinstance(outcome, DocumentFailure):
                self._fail(outcome, failures)
            else:
                documents.append(outcome)
        return documents

    def _read_one(self, path: Path) -> Document | DocumentFailure:
        try:
            document = self.reader.read(path)
            document.rendered  # noqa: B018 - render once, off the main thread
        except DocumentError as exc:
            return DocumentFailure(path, exc)
        return document

    def prepare(
        self, documents: list[Document], failures: list[DocumentFailure]
    ) -> list[Document]:
        """Assign permalinks and check layouts and page sizes.

        Runs before indexing, so a document failing here never shows up in
        ``site.posts`` or a tag listing. Documents are visited in source
        path order; on a permalink collision the later one fails.
        """
        visible = sorted(
            (d for d in documents if self.include_drafts or not d.draft),
            key=lambda d: d.path.as_posix(),
        )
        ready: list[Document] = []
        claimed: dict[Path, Document] = {}
        for document in visible:
            try:
                document.url = permalink_for(document, self.config)
                layout_name = resolve_layout_name(document.metadata, self.default_layout)
                self.layouts.chain(layout_name, document.path)
                if document.metadata.get("paginate"):
                    self._per_page(document)
                target = output_path_for(document.url)
                _check_unclaimed(claimed, target, document)
                claimed[target] = document
            except DocumentError as exc:
                self._fail(DocumentFailure(document.path, exc), failures)
                continue
            ready.append(document)
        return ready

    def compose_site(
        self, documents: list[Document], failures: list[DocumentFailure]
    ) -> tuple[Site, list[RenderedPage]]:
        """Index the documents and compose every page.

        Any page may list other documents, so when one fails to compose it is
        dropped from the index and the rest are composed again. Each round
        removes at least one document, so this ends.
        """
        while True:
            site = self.index(documents)
            pages, failed = self.render_pages(site)
            if not failed:
                return site, pages
            for failure in failed:
                self._fail(failure, failures)
            dropped = {failure.path for failure in failed}
            documents = [d for d in documents if d.path not in dropped]
            logger.debug("Composing again without %d failed documents", len(dropped))

    def index(self, documents: list[Document]) -> Site:
        """Build collections once every document has a permalink."""
        collections = partition(documents)
        posts = collections[POSTS]
        site = Site(
            config=self.config,
            layouts=self.layouts,
            documents=documents,
            collections=collections,
            tags=build_index(posts, "tags"),
            categories=build_index(posts, "categories"),
            data=self.data,
        )
        self.engine.install_site(site)
        return site

    def render_pages(
        self, site: Site
    ) -> tuple[list[RenderedPage], list[DocumentFailure]]:
        """Compose every indexed document.

        Returns:
            Tuple of (pages, documents that failed to compose).
        """
        pages: list[RenderedPage] = []
        failed: list[DocumentFailure] = []
        claimed: dict[Path, Document] = {}
        for document in site.documents:
            try:
                rendered = self.render_document(site, document)
                for page in rendered:
                    _check_unclaimed(claimed, page.output_path, document)
            except DocumentError as exc:
                failed.append(DocumentFailure(document.path, exc))
                continue
            for page in rendered:
                claimed[page.output_path] = document
            pages.extend(rendered)
        return pages, failed

    def render_document(self, site: Site, document: Document) -> list[RenderedPage]:
        """Render one document; paginated listings give one page per pager.

        Raises:
            DocumentError: Any per-document failure.
        """
        layout_name = resolve_layout_name(document.metadata, self.default_layout)
        if not document.metadata.get("paginate"):
            return [self._render_one(site, document, layout_name)]

        per_page = self._per_page(document)
        template = (
            self.engine.compile_body(document) if document.source_type == "html" else None
        )
        pagers = paginate(site.posts, per_page, document.url, self.config.paginate_path)
        return [
            self._render_one(site, document, layout_name, pager, template)
            for pager in pagers
        ]

    def _render_one(
        self,
        site: Site,
        document: Document,
        layout_name: str | None,
        pager: Pager | None = None,
        template: Template | None = None,
    ) -> RenderedPage:
        context = {"site": site, "page": document, "paginator": pager}
        body = self.engine.render_body(document, context, template)
        html = self.composer.compose(body, layout_name, context, document.path)
        url = pager.url if pager is not None else document.url
        return RenderedPage(document=document, url=url, html=html, pager=pager)

    def _per_page(self, document: Document) -> int:
        value = document.metadata.get("paginate")
        if isinstance(value, bool):
            value = document.metadata.get("per_page", self.config.paginate)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise DocumentError(
                document.path, f"Page size must be a positive integer, got {value!r}"
            )
        return value

    def _check_output_dir(self, output_dir: Path) -> None:
        target = output_dir.resolve()
        for protected in (self.project_root.resolve(), self.site_dir.resolve()):
            if target == protected or target in protected.parents:
                raise UnresolvableConfigurationError(
                    f"Output directory {output_dir} would overwrite {protected}"
                )
        if self.site_dir.resolve() in target.parents:
            raise UnresolvableConfigurationError(
                f"Output directory {output_dir} is inside the site directory"
            )

    def _fail(self, failure: DocumentFailure, failures: list[DocumentFailure]) -> None:
        try:
            shown = failure.path.relative_to(self.project_root)
        except ValueError:
            shown = failure.path
        logger.error("%s: %s", shown.as_posix(), failure.message)
        failures.append(failure)


def build_site(
    project_root: Path,
    output_dir: Path | None = None,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    workers: int | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        output_dir: Where to write the site; defaults to config ``output_dir``.
        include_drafts: Whether to include drafts and unpublished documents.
        root_url: Optional override for the absolute site ``url``.
        clean_output: Whether to wipe the output directory before writing.
        workers: Optional override for the number of reader threads.

    Returns:
        BuildResult; check ``ok`` for per-document failures.

    Raises:
        UnresolvableConfigurationError: Site-wide configuration is unusable.
    """
    config = load_config(project_root)
    if root_url is not None:
        config = dataclasses.replace(config, url=root_url.rstrip("/"))
    target = output_dir or (project_root / config.output_dir)
    builder = SiteBuilder(
        project_root, config, include_drafts=include_drafts, workers=workers
    )
    return builder.build(target, clean_output=clean_output)


def _check_unclaimed(
    claimed: dict[Path, Document], output_path: Path, document: Document
) -> None:
    owner = claimed.get(output_path)
    if owner is not None and owner is not document:
        raise PermalinkCollisionError(
            document.path,
            f"Output path {output_path.as_posix()} is already "
            f"used by {owner.relative_path.as_posix()}",
        )


def _write_page(output_dir: Path, page: RenderedPage) -> None:
    """Write a rendered page to its path under the output directory."""
    html_path = output_dir / page.output_path
    html_path.parent.mkdir(parents=True, exist_ok=True)
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(page.html)
