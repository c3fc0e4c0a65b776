"""Local preview for Quire.

``quire serve`` (and ``quire build --watch/--serve``) keeps a built copy of the
site up to date while sources change:

- Every build goes into ``<output>.staging`` and replaces the output directory
  only once it is complete, so the preview never serves a half-written tree.
- HTML responses get a small script that reconnects to a websocket and reloads
  the page when a rebuild finishes.
- A watchdog observer on ``site/``, ``assets/``, ``data/`` and ``quire.yaml``
  triggers rebuilds; bursts of events collapse into one build.

Key classes:
- DevServer: Builds, serves and watches one project.
- LiveReload: Websocket endpoint that tells browsers to reload.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import shutil
import threading
import time
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildResult, build_site
from .config import CONFIG_FILENAME, load_config
from .errors import UnresolvableConfigurationError

logger = logging.getLogger(__name__)

WATCHED_FOLDERS = ("site", "assets", "data")

RELOAD_SCRIPT = """
<script>
(function () {{
  var socket = new WebSocket("ws://" + window.location.hostname + ":{port}");
  socket.addEventListener("message", function (event) {{
    var message = JSON.parse(event.data || "{{}}");
    if (message.type === "reload") {{
      window.location.reload();
    }}
  }});
}})();
</script>
"""


def inject_reload_script(html: str, script: str) -> str:
    """Insert the reload script before ``</body>``, or append it."""
    if "</body>" in html:
        return html.replace("</body>", f"{script}</body>", 1)
    return html + script


def source_signature(project_root: Path) -> tuple | None:
    """Snapshot ``(path, mtime_ns, size)`` of every watched source file.

    Two equal signatures mean nothing worth rebuilding changed. Files that
    vanish while scanning (or dangling links) are skipped.

    Returns:
        The snapshot, or None when there are no sources at all.
    """
    files: list[Path] = []
    for folder in WATCHED_FOLDERS:
        root = project_root / folder
        if root.is_dir():
            files.extend(p for p in root.rglob("*") if not p.is_dir())
    config_file = project_root / CONFIG_FILENAME
    if config_file.exists():
        files.append(config_file)

    entries = []
    for path in sorted(files):
        try:
            stat = path.stat()
        except OSError:
            continue
        rel = path.relative_to(project_root).as_posix()
        entries.append((rel, stat.st_mtime_ns, stat.st_size))
    return tuple(entries) or None


class _PreviewHandler(SimpleHTTPRequestHandler):
    """Serves the output directory; HTML gets the reload script injected.

    Directory URLs serve their ``index.html``. Anything missing is answered
    with the site's own ``404.html`` when it has one.
    """

    reload_script = RELOAD_SCRIPT.format(port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - send_head never lists
        return self._not_found()

    def log_message(self, format, *args):  # noqa: A002 - base class signature
        logger.debug("%s %s", self.address_string(), format % args)

    def send_head(self):
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            return self._not_found()
        if target.suffix != ".html":
            return super().send_head()
        self._write_html(HTTPStatus.OK, target)
        return None

    def _not_found(self):
        page = Path(self.directory) / "404.html"
        if not page.is_file():
            self.send_error(HTTPStatus.NOT_FOUND, "Not found")
            return None
        self._write_html(HTTPStatus.NOT_FOUND, page)
        return None

    def _write_html(self, status: HTTPStatus, path: Path) -> None:
        html = inject_reload_script(path.read_text(encoding="utf-8"), self.reload_script)
        body = html.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class LiveReload:
    """Websocket endpoint that pushes ``{"type": "reload"}`` to browsers.

    The server runs its own event loop on a background thread; other threads
    call :meth:`notify`.

    Attributes:
        port: Websocket port.
        clients: Connected websockets.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:  # pragma: no cover - binds a real socket
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            logger.error("Live reload could not listen on port %d: %s", self.port, exc)

    async def _serve(self) -> None:  # pragma: no cover - binds a real socket
        async with websockets.serve(self.register, "0.0.0.0", self.port):
            await asyncio.Future()

    async def register(self, websocket) -> None:
        """Track one browser connection until it closes."""
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def notify(self) -> None:
        """Schedule a reload message on the websocket loop."""
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self.broadcast(message), self.loop)

    async def broadcast(self, message: str) -> None:
        closed = []
        for client in list(self.clients):
            try:
                await client.send(message)
            except websockets.ConnectionClosed:
                closed.append(client)
        self.clients.difference_update(closed)

    def close(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)


class DevServer:
    """Builds a project, then keeps the build fresh while sources change.

    Attributes:
        project_root: Root directory of the project.
        output_dir: Directory the site is built into and served from.
        staging_dir: Sibling directory each rebuild is written to first.
        retired_dir: Sibling the previous output is moved to during the swap.
        http_port: Port for the HTTP server.
        ws_port: Port for live-reload websocket connections.
        serve: Whether to run the HTTP and websocket servers at all; with
            False the server only rebuilds on change.
        live_reload: Websocket endpoint used to reload browsers.
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
        output_dir: Path | None = None,
        serve: bool = True,
    ):
        config = load_config(project_root)
        self.project_root = project_root
        self.output_dir = Path(output_dir or project_root / config.output_dir).resolve()
        self.staging_dir = self.output_dir.with_name(f"{self.output_dir.name}.staging")
        self.retired_dir = self.output_dir.with_name(f"{self.output_dir.name}.previous")
        self.http_port = http_port or config.port
        if ws_port is None:
            ws_port = self.http_port + 1 if http_port is not None else config.ws_port
        self.ws_port = ws_port
        self.serve = serve
        self.reload_script = RELOAD_SCRIPT.format(port=ws_port)
        self.root_url = f"http://localhost:{self.http_port}" if serve else None
        self.live_reload = LiveReload(ws_port)
        self.debounce = 0.05
        self.settle_delay = 0.05
        self._observer: Observer | None = None
        self._lock = threading.Lock()
        self._last_rebuild = float("-inf")
        self._signature: tuple | None = None

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - runs forever
        """Build once, then serve and watch until interrupted.

        Raises:
            UnresolvableConfigurationError: The first build cannot start.
        """
        self.build(include_drafts)
        self._signature = source_signature(self.project_root)
        if self.serve:
            threading.Thread(target=self._serve_http, daemon=True).start()
            threading.Thread(target=self.live_reload.run, daemon=True).start()
        self.watch(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.live_reload.close()

    def build(self, include_drafts: bool) -> BuildResult:
        """Build into the staging directory, then swap it into place.

        The previous output is renamed aside rather than deleted first, and
        staging is removed whatever happens.
        """
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        self.staging_dir.mkdir(parents=True)
        try:
            result = build_site(
                self.project_root,
                output_dir=self.staging_dir,
                include_drafts=include_drafts,
                root_url=self.root_url,
            )
            if self.retired_dir.exists():
                shutil.rmtree(self.retired_dir)
            if self.output_dir.exists():
                os.replace(self.output_dir, self.retired_dir)
            os.replace(self.staging_dir, self.output_dir)
        finally:
            if self.retired_dir.exists() and not self.output_dir.exists():
                os.replace(self.retired_dir, self.output_dir)
            for leftover in (self.staging_dir, self.retired_dir):
                if leftover.exists():
                    shutil.rmtree(leftover)
        if result.ok:
            logger.info("Built %d pages", len(result.pages))
        else:
            logger.warning(
                "Built %d pages; %d documents failed", len(result.pages), len(result.failures)
            )
        return result

    def watch(self, include_drafts: bool) -> None:
        """Start a watchdog observer that rebuilds on source changes."""
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        for folder in WATCHED_FOLDERS:
            path = self.project_root / folder
            if path.is_dir():
                observer.schedule(handler, str(path), recursive=True)
        # quire.yaml sits at the root; _ChangeHandler drops the other root files
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> None:
        """Rebuild after a change and reload browsers.

        Events within the debounce window, events that arrive while a build
        runs, and events that leave the sources unchanged are ignored. A
        configuration error is logged and the previous output stays in place.
        """
        if time.monotonic() - self._last_rebuild < self.debounce:
            return
        if not self._lock.acquire(blocking=False):
            return
        try:
            signature = source_signature(self.project_root)
            if signature is not None and signature == self._signature:
                return
            logger.info("Change detected; rebuilding")
            try:
                self.build(include_drafts)
            except UnresolvableConfigurationError as exc:
                logger.error("Rebuild failed: %s", exc)
                return
            self._signature = signature
            if self.serve:
                time.sleep(self.settle_delay)
                self.live_reload.notify()
        finally:
            self._last_rebuild = time.monotonic()
            self._lock.release()

    def _serve_http(self) -> None:  # pragma: no cover - binds a real socket
        handler_cls = type(
            "_ProjectPreviewHandler", (_PreviewHandler,), {"reload_script": self.reload_script}
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.info("Serving %s at http://localhost:%d", self.output_dir, self.http_port)
        httpd.serve_forever()


class _ChangeHandler(FileSystemEventHandler):
    """Forwards source file events to :meth:`DevServer.rebuild`."""

    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory or not self._is_source(Path(event.src_path)):
            return
        self.server.rebuild(self.include_drafts)

    def _is_source(self, path: Path) -> bool:
        server = self.server
        for generated in (server.output_dir, server.staging_dir, server.retired_dir):
            if path == generated or generated in path.parents:
                return False
        if path.parent == server.project_root:
            return path.name == CONFIG_FILENAME
        return True
