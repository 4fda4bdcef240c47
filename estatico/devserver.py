"""Static file server with live-reload.

Two FastAPI apps run under uvicorn: one serves the build directory and injects
the live-reload client into HTML pages, the other holds the websocket clients
that get told to reload after a rebuild.
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import threading
from pathlib import Path
from typing import List, Set

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, HTMLResponse, Response

from . import metrics
from .config import ProjectConfig, ServerOptions
from .registry import TaskRegistry, TaskResult

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = {"command": "reload", "path": "/"}
HELLO_MESSAGE = {
    "command": "hello",
    "protocols": ["http://livereload.com/protocols/official-7"],
    "serverName": "estatico",
}

CLIENT_SCRIPT = """(function () {
  var socket = new WebSocket('ws://' + (location.hostname || 'localhost') + ':%(port)d/livereload');
  socket.onopen = function () {
    socket.send(JSON.stringify({command: 'hello', protocols: ['http://livereload.com/protocols/official-7']}));
  };
  socket.onmessage = function (event) {
    var message = JSON.parse(event.data);
    if (message.command === 'reload') {
      window.location.reload();
    }
  };
})();
"""


def inject_livereload(html: str, port: int) -> str:
    """Insert the live-reload client script before ``</body>``."""

    tag = f'<script src="//localhost:{port}/livereload.js"></script>'
    index = html.lower().rfind("</body>")
    if index == -1:
        return html + tag
    return html[:index] + tag + html[index:]


def _log_broadcast_failure(future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.warning("Live-reload broadcast failed: %s", future.exception())


class LiveReloadHub:
    """Connected live-reload clients."""

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: Set[asyncio.Task] = set()
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._clients.add(ws)
        logger.debug("Live-reload client connected (%d total)", self.client_count)

    def disconnect(self, ws: WebSocket) -> None:
        with self._lock:
            self._clients.discard(ws)

    async def broadcast(self) -> int:
        with self._lock:
            clients = list(self._clients)
        sent = 0
        for ws in clients:
            try:
                await ws.send_json(RELOAD_MESSAGE)
            except (RuntimeError, WebSocketDisconnect) as exc:
                logger.debug("Dropping live-reload client: %s", exc)
                self.disconnect(ws)
                continue
            sent += 1
        if sent:
            metrics.RELOAD_NOTIFICATIONS.inc(sent)
        return sent

    def notify(self) -> int:
        """Schedule a reload for every connected client; return how many.

        Safe to call from any thread. Never waits for the messages to be sent.
        """

        loop = self._loop
        count = self.client_count
        if loop is None or not count:
            return 0
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            task = loop.create_task(self.broadcast())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return count
        coro = self.broadcast()
        try:
            future = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError as exc:
            coro.close()
            logger.debug("Live-reload loop is gone: %s", exc)
            return 0
        future.add_done_callback(_log_broadcast_failure)
        return count


def create_livereload_app(hub: LiveReloadHub, port: int) -> FastAPI:
    app = FastAPI()

    @app.get("/livereload.js")
    async def client_script():
        return Response(CLIENT_SCRIPT % {"port": port}, media_type="application/javascript")

    @app.websocket("/livereload")
    async def livereload(ws: WebSocket):
        await hub.connect(ws)
        try:
            while True:
                raw = await ws.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    continue
                if isinstance(message, dict) and message.get("command") == "hello":
                    await ws.send_json(HELLO_MESSAGE)
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(ws)

    return app


def create_static_app(build_dir: str | Path, livereload_port: int) -> FastAPI:
    """Serve ``build_dir``; HTML pages get the live-reload script injected."""

    root = Path(build_dir).resolve()
    app = FastAPI()

    @app.get("/{path:path}")
    async def static(path: str):
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            raise HTTPException(404)
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            raise HTTPException(404)
        media_type = mimetypes.guess_type(target.name)[0]
        if media_type == "text/html":
            html = target.read_text(encoding="utf-8")
            return HTMLResponse(inject_livereload(html, livereload_port))
        return FileResponse(target, media_type=media_type)

    return app


class DevServer:
    """Run the static and live-reload servers in background threads."""

    def __init__(self, build_dir: str | Path, options: ServerOptions, hub: LiveReloadHub | None = None) -> None:
        self.build_dir = Path(build_dir)
        self.options = options
        self.hub = hub or LiveReloadHub()
        self._servers: List[uvicorn.Server] = []
        self._threads: List[threading.Thread] = []

    def attach(self, registry: TaskRegistry) -> None:
        """Reload clients after every successful reload-enabled task."""

        def on_result(result: TaskResult) -> None:
            if result.ok and registry.get(result.name).reload:
                notified = self.hub.notify()
                logger.debug("Reload after '%s' sent to %d client(s)", result.name, notified)

        registry.add_listener(on_result)

    def start(self, *, static: bool = True) -> None:
        apps = [(create_livereload_app(self.hub, self.options.livereload_port), self.options.livereload_port)]
        if static:
            apps.append(
                (create_static_app(self.build_dir, self.options.livereload_port), self.options.port)
            )
        for app, port in apps:
            server = uvicorn.Server(
                uvicorn.Config(app, host=self.options.host, port=port, log_level="warning")
            )
            thread = threading.Thread(target=server.run, name=f"estatico-http-{port}", daemon=True)
            thread.start()
            self._servers.append(server)
            self._threads.append(thread)
            logger.info("Listening on http://%s:%d", self.options.host, port)

    def stop(self) -> None:
        for server in self._servers:
            server.should_exit = True
        for thread in self._threads:
            thread.join(timeout=10)
        self._servers.clear()
        self._threads.clear()


def dev_server_for(config: ProjectConfig) -> DevServer:
    return DevServer(config.path(config.build), config.server)


__all__ = [
    "CLIENT_SCRIPT",
    "DevServer",
    "LiveReloadHub",
    "create_livereload_app",
    "create_static_app",
    "dev_server_for",
    "inject_livereload",
]
