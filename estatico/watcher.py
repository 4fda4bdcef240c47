"""Re-run tasks when watched source files change."""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from watchdog.events import FileSystemEventHandler
from watchdog.observers.polling import PollingObserver as Observer

from .globs import GlobSet, as_globset
from .registry import TaskRegistry

logger = logging.getLogger(__name__)


class WatchState(enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    TRIGGERED = "triggered"


@dataclass(frozen=True)
class Subscription:
    """Run ``task`` whenever a path matching ``globs`` changes."""

    globs: GlobSet
    task: str

    @classmethod
    def of(cls, src: GlobSet | Sequence[str] | str, task: str) -> "Subscription":
        return cls(as_globset(src), task)


class _ChangeHandler(FileSystemEventHandler):
    """Internal handler forwarding file events to the watcher."""

    def __init__(self, watcher: "ChangeWatcher") -> None:
        self._watcher = watcher

    def on_any_event(self, event):  # pragma: no cover - simple passthrough
        if event.is_directory:
            return
        self._watcher.trigger(event.src_path)
        dest = getattr(event, "dest_path", "")
        if dest:
            self._watcher.trigger(dest)


class ChangeWatcher:
    """Watch ``root`` and run the subscribed tasks on matching changes.

    Tasks run on an event loop owned by the watcher (in a daemon thread).
    A failing task is logged and never stops the watcher; overlapping
    triggers may run concurrently.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        subscriptions: Iterable[Subscription],
        root: str | Path = ".",
        *,
        observer=None,
    ) -> None:
        self.registry = registry
        self.subscriptions: List[Subscription] = list(subscriptions)
        self.root = Path(root).resolve()
        self.state = WatchState.IDLE
        self._observer = observer if observer is not None else Observer()
        self._handler = _ChangeHandler(self)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._in_flight = 0
        self._lock = threading.Lock()

    def start(self) -> None:
        """Validate subscriptions, start the task loop and the file observer."""

        for sub in self.subscriptions:
            self.registry.resolve(sub.task)
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="estatico-watch", daemon=True
        )
        self._thread.start()
        self._observer.schedule(self._handler, str(self.root), recursive=True)
        self._observer.start()
        self.state = WatchState.WATCHING
        logger.info("Watching %s (%d subscription(s))", self.root, len(self.subscriptions))

    def stop(self) -> None:
        """Stop watching."""
        self._observer.stop()
        self._observer.join()
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join()
        if self._loop is not None:
            self._loop.close()
            self._loop = None
        self.state = WatchState.IDLE

    def tasks_for(self, path: str | Path) -> List[str]:
        """Return the task names subscribed to ``path``, each once."""

        path = Path(path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.root)
            except ValueError:
                return []
        relative = path.as_posix()
        names: List[str] = []
        for sub in self.subscriptions:
            if sub.task not in names and sub.globs.match(relative):
                names.append(sub.task)
        return names

    def trigger(self, path: str | Path) -> List[Future]:
        """Schedule the tasks subscribed to ``path``; return their futures."""

        if self._loop is None:
            raise RuntimeError("watcher is not running")
        futures = []
        for name in self.tasks_for(path):
            logger.info("'%s' changed, running '%s'", path, name)
            with self._lock:
                self._in_flight += 1
                self.state = WatchState.TRIGGERED
            futures.append(asyncio.run_coroutine_threadsafe(self._run(name), self._loop))
        return futures

    async def _run(self, name: str) -> bool:
        try:
            await self.registry.run(name)
        except Exception:
            logger.exception("Task '%s' failed; still watching", name)
            return False
        finally:
            with self._lock:
                self._in_flight -= 1
                if self._in_flight == 0 and self.state is WatchState.TRIGGERED:
                    self.state = WatchState.WATCHING
        return True


__all__ = ["ChangeWatcher", "Subscription", "WatchState"]
