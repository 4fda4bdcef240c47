"""Named build tasks and their dependency-ordered execution.

A :class:`TaskRegistry` is created once at startup and handed to whoever needs
to run tasks (the CLI, the watcher, the dev server). Actions are plain or
coroutine functions receiving a :class:`TaskContext`; plain functions run in a
worker thread so independent tasks started together can overlap.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Tuple, Union

from .. import metrics
from ..async_utils import run_coroutine
from ..errors import ConfigurationError
from .dag import resolve_order

logger = logging.getLogger(__name__)

Action = Callable[["TaskContext"], Union[None, Awaitable[None]]]
Listener = Callable[["TaskResult"], None]


@dataclass(frozen=True)
class Task:
    """A named unit of build work."""

    name: str
    dependencies: Tuple[str, ...]
    action: Action
    reload: bool = False
    description: str = ""


@dataclass(frozen=True)
class TaskResult:
    """Outcome of one action execution."""

    name: str
    ok: bool
    duration: float
    error: BaseException | None = None


@dataclass
class TaskContext:
    """Handed to every action; gives access to the registry and the current run."""

    registry: "TaskRegistry"
    task: Task
    config: Any = None
    _run: "_Run | None" = field(default=None, repr=False)

    async def run_together(self, names: Iterable[str]) -> list[TaskResult]:
        """Start ``names`` concurrently within the current run."""

        if self._run is None:
            raise RuntimeError("run_together needs a running task")
        return await self._run.run_together(list(names))


class _Run:
    """Book-keeping for a single invocation: every task executes at most once."""

    def __init__(self, registry: "TaskRegistry") -> None:
        self.registry = registry
        self._futures: Dict[str, asyncio.Future[TaskResult]] = {}

    def schedule(self, name: str) -> asyncio.Future[TaskResult]:
        fut = self._futures.get(name)
        if fut is None:
            fut = asyncio.ensure_future(self._execute(name))
            self._futures[name] = fut
        return fut

    async def _execute(self, name: str) -> TaskResult:
        task = self.registry.get(name)
        for dep in task.dependencies:
            await self.schedule(dep)
        return await self.registry._invoke(task, self)

    async def run_together(self, names: list[str]) -> list[TaskResult]:
        self.registry.resolve(*names)
        outcomes = await asyncio.gather(
            *(self.schedule(name) for name in names), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(outcomes)  # type: ignore[arg-type]


class TaskRegistry:
    """Holds build tasks and runs them in dependency order.

    Parameters
    ----------
    config:
        Project configuration made available to actions as ``ctx.config``.
    """

    def __init__(self, config: Any = None) -> None:
        self.config = config
        self._tasks: Dict[str, Task] = {}
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        dependencies: Iterable[str] = (),
        action: Action | None = None,
        *,
        reload: bool = False,
        description: str = "",
    ) -> Task:
        """Register ``action`` under ``name``; names are unique."""

        if action is None:
            async def action(ctx: TaskContext) -> None:
                return None

        task = Task(
            name=name,
            dependencies=tuple(dependencies),
            action=action,
            reload=reload,
            description=description,
        )
        with self._lock:
            if name in self._tasks:
                raise ConfigurationError(f"Task '{name}' is already registered")
            self._tasks[name] = task
        return task

    def task(
        self,
        name: str,
        dependencies: Iterable[str] = (),
        *,
        reload: bool = False,
    ) -> Callable[[Action], Action]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Action) -> Action:
            self.register(
                name,
                dependencies,
                func,
                reload=reload,
                description=(inspect.getdoc(func) or "").split("\n")[0],
            )
            return func

        return decorator

    # ------------------------------------------------------------------
    # Query helpers
    def get(self, name: str) -> Task:
        with self._lock:
            task = self._tasks.get(name)
        if task is None:
            raise ConfigurationError(f"Unknown task: {name}")
        return task

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def list_tasks(self) -> Iterable[Task]:
        """Return registered tasks in registration order."""

        with self._lock:
            return list(self._tasks.values())

    def resolve(self, *names: str) -> list[str]:
        """Return the execution order for ``names`` including dependencies."""

        with self._lock:
            graph = {name: task.dependencies for name, task in self._tasks.items()}
        return resolve_order(graph, names)

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if any dependency graph is invalid."""

        with self._lock:
            names = list(self._tasks)
        self.resolve(*names)

    # ------------------------------------------------------------------
    # Listeners
    def add_listener(self, listener: Listener) -> None:
        """Call ``listener`` with the :class:`TaskResult` of every action."""

        self._listeners.append(listener)

    def _emit(self, result: TaskResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Listener failed for task '%s'", result.name)

    # ------------------------------------------------------------------
    # Execution
    async def run(self, name: str = "default") -> TaskResult:
        """Run ``name`` after all its transitive dependencies.

        Configuration problems surface before any action is invoked. The first
        failing action aborts the run and its exception propagates.
        """

        self.resolve(name)
        return await _Run(self).schedule(name)

    async def run_together(self, names: Iterable[str]) -> list[TaskResult]:
        """Run several tasks concurrently, sharing dependencies between them."""

        return await _Run(self).run_together(list(names))

    def run_sync(self, name: str = "default") -> TaskResult:
        """Blocking wrapper around :meth:`run`."""

        return run_coroutine(self.run(name))

    async def _invoke(self, task: Task, run: _Run) -> TaskResult:
        ctx = TaskContext(registry=self, task=task, config=self.config, _run=run)
        tracked = metrics.track_task(_as_coroutine(task.action), name=task.name)
        logger.info("Starting '%s'...", task.name)
        start = time.monotonic()
        try:
            await tracked(ctx)
        except Exception as exc:
            duration = time.monotonic() - start
            logger.error("'%s' errored after %.2f s", task.name, duration)
            self._emit(TaskResult(task.name, False, duration, exc))
            raise
        duration = time.monotonic() - start
        logger.info("Finished '%s' after %.2f s", task.name, duration)
        result = TaskResult(task.name, True, duration)
        self._emit(result)
        return result


def _as_coroutine(action: Action) -> Callable[[TaskContext], Awaitable[None]]:
    if inspect.iscoroutinefunction(action):
        return action  # type: ignore[return-value]

    async def runner(ctx: TaskContext) -> None:
        outcome = await asyncio.to_thread(action, ctx)
        if inspect.isawaitable(outcome):
            await outcome

    runner.__name__ = getattr(action, "__name__", "action")
    return runner


__all__ = [
    "Task",
    "TaskContext",
    "TaskRegistry",
    "TaskResult",
    "resolve_order",
]
