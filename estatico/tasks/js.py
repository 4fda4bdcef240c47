"""Lint scripts, then build ``head.js`` and ``main.js`` bundles.

Bundles are assembled from ``@requires`` comments::

    /**
     * @requires ../vendor/jquery.js
     * @requires helpers/inspector.js
     */

Required files are resolved relative to the requiring file, recursively, and
emitted before it.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Sequence

import rjsmin

from ..async_utils import run_coroutine, run_process
from ..config import JsOptions
from ..errors import ProcessError, TransformError
from ..pipeline import Pipeline, SourceFile, read_bytes, write_bytes
from ..registry import TaskContext

logger = logging.getLogger(__name__)


class LintCache:
    """Remember content hashes of files that passed linting."""

    def __init__(self) -> None:
        self._hashes: Dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _digest(contents: bytes) -> str:
        return hashlib.sha1(contents).hexdigest()

    def changed(self, files: Sequence[SourceFile]) -> List[SourceFile]:
        with self._lock:
            return [f for f in files if self._hashes.get(str(f.path)) != self._digest(f.contents)]

    def update(self, files: Sequence[SourceFile]) -> None:
        with self._lock:
            for f in files:
                self._hashes[str(f.path)] = self._digest(f.contents)


def lint(
    files: Sequence[SourceFile],
    command: Sequence[str],
    root: Path,
    *,
    cache: LintCache | None = None,
    task: str = "js",
) -> List[SourceFile]:
    """Run the linter on changed ``files``; raise :class:`TransformError` on failure."""

    pending = cache.changed(files) if cache is not None else list(files)
    if not pending:
        logger.debug("Nothing to lint")
        return list(files)
    args = list(command) + [str(f.path.relative_to(root)) for f in pending]
    try:
        run_coroutine(run_process(args, cwd=str(root)))
    except ProcessError as exc:
        if exc.returncode == 127:
            raise
        raise TransformError(
            f"Linting failed for {len(pending)} file(s)\n{exc.output.strip()}",
            task=task,
            stage="lint",
        ) from exc
    if cache is not None:
        cache.update(pending)
    return list(files)


def resolve_requires(entry: Path, pattern: re.Pattern[str], *, task: str = "js") -> List[Path]:
    """Return ``entry`` and its ``@requires`` dependencies, dependencies first."""

    order: List[Path] = []
    seen: set[Path] = set()

    def visit(path: Path, stack: List[Path]) -> None:
        path = path.resolve()
        if path in seen or path in stack:
            return
        if not path.is_file():
            requirer = f" (required by {stack[-1]})" if stack else ""
            raise TransformError(f"Missing file {path}{requirer}", task=task, stage="requires")
        text = read_bytes(path).decode("utf-8")
        stack.append(path)
        for match in pattern.finditer(text):
            visit(path.parent / match.group(1).strip(), stack)
        stack.pop()
        seen.add(path)
        order.append(path)

    visit(entry, [])
    return order


def build_bundle(entry: Path, pattern: re.Pattern[str], *, production: bool, task: str = "js") -> str:
    parts = [read_bytes(p).decode("utf-8") for p in resolve_requires(entry, pattern, task=task)]
    source = "\n".join(parts)
    if production:
        source = rjsmin.jsmin(source)
    return source


def make_action(name: str, options: JsOptions):
    cache = LintCache()
    pattern = re.compile(options.requires_pattern)

    def js(ctx: TaskContext) -> None:
        """Lint scripts and build the script bundles."""

        root = ctx.config.root
        production = ctx.config.is_production(options)
        if options.lint and options.src:
            pipeline = Pipeline(name, options.src, root=root)
            pipeline.pipe(
                lambda files: lint(files, options.lint_command, root, cache=cache, task=name),
                "lint",
            )
            pipeline.process()

        for bundle in options.bundles:
            entry = root / bundle
            target = root / options.dest / entry.name
            write_bytes(
                target,
                build_bundle(entry, pattern, production=production, task=name).encode("utf-8"),
            )
            logger.debug("Wrote %s", target)

    return js
