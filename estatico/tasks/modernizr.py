"""Generate a custom Modernizr build from the feature tests the sources use."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Iterable, List

from ..async_utils import run_process
from ..config import ModernizrOptions
from ..pipeline import Pipeline, SourceFile, write_bytes
from ..registry import TaskContext

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"\bModernizr\.([A-Za-z0-9_]+)")


def detect_tests(files: Iterable[SourceFile], known_tests: Iterable[str]) -> List[str]:
    """Return the feature tests referenced by scripts and stylesheets."""

    known = list(known_tests)
    class_re = None
    if known:
        alternatives = "|".join(re.escape(t) for t in sorted(known, key=len, reverse=True))
        class_re = re.compile(rf"\.(?:no-)?({alternatives})(?![\w-])")
    found: set[str] = set()
    for f in files:
        text = f.contents.decode("utf-8", "replace")
        if f.path.suffix == ".js":
            found.update(m.group(1) for m in _SCRIPT_RE.finditer(text))
        elif class_re is not None:
            found.update(m.group(1) for m in class_re.finditer(text))
    return sorted(found)


def make_action(name: str, options: ModernizrOptions):
    async def modernizr(ctx: TaskContext) -> None:
        """Generate a customized Modernizr build."""

        root = ctx.config.root
        pipeline = Pipeline(name, options.src, root=root)
        files = await asyncio.to_thread(pipeline.process)
        tests = detect_tests(files, options.tests)
        logger.info("Modernizr tests in use: %s", ", ".join(tests) or "(none)")

        dest = root / options.dest
        config_path = dest / "modernizr-config.json"
        write_bytes(
            config_path,
            json.dumps({"feature-detects": tests, "options": ["setClasses"]}, indent=2).encode(),
        )
        command = list(options.command) + [
            "-c",
            str(config_path),
            "-d",
            str(dest / options.filename),
        ]
        if ctx.config.is_production(options):
            command.append("-u")
        await run_process(command, cwd=str(root))

    return modernizr
