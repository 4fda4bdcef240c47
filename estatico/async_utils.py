"""Async helpers for running coroutines and external processes."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, Sequence

from .errors import ProcessError

logger = logging.getLogger(__name__)


def run_coroutine(coro: Coroutine[Any, Any, Any]) -> Any:
    """Synchronously execute *coro* and return its result.

    When no event loop is running ``asyncio.run`` is used. If a loop is already
    running (e.g. when the CLI is invoked from async test code) the coroutine
    is executed in a dedicated thread with its own event loop so the current
    loop is not blocked.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(lambda: asyncio.run(coro)).result()


async def run_process(
    command: Sequence[str],
    *,
    cwd: str | None = None,
    stdin: bytes | None = None,
) -> bytes:
    """Run *command* and return its standard output.

    Standard error is merged into the message of the :class:`ProcessError`
    raised when the process exits non-zero or cannot be started.
    """

    logger.debug("Running %s", " ".join(command))
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ProcessError(command, 127, str(exc)) from exc
    stdout, stderr = await proc.communicate(stdin)
    if proc.returncode != 0:
        output = (stderr or b"").decode("utf-8", "replace") or (stdout or b"").decode(
            "utf-8", "replace"
        )
        raise ProcessError(command, proc.returncode or 1, output)
    return stdout
