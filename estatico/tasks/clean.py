from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable

from ..config import CleanOptions
from ..errors import BuildIOError
from ..registry import TaskContext

logger = logging.getLogger(__name__)


def remove_paths(root: Path, paths: Iterable[str]) -> None:
    """Delete every path in ``paths`` below ``root``; missing paths are ignored."""

    for relative in paths:
        target = root / relative
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            else:
                continue
        except OSError as exc:
            raise BuildIOError(target, exc) from exc
        logger.info("Removed %s", target)


def make_action(name: str, options: CleanOptions):
    def clean(ctx: TaskContext) -> None:
        """Remove the build folder."""

        remove_paths(ctx.config.root, options.src)

    return clean
