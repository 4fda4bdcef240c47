from __future__ import annotations

import logging

from ..config import MediaOptions
from ..pipeline import Pipeline
from ..registry import TaskContext

logger = logging.getLogger(__name__)


def make_action(name: str, options: MediaOptions):
    def media(ctx: TaskContext) -> None:
        """Copy fonts and media files to the build directory."""

        written = Pipeline(name, options.src, root=ctx.config.root, base=options.base).run(
            options.dest
        )
        logger.info("Copied %d media file(s)", len(written))

    return media
