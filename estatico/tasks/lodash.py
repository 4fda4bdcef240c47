from __future__ import annotations

import logging

from ..async_utils import run_process
from ..config import LodashOptions
from ..registry import TaskContext

logger = logging.getLogger(__name__)


def lodash_command(options: LodashOptions) -> list[str]:
    return list(options.command) + [
        "include=" + ",".join(options.modules),
        "-o",
        f"{options.dest}/{options.filename}",
        "-d",
    ]


def make_action(name: str, options: LodashOptions):
    async def lodash(ctx: TaskContext) -> None:
        """Generate a custom lodash build."""

        logger.info("Generating custom lodash build.")
        await run_process(lodash_command(options), cwd=str(ctx.config.root))
        logger.info("Custom lodash build written to %s/%s", options.dest, options.filename)

    return lodash
