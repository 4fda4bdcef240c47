"""Transform tasks and the composite tasks built from them."""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Callable, Dict

from ..config import ProjectConfig
from ..errors import ConfigurationError
from ..registry import Action, TaskContext, TaskRegistry
from . import (
    clean,
    css,
    html,
    iconfont,
    imageversions,
    js,
    js_templates,
    lodash,
    media,
    modernizr,
    pngsprite,
)

logger = logging.getLogger(__name__)

# kind -> (action factory, triggers a reload when it succeeds)
TASK_KINDS: Dict[str, tuple[Callable[..., Action], bool]] = {
    "html": (html.make_action, True),
    "css": (css.make_action, True),
    "js": (js.make_action, True),
    "js-templates": (js_templates.make_action, True),
    "modernizr": (modernizr.make_action, False),
    "lodash": (lodash.make_action, False),
    "iconfont": (iconfont.make_action, False),
    "pngsprite": (pngsprite.make_action, False),
    "media": (media.make_action, False),
    "clean": (clean.make_action, False),
    "imageversions": (imageversions.make_action, False),
}


def register_transform_tasks(registry: TaskRegistry, config: ProjectConfig) -> None:
    """Register one task per entry in ``config.tasks``."""

    for name, options in config.tasks.items():
        factory, reload = TASK_KINDS[options.kind]
        action = factory(name, options)
        registry.register(
            name,
            (),
            action,
            reload=reload,
            description=(action.__doc__ or "").strip().split("\n")[0],
        )


async def _wait_forever() -> None:
    while True:
        await asyncio.sleep(3600)


async def watch_and_serve(ctx: TaskContext, *, static: bool, clean_on_exit: bool) -> None:
    """Start the watcher and the dev server, then block until interrupted."""

    from ..devserver import dev_server_for
    from ..watcher import ChangeWatcher, Subscription

    config: ProjectConfig = ctx.config
    subscriptions = [Subscription.of(sub.src, sub.task) for sub in config.watch]
    missing = [sub.task for sub in subscriptions if sub.task not in ctx.registry]
    if missing:
        raise ConfigurationError(f"Watch subscriptions name unknown task(s): {', '.join(missing)}")
    server = dev_server_for(config)
    server.attach(ctx.registry)
    watcher = ChangeWatcher(ctx.registry, subscriptions, config.root)
    server.start(static=static)
    watcher.start()
    if static and config.server.open_browser:
        webbrowser.open(f"http://localhost:{config.server.port}")
    try:
        await _wait_forever()
    finally:
        watcher.stop()
        server.stop()
        if clean_on_exit:
            clean.remove_paths(config.root, [config.build])


def register_composite_tasks(registry: TaskRegistry) -> None:
    """Register ``setup``, ``build``, ``watch`` and ``default``."""

    @registry.task("setup", ["lodash"])
    async def setup(ctx: TaskContext) -> None:
        """Generate lodash and Modernizr builds."""

        # Modernizr has to run last.
        await ctx.run_together(["modernizr"])

    @registry.task("build", ["iconfont", "pngsprite"])
    async def build(ctx: TaskContext) -> None:
        """Create the build directory."""

        await ctx.run_together(["html", "css", "js", "media"])

    @registry.task("watch")
    async def watch(ctx: TaskContext) -> None:
        """Rebuild on change and notify live-reload clients."""

        await watch_and_serve(ctx, static=False, clean_on_exit=False)

    @registry.task("default", ["iconfont", "pngsprite", "html", "css", "js", "media"])
    async def default(ctx: TaskContext) -> None:
        """Build, serve the build directory and watch for changes."""

        await watch_and_serve(ctx, static=True, clean_on_exit=True)


__all__ = ["TASK_KINDS", "register_composite_tasks", "register_transform_tasks", "watch_and_serve"]
