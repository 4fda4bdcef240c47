"""Estatico package root.

Build tasks for a static site: templates, styles, scripts, sprites, icon
fonts and a live-reload development server.
"""

from .config import ProjectConfig, load_config
from .errors import (
    BuildIOError,
    ConfigurationError,
    EstaticoError,
    ProcessError,
    TransformError,
)
from .registry import Task, TaskContext, TaskRegistry, TaskResult

__version__ = "0.3.0"


def build_registry(config: ProjectConfig | None = None) -> TaskRegistry:
    """Create a registry holding every configured task.

    Raises :class:`ConfigurationError` when the task graph is invalid.
    """

    from .tasks import register_composite_tasks, register_transform_tasks

    config = config if config is not None else load_config()
    registry = TaskRegistry(config)
    register_transform_tasks(registry, config)
    register_composite_tasks(registry)
    registry.validate()
    return registry


from . import cli  # noqa: F401,E402


__all__ = [
    "BuildIOError",
    "ConfigurationError",
    "EstaticoError",
    "ProcessError",
    "ProjectConfig",
    "Task",
    "TaskContext",
    "TaskRegistry",
    "TaskResult",
    "TransformError",
    "build_registry",
    "cli",
    "load_config",
]
