"""Exception hierarchy shared by the registry, the tasks and the CLI."""

from __future__ import annotations

from typing import Sequence


class EstaticoError(Exception):
    """Base class for all build errors."""


class ConfigurationError(EstaticoError):
    """Raised for cyclic or missing task dependencies and invalid configuration."""


class TransformError(EstaticoError):
    """Raised when a pipeline stage reports a failure (lint, compile, ...)."""

    def __init__(self, message: str, *, task: str | None = None, stage: str | None = None) -> None:
        self.task = task
        self.stage = stage
        prefix = ""
        if task and stage:
            prefix = f"[{task}:{stage}] "
        elif task:
            prefix = f"[{task}] "
        super().__init__(f"{prefix}{message}")


class BuildIOError(EstaticoError):
    """Raised when reading or writing a build file fails."""

    def __init__(self, path: object, exc: OSError) -> None:
        self.path = str(path)
        self.errno = exc.errno
        super().__init__(f"{self.path}: {exc.strerror or exc}")


class ProcessError(EstaticoError):
    """Raised when an external helper process exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, output: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = f"{' '.join(self.command)} exited with status {returncode}"
        if output.strip():
            message += f"\n{output.strip()}"
        super().__init__(message)


__all__ = [
    "EstaticoError",
    "ConfigurationError",
    "TransformError",
    "BuildIOError",
    "ProcessError",
]
