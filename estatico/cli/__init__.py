"""Entry points for the command-line interface.

``estatico`` without a sub-command runs the ``default`` task (build, serve and
watch); ``estatico run NAME`` runs a single task after its dependencies.
"""

from __future__ import annotations

import sys
from typing import Any, Dict

import typer

from ..config import load_config
from ..errors import ConfigurationError
from ..logging_setup import setup_logging
from ..metrics import start_metrics_server
from ..registry import TaskRegistry

app = typer.Typer(help="Build, watch and serve an Estatico project")


@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    production: bool = typer.Option(
        False,
        "--production",
        help="Minify and compress styles and scripts",
    ),
    config: str | None = typer.Option(
        None,
        "--config",
        help="Path to the YAML configuration (default: estatico.yml)",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
    metrics_port: int | None = typer.Option(
        None,
        "--metrics-port",
        help="Expose Prometheus metrics on PORT before executing the command",
    ),
) -> None:
    """Handle global options for the CLI."""

    setup_logging(log_level)
    if metrics_port is not None:
        start_metrics_server(metrics_port)

    options = dict(ctx.obj or {})
    options.update(config=config, production=True if production else None)
    ctx.obj = options
    if ctx.invoked_subcommand is None:
        _run(ctx, "default")


def _registry(ctx: typer.Context) -> TaskRegistry:
    from .. import build_registry

    options: Dict[str, Any] = ctx.obj or {}
    if isinstance(options.get("registry"), TaskRegistry):
        return options["registry"]
    try:
        registry = build_registry(
            load_config(options.get("config"), production=options.get("production"))
        )
    except ConfigurationError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    options["registry"] = registry
    ctx.obj = options
    return registry


def _run(ctx: typer.Context, name: str) -> None:
    registry = _registry(ctx)
    try:
        registry.run_sync(name)
    except KeyboardInterrupt:
        typer.echo("stopped")
        raise typer.Exit(code=0)
    except ConfigurationError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except Exception as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("run")
def run_task(ctx: typer.Context, name: str = typer.Argument("default")) -> None:
    """Run ``NAME`` after all of its dependencies."""

    _run(ctx, name)


@app.command("list")
def list_tasks(ctx: typer.Context) -> None:
    """List all registered tasks."""

    for task in _registry(ctx).list_tasks():
        deps = ",".join(task.dependencies) or "-"
        typer.echo(f"{task.name}\t{deps}\t{task.description}")


def main(args: list[str] | None = None) -> None:
    """CLI entry point used by ``console_scripts`` or ``python -m estatico``."""

    app(args if args is not None else sys.argv[1:], prog_name="estatico")


__all__ = ["app", "main", "run_task", "list_tasks"]
