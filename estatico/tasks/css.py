"""Compile Sass to CSS and optionally run autoprefixer."""

from __future__ import annotations

from pathlib import Path
from typing import List

import sass

from ..async_utils import run_coroutine, run_process
from ..config import CssOptions
from ..errors import TransformError
from ..pipeline import Pipeline, SourceFile, each
from ..registry import TaskContext


def compile_scss(
    f: SourceFile, *, include_paths: List[str], production: bool, task: str = "css"
) -> SourceFile:
    try:
        css = sass.compile(
            filename=str(f.path),
            include_paths=include_paths,
            output_style="compressed" if production else "expanded",
        )
    except sass.CompileError as exc:
        raise TransformError(str(exc), task=task, stage="sass") from exc
    return f.renamed(f.relative.with_suffix(".css")).with_text(css)


def build_pipeline(
    options: CssOptions, root: Path, *, production: bool, name: str = "css"
) -> Pipeline:
    include_paths = [str(root / p) for p in options.include_paths]

    def scss(f: SourceFile) -> SourceFile:
        return compile_scss(f, include_paths=include_paths, production=production, task=name)

    pipeline = Pipeline(name, options.src, root=root).pipe(each(scss), "sass")
    if options.autoprefixer:
        command = list(options.autoprefixer)

        def autoprefixer(f: SourceFile) -> SourceFile:
            out = run_coroutine(run_process(command, cwd=str(root), stdin=f.contents))
            return f.with_text(out.decode("utf-8"))

        pipeline.pipe(each(autoprefixer), "autoprefixer")
    return pipeline


def make_action(name: str, options: CssOptions):
    def css(ctx: TaskContext) -> None:
        """Compile Sass to CSS."""

        production = ctx.config.is_production(options)
        build_pipeline(options, ctx.config.root, production=production, name=name).run(
            options.dest
        )

    return css
