"""Compile Handlebars pages to HTML.

Front matter (YAML between ``---`` fences) is made available as
``frontmatter``; the content of ``data/<page>.json`` is merged into the
template context.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict

import yaml

from ..config import HtmlOptions
from ..errors import TransformError
from ..pipeline import Pipeline, SourceFile, each, read_bytes
from ..registry import TaskContext
from .handlebars import HandlebarsRenderer

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.S)


def split_front_matter(text: str) -> tuple[Dict[str, Any], str]:
    """Return ``(front matter, body)`` for ``text``."""

    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, text
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise TransformError("front matter must be a mapping", task="html", stage="front-matter")
    return data, text[match.end():]


def _front_matter(f: SourceFile) -> SourceFile:
    data, body = split_front_matter(f.text)
    f = f.with_text(body)
    f.data["frontmatter"] = data
    return f


def build_pipeline(options: HtmlOptions, root: Path, name: str = "html") -> Pipeline:
    renderer = HandlebarsRenderer(name)
    renderer.load_partials(root, options.partials, options.partials_base)
    data_dir = root / options.data_dir

    def template_data(f: SourceFile) -> SourceFile:
        data_file = data_dir / f"{f.path.stem}.json"
        if data_file.is_file():
            data = json.loads(read_bytes(data_file).decode("utf-8"))
            if isinstance(data, dict):
                f.data.update(data)
            else:
                f.data["data"] = data
        return f

    def handlebars(f: SourceFile) -> SourceFile:
        return f.with_text(renderer.render(f.text, f.data, name=str(f.relative)))

    return (
        Pipeline(name, options.src, root=root)
        .pipe(each(_front_matter), "front-matter")
        .pipe(each(template_data), "template-data")
        .pipe(each(handlebars), "handlebars")
    )


def make_action(name: str, options: HtmlOptions):
    def html(ctx: TaskContext) -> None:
        """Compile Handlebars templates to HTML."""

        root = ctx.config.root
        build_pipeline(options, root, name).run(options.dest)

    return html
