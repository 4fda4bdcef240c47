"""Bundle module templates into a script declaring them on a namespace."""

from __future__ import annotations

import json
from pathlib import Path, PurePosixPath
from typing import List

from ..config import JsTemplatesOptions
from ..pipeline import Pipeline, SourceFile, write_bytes
from ..registry import TaskContext


def _namespace_lines(namespace: str) -> List[str]:
    lines = []
    path = "this"
    for part in namespace.split("."):
        path += f"[{json.dumps(part)}]"
        lines.append(f"{path} = {path} || {{}};")
    return lines


def template_name(f: SourceFile) -> str:
    return PurePosixPath(f.relative).with_suffix("").as_posix()


def declare_templates(files: List[SourceFile], namespace: str) -> str:
    """Return a script assigning each template, compiled at load time, to ``namespace``."""

    lines = _namespace_lines(namespace)
    target = "this" + "".join(f"[{json.dumps(p)}]" for p in namespace.split("."))
    for f in sorted(files, key=template_name):
        lines.append(
            f"{target}[{json.dumps(template_name(f))}] = "
            f"Handlebars.compile({json.dumps(f.text)});"
        )
    return "\n".join(lines) + "\n"


def make_action(name: str, options: JsTemplatesOptions):
    def js_templates(ctx: TaskContext) -> None:
        """Bundle module templates for client-side rendering."""

        root: Path = ctx.config.root
        files = Pipeline(name, options.src, root=root).process()
        write_bytes(
            root / options.dest / options.filename,
            declare_templates(files, options.namespace).encode("utf-8"),
        )

    return js_templates
