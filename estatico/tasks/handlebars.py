"""Handlebars rendering through pybars with layout helpers.

The ``extend``/``block``/``content`` helpers give templates layout
inheritance::

    {{#extend "layouts/layout"}}
      {{#content "main"}}Page body{{/content}}
    {{/extend}}

and in ``layouts/layout.html``::

    <main>{{#block "main"}}Default body{{/block}}</main>

``content`` accepts ``mode="append"`` or ``mode="prepend"`` to keep the
block's default markup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Tuple

from pybars import Compiler

from ..errors import TransformError
from ..globs import GlobSet
from ..pipeline import read_bytes

Template = Callable[..., Any]


def _text(rendered: Any) -> str:
    if isinstance(rendered, list):
        return "".join(rendered)
    return str(rendered)


class HandlebarsRenderer:
    """Compile and render templates sharing one set of partials and helpers.

    Not thread-safe: create one renderer per pipeline run.
    """

    def __init__(self, task: str = "html") -> None:
        self.task = task
        self._compiler = Compiler()
        self.partials: Dict[str, Template] = {}
        self._blocks: List[Dict[str, Tuple[str, str]]] = []
        self.helpers: Dict[str, Callable[..., Any]] = {
            "extend": self._extend,
            "block": self._block,
            "content": self._content,
        }

    def compile(self, source: str, name: str = "<template>") -> Template:
        try:
            return self._compiler.compile(source)
        except Exception as exc:
            raise TransformError(f"{name}: {exc}", task=self.task, stage="handlebars") from exc

    def load_partials(self, root: Path, patterns: Iterable[str], base: str) -> None:
        """Register every file matched by ``patterns`` as a partial.

        The partial name is the path relative to ``root / base`` without its
        extension, e.g. ``layouts/layout`` or ``modules/teaser/teaser``. The
        bare file stem (``teaser``) is registered too unless two partials
        share it.
        """

        patterns = list(patterns)
        if not patterns:
            return
        base_dir = root / base
        stems: Dict[str, List[str]] = {}
        for path in GlobSet(patterns).iter_files(root):
            name = path.relative_to(base_dir).with_suffix("").as_posix()
            self.partials[name] = self.compile(read_bytes(path).decode("utf-8"), name)
            stems.setdefault(path.stem, []).append(name)
        for stem, names in stems.items():
            if len(names) == 1 and stem not in self.partials:
                self.partials[stem] = self.partials[names[0]]

    def render(self, source: str, context: Dict[str, Any], name: str = "<template>") -> str:
        template = self.compile(source, name)
        try:
            return _text(template(context, helpers=self.helpers, partials=self.partials))
        except TransformError:
            raise
        except Exception as exc:
            raise TransformError(f"{name}: {exc}", task=self.task, stage="handlebars") from exc

    # ------------------------------------------------------------------
    # Layout helpers
    def _extend(self, this: Any, options: Dict[str, Any], name: str, **kwargs: Any) -> str:
        partial = self.partials.get(name)
        if partial is None:
            raise TransformError(f"Unknown layout '{name}'", task=self.task, stage="handlebars")
        self._blocks.append({})
        try:
            options["fn"](this)
            return _text(partial(this, helpers=self.helpers, partials=self.partials))
        finally:
            self._blocks.pop()

    def _content(
        self, this: Any, options: Dict[str, Any], name: str, mode: str = "replace", **kwargs: Any
    ) -> str:
        if self._blocks:
            self._blocks[-1][name] = (mode, _text(options["fn"](this)))
        return ""

    def _block(self, this: Any, options: Dict[str, Any], name: str, **kwargs: Any) -> str:
        default = _text(options["fn"](this))
        entry = self._blocks[-1].get(name) if self._blocks else None
        if entry is None:
            return default
        mode, text = entry
        if mode == "append":
            return default + text
        if mode == "prepend":
            return text + default
        return text


def render_template_file(
    path: Path, context: Dict[str, Any], *, task: str
) -> str:
    """Render a single stylesheet/script template outside of any pipeline."""

    renderer = HandlebarsRenderer(task)
    return renderer.render(read_bytes(path).decode("utf-8"), context, name=str(path))


__all__ = ["HandlebarsRenderer", "render_template_file"]
