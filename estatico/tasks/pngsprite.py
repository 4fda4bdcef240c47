"""Pack PNG images into a sprite sheet and render its stylesheet."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence

from PIL import Image

from ..config import PngspriteOptions
from ..errors import TransformError
from ..pipeline import Pipeline, SourceFile, write_bytes
from ..registry import TaskContext
from .handlebars import render_template_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpriteItem:
    name: str
    x: int
    y: int
    width: int
    height: int


def pack_top_down(sizes: Sequence[tuple[str, int, int]], padding: int = 0) -> tuple[List[SpriteItem], int, int]:
    """Stack images vertically; return items and the sheet size."""

    items = []
    y = 0
    width = 0
    for name, w, h in sizes:
        items.append(SpriteItem(name, 0, y, w, h))
        y += h + padding
        width = max(width, w)
    height = y - padding if items else 0
    return items, width, height


def build_sprite(files: Sequence[SourceFile], padding: int = 0, *, task: str = "pngsprite"):
    images = []
    for f in sorted(files, key=lambda f: f.path.stem):
        try:
            image = Image.open(io.BytesIO(f.contents))
            image.load()
        except Exception as exc:
            raise TransformError(f"{f.path}: {exc}", task=task, stage="spritesmith") from exc
        images.append((f.path.stem, image))

    items, width, height = pack_top_down(
        [(name, img.width, img.height) for name, img in images], padding
    )
    sheet = Image.new("RGBA", (max(width, 1), max(height, 1)), (0, 0, 0, 0))
    for item, (_, image) in zip(items, images):
        sheet.paste(image.convert("RGBA"), (item.x, item.y))
    buf = io.BytesIO()
    sheet.save(buf, format="PNG")
    return items, width, height, buf.getvalue()


def template_items(items: Sequence[SpriteItem], width: int, height: int, image: str) -> List[Dict[str, Any]]:
    return [
        {
            "name": item.name,
            "x": item.x,
            "y": item.y,
            "width": item.width,
            "height": item.height,
            "offset_x": -item.x,
            "offset_y": -item.y,
            "total_width": width,
            "total_height": height,
            "image": image,
            "px": {
                "x": f"{item.x}px",
                "y": f"{item.y}px",
                "offset_x": f"{-item.x}px",
                "offset_y": f"{-item.y}px",
                "width": f"{item.width}px",
                "height": f"{item.height}px",
                "total_width": f"{width}px",
                "total_height": f"{height}px",
            },
        }
        for item in items
    ]


def make_action(name: str, options: PngspriteOptions):
    def pngsprite(ctx: TaskContext) -> None:
        """Generate the sprite image and its stylesheet."""

        root: Path = ctx.config.root
        files = Pipeline(name, options.src, root=root).process()
        if not files:
            logger.info("No sprite images found, skipping sprite")
            return
        items, width, height, png = build_sprite(files, options.padding, task=name)
        write_bytes(root / options.dest / options.img_name, png)

        context = {"items": template_items(items, width, height, options.img_path)}
        stylesheet = render_template_file(root / options.template, context, task=name)
        write_bytes(root / options.stylesheet_dest / options.css_name, stylesheet.encode("utf-8"))

    return pngsprite
