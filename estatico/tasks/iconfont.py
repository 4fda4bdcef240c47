"""Build an icon font from SVG files and render its stylesheet.

Each SVG becomes one glyph named after the file. Codepoints are assigned in
glyph-name order from the private use area (``0xE001`` by default), and the
stylesheet template receives ``codepoints`` (name plus uppercase hex value) and
``options`` (``fontName``, ``fontPath``).
"""

from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from fontTools.fontBuilder import FontBuilder
from fontTools.pens.recordingPen import RecordingPen
from fontTools.pens.t2CharStringPen import T2CharStringPen
from fontTools.pens.transformPen import TransformPen
from fontTools.svgLib.path import SVGPath
from fontTools.ttLib import TTFont

from ..config import IconfontOptions
from ..errors import TransformError
from ..pipeline import Pipeline, SourceFile, write_bytes
from ..registry import TaskContext
from .handlebars import render_template_file

logger = logging.getLogger(__name__)

_LENGTH_RE = re.compile(r"^\s*([0-9.]+)")


@dataclass(frozen=True)
class Glyph:
    name: str
    codepoint: int
    svg: bytes

    @property
    def hex(self) -> str:
        return format(self.codepoint, "X")


def assign_codepoints(files: Sequence[SourceFile], start: int, *, task: str = "iconfont") -> List[Glyph]:
    by_name: Dict[str, SourceFile] = {}
    for f in files:
        name = f.path.stem
        if name in by_name:
            raise TransformError(
                f"Duplicate icon name '{name}': {by_name[name].path} and {f.path}",
                task=task,
                stage="codepoints",
            )
        by_name[name] = f
    return [
        Glyph(name=name, codepoint=start + index, svg=by_name[name].contents)
        for index, name in enumerate(sorted(by_name))
    ]


def _view_box(svg: bytes) -> tuple[float, float, float, float]:
    root = ET.fromstring(svg)
    box = root.get("viewBox")
    if box:
        minx, miny, width, height = (float(v) for v in box.replace(",", " ").split())
        return minx, miny, width, height
    width = _LENGTH_RE.match(root.get("width", "") or "")
    height = _LENGTH_RE.match(root.get("height", "") or "")
    if not width or not height:
        raise ValueError("SVG needs a viewBox or width and height")
    return 0.0, 0.0, float(width.group(1)), float(height.group(1))


def _draw_glyph(glyph: Glyph, units_per_em: int, task: str):
    try:
        minx, miny, width, height = _view_box(glyph.svg)
        scale = units_per_em / height
        advance = round(width * scale)
        recording = RecordingPen()
        transform = (scale, 0, 0, -scale, -minx * scale, (miny + height) * scale)
        SVGPath.fromstring(glyph.svg).draw(TransformPen(recording, transform))
    except Exception as exc:
        raise TransformError(f"{glyph.name}.svg: {exc}", task=task, stage="svg") from exc
    pen = T2CharStringPen(advance, None)
    recording.replay(pen)
    return advance, pen.getCharString()


def build_font(glyphs: Sequence[Glyph], font_name: str, units_per_em: int, *, task: str = "iconfont") -> TTFont:
    """Return a CFF-flavoured OpenType font holding ``glyphs``."""

    fb = FontBuilder(units_per_em, isTTF=False)
    fb.setupGlyphOrder([".notdef"] + [g.name for g in glyphs])
    fb.setupCharacterMap({g.codepoint: g.name for g in glyphs})

    notdef = T2CharStringPen(units_per_em, None)
    char_strings = {".notdef": notdef.getCharString()}
    advances = {".notdef": units_per_em}
    for glyph in glyphs:
        advances[glyph.name], char_strings[glyph.name] = _draw_glyph(glyph, units_per_em, task)

    ps_name = re.sub(r"[^A-Za-z0-9-]", "", font_name) or "Icons"
    fb.setupCFF(ps_name, {"FullName": font_name}, char_strings, {})
    metrics = {}
    for name, char_string in char_strings.items():
        bounds = char_string.calcBounds(None)
        metrics[name] = (advances[name], bounds[0] if bounds else 0)
    fb.setupHorizontalMetrics(metrics)
    fb.setupHorizontalHeader(ascent=units_per_em, descent=0)
    fb.setupNameTable({"familyName": font_name, "styleName": "Regular", "psName": ps_name})
    fb.setupOS2(sTypoAscender=units_per_em, sTypoDescender=0, usWinAscent=units_per_em, usWinDescent=0)
    fb.setupPost()
    return fb.font


def font_files(font: TTFont, font_name: str, formats: Sequence[str]) -> Dict[str, bytes]:
    """Serialize ``font`` once per requested format."""

    buf = io.BytesIO()
    font.save(buf)
    otf = buf.getvalue()
    out: Dict[str, bytes] = {}
    for fmt in formats:
        if fmt == "otf":
            out[f"{font_name}.otf"] = otf
        elif fmt == "woff":
            woff = TTFont(io.BytesIO(otf))
            woff.flavor = "woff"
            woff_buf = io.BytesIO()
            woff.save(woff_buf)
            out[f"{font_name}.woff"] = woff_buf.getvalue()
    return out


def make_action(name: str, options: IconfontOptions):
    def iconfont(ctx: TaskContext) -> None:
        """Generate the icon font and its stylesheet."""

        root: Path = ctx.config.root
        files = Pipeline(name, options.src, root=root).process()
        if not files:
            logger.info("No icons found, skipping icon font")
            return
        glyphs = assign_codepoints(files, options.start_codepoint, task=name)
        font = build_font(glyphs, options.font_name, options.units_per_em, task=name)
        dest = root / options.dest
        for filename, data in font_files(font, options.font_name, options.formats).items():
            write_bytes(dest / filename, data)
            logger.debug("Wrote %s", dest / filename)

        context = {
            "codepoints": [{"name": g.name, "codepoint": g.hex} for g in glyphs],
            "options": {"fontName": options.font_name, "fontPath": options.font_path},
        }
        stylesheet = render_template_file(root / options.template, context, task=name)
        write_bytes(root / options.stylesheet_dest / "icons.scss", stylesheet.encode("utf-8"))

    return iconfont
