"""Generate resized versions of images listed in per-directory config files.

A config file (``imageversions.config.yml``) next to the images maps image
paths, relative to the config file, to the versions to produce::

    teaser.jpg:
      - {width: 300, height: 200}
      - {width: 150}

A version with both dimensions is cropped to fit around the center; a version
with a single dimension keeps the aspect ratio. Output files are named
``<stem>_<width>x<height><ext>`` and mirror the source layout below ``srcBase``.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import yaml
from PIL import Image, ImageOps

from ..config import ImageversionsOptions
from ..errors import TransformError
from ..globs import GlobSet, expand_braces
from ..pipeline import read_bytes, write_bytes
from ..registry import TaskContext

logger = logging.getLogger(__name__)

_FORMATS = {".jpg": "JPEG", ".jpeg": "JPEG", ".png": "PNG", ".gif": "GIF"}


@dataclass(frozen=True)
class Version:
    width: Optional[int] = None
    height: Optional[int] = None

    def target_size(self, size: tuple[int, int]) -> tuple[int, int]:
        w, h = size
        if self.width and self.height:
            return self.width, self.height
        if self.width:
            return self.width, max(1, round(h * self.width / w))
        if self.height:
            return max(1, round(w * self.height / h)), self.height
        raise ValueError("an image version needs a width or a height")


def parse_versions(path: Path, *, task: str = "imageversions") -> Dict[str, List[Version]]:
    try:
        data = yaml.safe_load(read_bytes(path).decode("utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError("expected a mapping of image names to versions")
        parsed: Dict[str, List[Version]] = {}
        for image, versions in data.items():
            parsed[str(image)] = [
                Version(width=v.get("width"), height=v.get("height")) for v in versions or []
            ]
        return parsed
    except (ValueError, AttributeError, TypeError, yaml.YAMLError) as exc:
        raise TransformError(f"{path}: {exc}", task=task, stage="config") from exc


def resize(contents: bytes, version: Version, suffix: str) -> tuple[bytes, tuple[int, int]]:
    image = Image.open(io.BytesIO(contents))
    size = version.target_size(image.size)
    if version.width and version.height:
        resized = ImageOps.fit(image, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
    else:
        resized = image.resize(size, Image.Resampling.LANCZOS)
    fmt = _FORMATS.get(suffix.lower(), image.format or "PNG")
    if fmt == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    buf = io.BytesIO()
    if fmt == "JPEG":
        resized.save(buf, format=fmt, quality=90)
    else:
        resized.save(buf, format=fmt)
    return buf.getvalue(), size


def _config_files(root: Path, sources: List[str], name: str) -> Iterator[Path]:
    for src in sources:
        base = (root / src).resolve()
        if base.is_file() and base.name == name:
            yield base
        elif base.is_dir():
            yield from sorted(base.rglob(name))


def generate_versions(options: ImageversionsOptions, root: Path, *, task: str = "imageversions") -> List[Path]:
    """Write every configured image version and return the written paths."""

    src_base = (root / options.src_base).resolve()
    dest = root / options.dest
    image_filter = GlobSet([f"**/*.{ext}" for ext in expand_braces(options.file_extensions)])
    written: List[Path] = []
    for config_path in _config_files(root, options.src, options.config_file_name):
        for image_name, versions in parse_versions(config_path, task=task).items():
            image_path = config_path.parent / image_name
            relative = image_path.relative_to(src_base)
            if not image_filter.match(relative.as_posix()):
                logger.debug("Skipping %s (extension filtered)", image_path)
                continue
            contents = read_bytes(image_path)
            for version in versions:
                try:
                    data, (w, h) = resize(contents, version, image_path.suffix)
                except Exception as exc:
                    raise TransformError(f"{image_path}: {exc}", task=task, stage="resize") from exc
                target = dest / relative.parent / f"{image_path.stem}_{w}x{h}{image_path.suffix}"
                write_bytes(target, data)
                written.append(target)
    return written


def make_action(name: str, options: ImageversionsOptions):
    def imageversions(ctx: TaskContext) -> None:
        """Generate resized image versions."""

        written = generate_versions(options, ctx.config.root, task=name)
        logger.info("Generated %d image version(s)", len(written))

    return imageversions
