"""Linear file pipelines: glob selection, ordered stages, output write."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Iterable, List, Sequence

from .errors import BuildIOError, EstaticoError, TransformError
from .globs import GlobSet, as_globset

logger = logging.getLogger(__name__)


@dataclass
class SourceFile:
    """A file travelling through a pipeline."""

    path: Path
    base: Path
    contents: bytes
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def relative(self) -> PurePosixPath:
        return PurePosixPath(self.path.relative_to(self.base).as_posix())

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    def with_text(self, text: str) -> "SourceFile":
        return replace(self, contents=text.encode("utf-8"))

    def renamed(self, relative: str | PurePosixPath) -> "SourceFile":
        """Return a copy whose output path is ``relative`` below the same base."""

        return replace(self, path=self.base / Path(str(relative)))


Stage = Callable[[List[SourceFile]], List[SourceFile]]


def each(func: Callable[[SourceFile], SourceFile | None]) -> Stage:
    """Turn a per-file function into a stage; returning ``None`` drops the file."""

    def stage(files: List[SourceFile]) -> List[SourceFile]:
        out = []
        for f in files:
            result = func(f)
            if result is not None:
                out.append(result)
        return out

    stage.__name__ = getattr(func, "__name__", "each")
    return stage


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise BuildIOError(path, exc) from exc


def write_bytes(path: Path, contents: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(contents)
    except OSError as exc:
        raise BuildIOError(path, exc) from exc


class Pipeline:
    """Select files with a :class:`GlobSet` and push them through stages.

    ``base`` fixes the directory output paths are computed against; without
    it each file uses the static prefix of the pattern that matched it.
    """

    def __init__(
        self,
        task: str,
        src: GlobSet | Sequence[str] | str,
        *,
        root: str | Path = ".",
        base: str | Path | None = None,
    ) -> None:
        self.task = task
        self.src = as_globset(src)
        self.root = Path(root)
        self.base = None if base is None else self.root / base
        self.stages: list[tuple[str, Stage]] = []

    def pipe(self, stage: Stage, name: str | None = None) -> "Pipeline":
        self.stages.append((name or getattr(stage, "__name__", "stage"), stage))
        return self

    def select(self) -> List[SourceFile]:
        files = []
        for path in self.src.iter_files(self.root):
            relative = path.relative_to(self.root).as_posix()
            base = self.base if self.base is not None else self.root / self.src.base_for(relative)
            contents = read_bytes(path)
            files.append(SourceFile(path=path, base=base, contents=contents))
        return files

    def process(self, files: List[SourceFile] | None = None) -> List[SourceFile]:
        """Run all stages in declared order and return the resulting files."""

        if files is None:
            files = self.select()
        for name, stage in self.stages:
            try:
                files = stage(files)
            except EstaticoError:
                raise
            except Exception as exc:
                raise TransformError(str(exc), task=self.task, stage=name) from exc
        return files

    def run(self, dest: str | Path) -> List[Path]:
        """Process the selection and write every resulting file below ``dest``."""

        return write_files(self.process(), self.root / dest)


def write_files(files: Iterable[SourceFile], dest: str | Path) -> List[Path]:
    dest = Path(dest)
    written = []
    for f in files:
        target = dest / Path(str(f.relative))
        write_bytes(target, f.contents)
        logger.debug("Wrote %s", target)
        written.append(target)
    return written


__all__ = ["Pipeline", "SourceFile", "Stage", "each", "read_bytes", "write_bytes", "write_files"]
