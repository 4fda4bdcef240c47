"""Include/exclude path patterns used for file selection and watch matching.

Patterns are relative to a root directory and use ``/`` separators. Supported
syntax: ``*`` (within one path segment), ``**`` (any number of segments), ``?``
and brace alternatives such as ``{,pages/}`` or ``{jpg,png}``. A pattern
prefixed with ``!`` excludes; exclusion is applied after inclusion.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .errors import ConfigurationError

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives into separate patterns."""

    match = _BRACE_RE.search(pattern)
    if match is None:
        if "{" in pattern or "}" in pattern:
            raise ConfigurationError(f"Unbalanced braces in pattern: {pattern!r}")
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        for rest in expand_braces(head + option.strip() + tail):
            if rest not in expanded:
                expanded.append(rest)
    return expanded


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    out = ["^"]
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(c))
        i += 1
    out.append("$")
    return re.compile("".join(out))


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


def _static_prefix(pattern: str) -> str:
    """Return the leading directory part of ``pattern`` without wildcards."""

    parts = pattern.split("/")
    prefix: list[str] = []
    for part in parts[:-1]:
        if any(ch in part for ch in "*?[{"):
            break
        prefix.append(part)
    return "/".join(prefix)


@dataclass(frozen=True, init=False)
class GlobSet:
    """Ordered include/exclude patterns."""

    patterns: tuple[str, ...]

    def __init__(self, patterns: Iterable[str] | str) -> None:
        if isinstance(patterns, str):
            patterns = [patterns]
        normalized = tuple(_normalize(p) for p in patterns if p)
        if not normalized:
            raise ConfigurationError("A glob set needs at least one pattern")
        object.__setattr__(self, "patterns", normalized)
        # Expand eagerly so malformed patterns fail at configuration time.
        _ = (self.includes, self.excludes)

    @property
    def includes(self) -> list[str]:
        return [
            expanded
            for p in self.patterns
            if not p.startswith("!")
            for expanded in expand_braces(p)
        ]

    @property
    def excludes(self) -> list[str]:
        return [
            expanded
            for p in self.patterns
            if p.startswith("!")
            for expanded in expand_braces(_normalize(p[1:]))
        ]

    def match(self, relative: str) -> bool:
        """Return ``True`` if the relative path is selected by this set."""

        relative = _normalize(str(relative))
        if not any(_compile(p).match(relative) for p in self.includes):
            return False
        return not any(_compile(p).match(relative) for p in self.excludes)

    def base_for(self, relative: str) -> str:
        """Return the static prefix of the first include pattern matching ``relative``.

        The prefix is taken before brace expansion, so ``source/{,pages/}*.html``
        has the base ``source`` for every file it selects.
        """

        relative = _normalize(str(relative))
        for p in self.patterns:
            if p.startswith("!"):
                continue
            if any(_compile(e).match(relative) for e in expand_braces(p)):
                return _static_prefix(p)
        return ""

    def iter_files(self, root: str | Path) -> Iterator[Path]:
        """Yield matching files under ``root`` in include-pattern order."""

        root = Path(root)
        seen: set[str] = set()
        for pattern in self.includes:
            start = root / _static_prefix(pattern)
            if not start.is_dir():
                continue
            regex = _compile(pattern)
            candidates: list[str] = []
            for dirpath, dirnames, filenames in os.walk(start):
                dirnames.sort()
                for filename in sorted(filenames):
                    path = Path(dirpath, filename)
                    candidates.append(path.relative_to(root).as_posix())
            for relative in candidates:
                if relative in seen or not regex.match(relative):
                    continue
                if any(_compile(p).match(relative) for p in self.excludes):
                    continue
                seen.add(relative)
                yield root / relative

    def files(self, root: str | Path) -> list[Path]:
        return list(self.iter_files(root))


def as_globset(value: GlobSet | Sequence[str] | str) -> GlobSet:
    if isinstance(value, GlobSet):
        return value
    return GlobSet(value)


__all__ = ["GlobSet", "as_globset", "expand_braces"]
