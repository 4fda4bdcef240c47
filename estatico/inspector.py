"""Module inspector: highlight elements carrying module/variant classes.

The inspector cycles through ``OFF -> ACTIVE -> ARIA -> OFF`` on each
:meth:`Inspector.toggle`. In ``ACTIVE`` every element with ``mod_*`` or
``var_*`` classes gets the highlight class and a data attribute holding a
readable label (``mod_teaser_large`` -> ``teaser large``). ``ARIA`` is not
implemented beyond clearing the highlights, exactly like ``OFF``.

:func:`plan` is the pure part (snapshot in, instructions out); :class:`Inspector`
applies instructions to any objects exposing ``class_list`` and ``dataset``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Protocol, Sequence

logger = logging.getLogger(__name__)

HIGHLIGHT_CLASS = "estatico-bookmarklet"
DATA_ATTRIBUTE = "bookmarkletlog"
PREFIXES = ("mod_", "var_")


class InspectorMode(enum.Enum):
    OFF = 0
    ACTIVE = 1
    ARIA = 2


class Node(Protocol):
    class_list: List[str]
    dataset: Dict[str, str]


@dataclass
class Element:
    """Minimal DOM element snapshot."""

    tag: str = "div"
    class_list: List[str] = field(default_factory=list)
    dataset: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Highlight:
    index: int
    labels: tuple[str, ...]

    @property
    def value(self) -> str:
        return ", ".join(self.labels)


def module_labels(class_list: Sequence[str]) -> List[str]:
    """Return readable labels for module/variant classes, last class first."""

    labels = []
    for name in reversed(class_list):
        if name.startswith(PREFIXES):
            labels.append(name[4:].replace("_", " "))
    return labels


def plan(elements: Sequence[Node]) -> List[Highlight]:
    """Return highlight instructions for ``elements``."""

    out = []
    for index, element in enumerate(elements):
        labels = module_labels(element.class_list)
        if labels:
            out.append(Highlight(index, tuple(labels)))
    return out


class Inspector:
    """Toggle highlighting on a list of elements."""

    def __init__(self) -> None:
        self.mode = InspectorMode.OFF

    def toggle(self, elements: Sequence[Node]) -> InspectorMode:
        if self.mode is InspectorMode.OFF:
            self.mode = InspectorMode.ACTIVE
            self.show(elements)
        elif self.mode is InspectorMode.ACTIVE:
            self.mode = InspectorMode.ARIA
            self.hide(elements)
        else:
            self.mode = InspectorMode.OFF
            self.hide(elements)
        return self.mode

    def show(self, elements: Sequence[Node]) -> List[Highlight]:
        highlights = plan(elements)
        for h in highlights:
            element = elements[h.index]
            logger.info("%r %s", element, h.value)
            if HIGHLIGHT_CLASS not in element.class_list:
                element.class_list.append(HIGHLIGHT_CLASS)
            element.dataset[DATA_ATTRIBUTE] = h.value
        return highlights

    def hide(self, elements: Sequence[Node]) -> None:
        for element in elements:
            while HIGHLIGHT_CLASS in element.class_list:
                element.class_list.remove(HIGHLIGHT_CLASS)
            element.dataset.pop(DATA_ATTRIBUTE, None)


__all__ = [
    "DATA_ATTRIBUTE",
    "Element",
    "HIGHLIGHT_CLASS",
    "Highlight",
    "Inspector",
    "InspectorMode",
    "module_labels",
    "plan",
]
