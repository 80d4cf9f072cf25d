"""Tab-strip overflow measurement.

A read-only projection over the visible tabs of one pane: given the strip
width it decides which prefix of tabs is shown inline and which spill into
the overflow menu. Nothing here feeds back into the canvas state.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Sequence

from .tab_model import CanvasTab

__all__ = [
    "MIN_TAB_WIDTH",
    "MAX_TAB_WIDTH",
    "estimate_tab_width",
    "TabWidthCache",
    "OverflowLayout",
    "TabOverflowCalculator",
]

LOGGER = logging.getLogger(__name__)

MIN_TAB_WIDTH = 80
MAX_TAB_WIDTH = 180
TAB_PADDING = 16
TAB_GAP = 4
CLOSE_BUTTON_WIDTH = 16
WIDE_GLYPH_WIDTH = 12
NARROW_GLYPH_WIDTH = 7

CLOSE_ALL_BUTTON_WIDTH = 28
ACTIONS_GAP = 4
OVERFLOW_BUTTON_WIDTH = 28
PICKER_BUTTON_WIDTH = 50
ACTIONS_MARGIN = 8


def _glyph_width(char: str) -> int:
    if unicodedata.east_asian_width(char) in ("W", "F"):
        return WIDE_GLYPH_WIDTH
    return NARROW_GLYPH_WIDTH


def estimate_tab_width(title: str) -> int:
    """Best guess of a tab's rendered width before it has been measured."""

    text_width = sum(_glyph_width(char) for char in title)
    width = TAB_PADDING + text_width + TAB_GAP + CLOSE_BUTTON_WIDTH
    return max(MIN_TAB_WIDTH, min(MAX_TAB_WIDTH, width))


class TabWidthCache:
    """Measured tab widths keyed by tab id and title; advisory only."""

    def __init__(self) -> None:
        self._widths: dict[str, int] = {}

    @staticmethod
    def key(tab: CanvasTab) -> str:
        return f"{tab.id}:{tab.title}"

    def record(self, tab: CanvasTab, width: float) -> None:
        if width <= 0:
            return
        self._widths[self.key(tab)] = int(round(width))

    def width_for(self, tab: CanvasTab) -> int:
        measured = self._widths.get(self.key(tab))
        return measured if measured is not None else estimate_tab_width(tab.title)

    def prune(self, tabs: Sequence[CanvasTab]) -> None:
        """Forget widths of tabs that are gone or were renamed."""

        live = {self.key(tab) for tab in tabs}
        for key in [key for key in self._widths if key not in live]:
            del self._widths[key]

    def clear(self) -> None:
        self._widths.clear()

    def __len__(self) -> int:
        return len(self._widths)


@dataclass(frozen=True, slots=True)
class OverflowLayout:
    visible: tuple[CanvasTab, ...] = ()
    overflow: tuple[CanvasTab, ...] = ()
    show_overflow_button: bool = False

    @property
    def overflow_count(self) -> int:
        return len(self.overflow)


@dataclass(slots=True)
class TabOverflowCalculator:
    """Splits a tab list into the inline prefix and the overflow remainder.

    ``has_tab_picker`` reserves the overflow button even without overflow so
    the global tab picker stays reachable.
    """

    has_close_all: bool = True
    has_tab_picker: bool = False
    cache: TabWidthCache = field(default_factory=TabWidthCache)

    def actions_width(self, *, with_overflow_button: bool) -> int:
        width = (CLOSE_ALL_BUTTON_WIDTH if self.has_close_all else 0) + ACTIONS_GAP
        if with_overflow_button:
            width += PICKER_BUTTON_WIDTH if self.has_tab_picker else OVERFLOW_BUTTON_WIDTH
        return width

    def compute(self, tabs: Sequence[CanvasTab], container_width: float) -> OverflowLayout:
        tabs = tuple(tabs)
        if not tabs:
            return OverflowLayout(show_overflow_button=self.has_tab_picker)

        widths = [self.cache.width_for(tab) for tab in tabs]
        total = sum(widths)
        base = self.actions_width(with_overflow_button=False)
        if not self.has_tab_picker and total <= container_width - base - ACTIONS_MARGIN:
            return OverflowLayout(visible=tabs)

        available = container_width - self.actions_width(with_overflow_button=True) - ACTIONS_MARGIN
        used = 0
        count = 0
        for width in widths:
            if used + width > available:
                break
            used += width
            count += 1
        count = max(1, count)
        visible, overflow = tabs[:count], tabs[count:]
        LOGGER.debug("Tab strip %spx: %d inline, %d overflow", container_width, len(visible), len(overflow))
        return OverflowLayout(
            visible=visible,
            overflow=overflow,
            show_overflow_button=self.has_tab_picker or bool(overflow),
        )
