"""Split topology, pane identifiers and layout clamping helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "GroupId",
    "GROUP_ORDER",
    "SplitMode",
    "AnchorPosition",
    "DropPosition",
    "LayoutState",
    "MIN_SPLIT_RATIO",
    "MAX_SPLIT_RATIO",
    "MIN_ANCHOR_SIZE",
    "MAX_ANCHOR_SIZE",
    "clamp_split_ratio",
    "clamp_anchor_size",
    "addressable_groups",
    "is_addressable",
]

MIN_SPLIT_RATIO = 0.2
MAX_SPLIT_RATIO = 0.8
MIN_ANCHOR_SIZE = 100
MAX_ANCHOR_SIZE = 500
DEFAULT_ANCHOR_SIZE = 250


class GroupId(str, Enum):
    """The three fixed panes of the canvas, in priority order."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"


GROUP_ORDER: tuple[GroupId, ...] = (GroupId.PRIMARY, GroupId.SECONDARY, GroupId.TERTIARY)


class SplitMode(str, Enum):
    """Arrangement of the panes.

    ``grid`` is the "T" layout: primary top-left, secondary top-right and
    tertiary spanning the bottom row.
    """

    NONE = "none"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    GRID = "grid"


class AnchorPosition(str, Enum):
    BOTTOM = "bottom"
    RIGHT = "right"
    HIDDEN = "hidden"


class DropPosition(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"
    CENTER = "center"


_ADDRESSABLE: dict[SplitMode, tuple[GroupId, ...]] = {
    SplitMode.NONE: (GroupId.PRIMARY,),
    SplitMode.HORIZONTAL: (GroupId.PRIMARY, GroupId.SECONDARY),
    SplitMode.VERTICAL: (GroupId.PRIMARY, GroupId.SECONDARY),
    SplitMode.GRID: GROUP_ORDER,
}


def addressable_groups(mode: SplitMode) -> tuple[GroupId, ...]:
    """Return the panes that are on screen under ``mode``."""

    return _ADDRESSABLE[SplitMode(mode)]


def is_addressable(group_id: GroupId, mode: SplitMode) -> bool:
    return GroupId(group_id) in addressable_groups(mode)


def clamp_split_ratio(ratio: float) -> float:
    return max(MIN_SPLIT_RATIO, min(MAX_SPLIT_RATIO, float(ratio)))


def clamp_anchor_size(size: float) -> int:
    return int(max(MIN_ANCHOR_SIZE, min(MAX_ANCHOR_SIZE, round(size))))


@dataclass(frozen=True, slots=True)
class LayoutState:
    """Split topology plus the anchor (auxiliary panel) geometry.

    ``split_ratio`` drives the primary division (left/right, top/bottom, or
    top row/bottom row in grid); ``split_ratio2`` only applies to the grid's
    top row.
    """

    split_mode: SplitMode = SplitMode.NONE
    split_ratio: float = 0.5
    split_ratio2: float = 0.5
    anchor_position: AnchorPosition = AnchorPosition.HIDDEN
    anchor_size: int = DEFAULT_ANCHOR_SIZE
    is_maximized: bool = False

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "split_mode", SplitMode(self.split_mode))
        object.__setattr__(self, "anchor_position", AnchorPosition(self.anchor_position))
        object.__setattr__(self, "split_ratio", clamp_split_ratio(self.split_ratio))
        object.__setattr__(self, "split_ratio2", clamp_split_ratio(self.split_ratio2))
        object.__setattr__(self, "anchor_size", clamp_anchor_size(self.anchor_size))

    @property
    def addressable(self) -> tuple[GroupId, ...]:
        return addressable_groups(self.split_mode)
