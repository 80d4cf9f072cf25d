"""Root aggregate of the canvas: three panes, layout, history and drag state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterator

from .layout_model import GROUP_ORDER, GroupId, LayoutState, SplitMode
from .tab_model import CanvasTab, ClosedTabRecord, EditorGroupState

__all__ = ["CanvasState", "TabLocation"]


@dataclass(frozen=True, slots=True)
class TabLocation:
    """A tab together with the pane currently holding it."""

    tab: CanvasTab
    group_id: GroupId


@dataclass(frozen=True, slots=True)
class CanvasState:
    """Immutable snapshot of the whole canvas.

    The store never edits an instance in place; each operation derives a new
    value and commits it in one assignment.
    """

    primary: EditorGroupState = field(default_factory=EditorGroupState)
    secondary: EditorGroupState = field(default_factory=EditorGroupState)
    tertiary: EditorGroupState = field(default_factory=EditorGroupState)
    active_group_id: GroupId = GroupId.PRIMARY
    layout: LayoutState = field(default_factory=LayoutState)
    is_mission_control_open: bool = False
    dragging_tab_id: str | None = None
    dragging_from_group_id: GroupId | None = None
    closed_tabs: tuple[ClosedTabRecord, ...] = ()

    @property
    def split_mode(self) -> SplitMode:
        return self.layout.split_mode

    def group(self, group_id: GroupId) -> EditorGroupState:
        return getattr(self, GroupId(group_id).value)

    def with_group(self, group_id: GroupId, group: EditorGroupState) -> CanvasState:
        return replace(self, **{GroupId(group_id).value: group})

    def with_groups(self, **groups: EditorGroupState) -> CanvasState:
        return replace(self, **groups)

    def with_layout(self, **changes: Any) -> CanvasState:
        return replace(self, layout=replace(self.layout, **changes))

    def iter_groups(self) -> Iterator[tuple[GroupId, EditorGroupState]]:
        for group_id in GROUP_ORDER:
            yield group_id, self.group(group_id)

    def visible_counts(self) -> dict[GroupId, int]:
        return {group_id: group.visible_count() for group_id, group in self.iter_groups()}

    def locate(self, tab_id: str) -> TabLocation | None:
        for group_id, group in self.iter_groups():
            tab = group.find(tab_id)
            if tab is not None:
                return TabLocation(tab=tab, group_id=group_id)
        return None

    def active_group(self) -> EditorGroupState:
        return self.group(self.active_group_id)

    def active_tab(self) -> CanvasTab | None:
        return self.active_group().active_tab()

    def all_tabs(self) -> list[CanvasTab]:
        return [tab for _, group in self.iter_groups() for tab in group.tabs]
