"""Mission control: a searchable overview of every visible tab on the canvas."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .layout_model import GROUP_ORDER, GroupId, SplitMode
from .lifecycle import TabLifecycle
from .state import CanvasState
from .store import CanvasStore
from .tab_model import CanvasTab

__all__ = ["TabEntry", "MissionControlSummary", "filter_tabs", "MissionControl"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TabEntry:
    tab: CanvasTab
    group_id: GroupId
    is_active: bool = False


@dataclass(frozen=True, slots=True)
class MissionControlSummary:
    total: int
    dirty: int
    per_group: dict[GroupId, int] = field(default_factory=dict)


def _matches(tab: CanvasTab, needle: str) -> bool:
    file_path = tab.content.data.get("file_path")
    haystacks = [tab.title, tab.content_type]
    if isinstance(file_path, str):
        haystacks.append(file_path)
    return any(needle in value.lower() for value in haystacks)


def filter_tabs(
    state: CanvasState,
    query: str = "",
    groups: Iterable[GroupId] | None = None,
) -> list[TabEntry]:
    """List visible tabs of ``groups`` whose title, file path or type contains ``query``."""

    selected = set(GROUP_ORDER) if groups is None else {GroupId(group) for group in groups}
    needle = query.strip().lower()
    active = state.active_tab()
    entries: list[TabEntry] = []
    for group_id, group in state.iter_groups():
        if group_id not in selected:
            continue
        for tab in group.visible_tabs():
            if needle and not _matches(tab, needle):
                continue
            entries.append(TabEntry(tab=tab, group_id=group_id, is_active=active is not None and active.id == tab.id))
    return entries


class MissionControl:
    """Controller behind the overview: search state, selection and closing."""

    def __init__(self, store: CanvasStore, lifecycle: TabLifecycle | None = None) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self.query = ""
        self.selected_groups: set[GroupId] = set(GROUP_ORDER)

    @property
    def is_open(self) -> bool:
        return self._store.state.is_mission_control_open

    @property
    def has_multiple_groups(self) -> bool:
        return self._store.state.split_mode is not SplitMode.NONE

    def open(self) -> None:
        self._store.open_mission_control()

    def close(self) -> None:
        """Close the overview and reset the search and pane filters."""

        self._store.close_mission_control()
        self.query = ""
        self.selected_groups = set(GROUP_ORDER)

    def toggle_group_filter(self, group_id: GroupId) -> None:
        group_id = GroupId(group_id)
        if group_id in self.selected_groups:
            self.selected_groups.discard(group_id)
        else:
            self.selected_groups.add(group_id)

    def entries(self) -> list[TabEntry]:
        return filter_tabs(self._store.state, self.query, self.selected_groups)

    def summary(self) -> MissionControlSummary:
        state = self._store.state
        per_group = {group_id: group.visible_count() for group_id, group in state.iter_groups()}
        dirty = sum(1 for _, group in state.iter_groups() for tab in group.visible_tabs() if tab.is_dirty)
        return MissionControlSummary(total=sum(per_group.values()), dirty=dirty, per_group=per_group)

    def select(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        if not self._store.switch_to_tab(tab_id, group_id):
            return False
        self.close()
        return True

    async def close_entry(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        if self._lifecycle is not None:
            return await self._lifecycle.request_close(tab_id, group_id)
        return self._store.close_tab(tab_id, group_id)

    def toggle_pin(self, tab_id: str, group_id: GroupId | None = None) -> None:
        self._store.toggle_pin_tab(tab_id, group_id)

    def merge_all(self) -> None:
        """Fold every pane into one and leave the overview."""

        LOGGER.debug("Merging all panes from mission control")
        self._store.set_split_mode(SplitMode.NONE)
        self.close()
