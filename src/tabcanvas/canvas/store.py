"""The canvas engine: every mutation of the tab/pane aggregate goes through here."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

from ..events import (
    ActiveTabChanged,
    CanvasExpandRequested,
    EventBus,
    LayoutChanged,
    TabDestroyed,
)
from ..utils.paths import same_path_key
from .drop_zones import landing_group, legal_drop_positions
from .layout_model import (
    GROUP_ORDER,
    AnchorPosition,
    DropPosition,
    GroupId,
    SplitMode,
    clamp_anchor_size,
    clamp_split_ratio,
    is_addressable,
)
from .state import CanvasState, TabLocation
from .tab_model import (
    DEDUPE_KEY,
    SESSION_KEY,
    CanvasTab,
    ClosedTabRecord,
    EditorGroupState,
    PanelContent,
    TabState,
    _utcnow,
    create_tab,
)
from .topology import apply_split_mode, collapse

__all__ = ["CanvasStore", "StateListener", "DEFAULT_PERSISTENT_TYPES", "DEFAULT_MAX_CLOSED_TABS"]

LOGGER = logging.getLogger(__name__)

DEFAULT_PERSISTENT_TYPES: tuple[str, ...] = ("terminal",)
DEFAULT_MAX_CLOSED_TABS = 10

StateListener = Callable[[CanvasState, CanvasState], None]


class CanvasStore:
    """Owns the single :class:`CanvasState` of one canvas.

    Every public mutator derives a new immutable state and commits it in one
    assignment, so listeners observe the pre- or the post-state only.
    Operations addressing unknown tabs or panes are logged and ignored.
    """

    def __init__(
        self,
        *,
        event_bus: EventBus | None = None,
        persistent_types: Iterable[str] = DEFAULT_PERSISTENT_TYPES,
        max_closed_tabs: int = DEFAULT_MAX_CLOSED_TABS,
        clock: Callable[[], datetime] | None = None,
        initial_state: CanvasState | None = None,
    ) -> None:
        self._bus = event_bus
        self._persistent_types = frozenset(persistent_types)
        self._max_closed_tabs = max(0, int(max_closed_tabs))
        self._clock = clock or _utcnow
        self._initial = initial_state or CanvasState()
        self._state = self._initial
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def state(self) -> CanvasState:
        return self._state

    @property
    def event_bus(self) -> EventBus | None:
        return self._bus

    @property
    def max_closed_tabs(self) -> int:
        return self._max_closed_tabs

    def is_persistent(self, tab: CanvasTab) -> bool:
        return tab.content_type in self._persistent_types

    def group(self, group_id: GroupId) -> EditorGroupState:
        return self._state.group(group_id)

    def visible_tabs(self, group_id: GroupId | None = None) -> tuple[CanvasTab, ...]:
        group = self._state.active_group() if group_id is None else self._state.group(group_id)
        return group.visible_tabs()

    def active_tab(self) -> CanvasTab | None:
        return self._state.active_tab()

    def all_tabs(self) -> list[CanvasTab]:
        return self._state.all_tabs()

    def find_tab_by_metadata(self, criteria: Mapping[str, Any]) -> TabLocation | None:
        """Return the first tab (hidden ones included) whose metadata matches every key.

        The ``duplicate_check_key`` entry compares as a path, ignoring case
        and separator spelling.
        """

        if not criteria:
            return None
        for group_id, group in self._state.iter_groups():
            for tab in group.tabs:
                if _metadata_matches(tab.content.metadata, criteria):
                    return TabLocation(tab=tab, group_id=group_id)
        return None

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly description of the current state."""

        state = self._state
        return {
            "split_mode": state.split_mode.value,
            "active_group_id": state.active_group_id.value,
            "layout": {
                "split_ratio": state.layout.split_ratio,
                "split_ratio2": state.layout.split_ratio2,
                "anchor_position": state.layout.anchor_position.value,
                "anchor_size": state.layout.anchor_size,
                "is_maximized": state.layout.is_maximized,
            },
            "groups": {
                group_id.value: {
                    "active_tab_id": group.active_tab_id,
                    "tabs": [_tab_summary(tab) for tab in group.tabs],
                }
                for group_id, group in state.iter_groups()
            },
            "closed_tabs": [record.tab.id for record in state.closed_tabs],
            "is_mission_control_open": state.is_mission_control_open,
            "dragging_tab_id": state.dragging_tab_id,
        }

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: StateListener) -> None:
        """Call ``listener(new_state, old_state)`` after every committed change."""

        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Tab operations
    # ------------------------------------------------------------------
    def add_tab(
        self,
        content: PanelContent,
        state: TabState = TabState.PREVIEW,
        group_id: GroupId | None = None,
        *,
        split_mode: SplitMode | None = None,
    ) -> CanvasTab:
        """Insert a new tab at the front of the resolved pane and focus it.

        A preview tab replaces the pane's current visible preview, which is
        discarded without entering the closed-tab history. ``split_mode``
        splits a single-pane canvas in the same step; the tab then defaults
        to the secondary pane.
        """

        working = self._state
        if split_mode is not None and working.split_mode is SplitMode.NONE:
            requested = SplitMode(split_mode)
            if requested is not SplitMode.NONE:
                working = working.with_layout(split_mode=requested)
                if group_id is None:
                    group_id = GroupId.SECONDARY
        target = self._resolve_target(working, group_id)
        group = working.group(target)
        tab_state = TabState(state)

        destroyed: list[tuple[CanvasTab, GroupId]] = []
        if tab_state is TabState.PREVIEW:
            preview_index = group.preview_index()
            if preview_index >= 0:
                previous = group.tabs[preview_index]
                destroyed.append((previous, target))
                group = group.without(previous.id)

        tab = create_tab(content, tab_state, now=self._clock())
        group = group.inserted(tab, 0).activate(tab.id)
        working = replace(working.with_group(target, group), active_group_id=target)
        LOGGER.debug("Added %s tab %s (%s) to %s", tab_state.value, tab.id, tab.content_type, target.value)
        self._commit(collapse(working), destroyed=destroyed, revealed=tab.id)
        return tab

    def close_tab(
        self,
        tab_id: str,
        group_id: GroupId | None = None,
        *,
        force_remove: bool = False,
    ) -> bool:
        """Close a tab; persistent-session tabs are hidden unless ``force_remove``.

        Returns ``True`` when the state changed.
        """

        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        working, destroyed = self._close_one(self._state, location, force_remove)
        if working is self._state:
            return False
        self._commit(collapse(working), destroyed=destroyed)
        return True

    def close_all_tabs(self, group_id: GroupId | None = None) -> int:
        """Close every tab of one pane, or of all panes, with the close_tab rules.

        Returns the number of tabs that were hidden or removed.
        """

        if group_id is None:
            targets: Sequence[GroupId] = GROUP_ORDER
        else:
            target = _coerce_group(group_id)
            if target is None:
                return 0
            targets = (target,)

        working = self._state
        destroyed: list[tuple[CanvasTab, GroupId]] = []
        count = 0
        for target in targets:
            for tab in working.group(target).tabs:
                if tab.is_hidden:
                    continue
                working, removed = self._close_one(working, TabLocation(tab, target), False)
                destroyed.extend(removed)
                count += 1
        if count:
            LOGGER.debug("Closed %d tab(s) in %s", count, ", ".join(t.value for t in targets))
            self._commit(collapse(working), destroyed=destroyed)
        return count

    def close_persistent_session(self, session_id: str) -> bool:
        """Force-remove the persistent-session tab bound to ``session_id``."""

        location = self.find_tab_by_metadata({SESSION_KEY: session_id})
        if location is None or not self.is_persistent(location.tab):
            LOGGER.debug("No persistent session tab for %s", session_id)
            return False
        return self.close_tab(location.tab.id, location.group_id, force_remove=True)

    def switch_to_tab(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        """Show, stamp and focus a tab, making its pane the active pane."""

        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        group = self._state.group(location.group_id)
        tab = location.tab.touched(self._clock())
        if tab.is_hidden:
            tab = replace(tab, is_hidden=False)
            if tab.is_preview and group.preview_index() >= 0:
                tab = replace(tab, state=TabState.ACTIVE)
        group = group.replace_tab(tab).activate(tab.id)
        working = replace(
            self._state.with_group(location.group_id, group),
            active_group_id=location.group_id,
        )
        self._commit(working)
        return True

    def update_tab_content(self, tab_id: str, content: PanelContent, group_id: GroupId | None = None) -> bool:
        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        tab = replace(location.tab, content=content, title=content.title or location.tab.title)
        self._commit(self._replace_tab(location.group_id, tab))
        return True

    def set_tab_dirty(self, tab_id: str, is_dirty: bool, group_id: GroupId | None = None) -> bool:
        location = self._locate(tab_id, group_id)
        if location is None or location.tab.is_dirty == bool(is_dirty):
            return False
        tab = replace(location.tab, is_dirty=bool(is_dirty))
        self._commit(self._replace_tab(location.group_id, tab))
        return True

    def promote_tab(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        """Turn a preview tab into an active one; other states are left alone."""

        location = self._locate(tab_id, group_id)
        if location is None or not location.tab.is_preview:
            return False
        tab = replace(location.tab, state=TabState.ACTIVE)
        self._commit(self._replace_tab(location.group_id, tab))
        return True

    def toggle_pin_tab(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        new_state = TabState.ACTIVE if location.tab.is_pinned else TabState.PINNED
        tab = replace(location.tab, state=new_state)
        self._commit(self._replace_tab(location.group_id, tab))
        return True

    def hide_tab(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        location = self._locate(tab_id, group_id)
        if location is None or location.tab.is_hidden:
            return False
        working = self._hide(self._state, location)
        self._commit(collapse(working))
        return True

    def show_tab(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        """Make a hidden tab visible again without focusing it."""

        location = self._locate(tab_id, group_id)
        if location is None or not location.tab.is_hidden:
            return False
        group = self._state.group(location.group_id)
        tab = replace(location.tab, is_hidden=False)
        if tab.is_preview and group.preview_index() >= 0:
            tab = replace(tab, state=TabState.ACTIVE)
        group = group.replace_tab(tab).repaired()
        self._commit(self._state.with_group(location.group_id, group))
        return True

    def reopen_closed_tab(self) -> CanvasTab | None:
        """Restore the most recently closed tab into its former pane and slot."""

        state = self._state
        if not state.closed_tabs:
            LOGGER.debug("Closed-tab history is empty")
            return None
        record, remaining = state.closed_tabs[0], state.closed_tabs[1:]
        target = self._resolve_target(state, record.group_id)
        group = state.group(target)
        tab = replace(record.tab, is_hidden=False, last_accessed_at=self._clock())
        if tab.is_preview and group.preview_index() >= 0:
            tab = replace(tab, state=TabState.ACTIVE)
        index = min(record.index, len(group.tabs))
        group = group.inserted(tab, index).activate(tab.id)
        working = replace(
            state.with_group(target, group),
            active_group_id=target,
            closed_tabs=remaining,
        )
        LOGGER.debug("Reopened tab %s in %s at %d", tab.id, target.value, index)
        self._commit(collapse(working), revealed=tab.id)
        return tab

    # ------------------------------------------------------------------
    # Drag operations
    # ------------------------------------------------------------------
    def start_drag(self, tab_id: str, group_id: GroupId | None = None) -> bool:
        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        self._commit(
            replace(self._state, dragging_tab_id=tab_id, dragging_from_group_id=location.group_id)
        )
        return True

    def end_drag(self) -> None:
        if self._state.dragging_tab_id is None and self._state.dragging_from_group_id is None:
            return
        self._commit(replace(self._state, dragging_tab_id=None, dragging_from_group_id=None))

    def reorder_tab(self, tab_id: str, group_id: GroupId, new_index: int) -> bool:
        """Move a tab to ``new_index`` inside its own pane."""

        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        group = self._state.group(location.group_id)
        current = group.index_of(tab_id)
        remaining = group.without(tab_id)
        new_index = max(0, min(int(new_index), len(remaining.tabs)))
        if new_index == current:
            return False
        group = replace(group, tabs=remaining.inserted(location.tab, new_index).tabs)
        self._commit(self._state.with_group(location.group_id, group))
        return True

    def move_tab_to_group(
        self,
        tab_id: str,
        from_group_id: GroupId,
        to_group_id: GroupId,
        index: int = 0,
    ) -> bool:
        """Move a tab into another pane, splitting the canvas when needed."""

        location = self._locate(tab_id, from_group_id)
        destination = _coerce_group(to_group_id)
        if location is None or destination is None:
            return False
        if location.tab.is_hidden:
            LOGGER.debug("Cannot move hidden tab %s; show it first", tab_id)
            return False
        if destination is location.group_id:
            return self.reorder_tab(tab_id, destination, index)

        working = self._detach(self._state, location)
        mode = working.split_mode
        if not is_addressable(destination, mode):
            grown = SplitMode.GRID if destination is GroupId.TERTIARY else SplitMode.HORIZONTAL
            working = working.with_layout(split_mode=grown)
        working = self._land(working, location.tab, destination, index)
        self._commit(collapse(working))
        return True

    def handle_drop(
        self,
        tab_id: str,
        from_group_id: GroupId,
        to_group_id: GroupId,
        position: DropPosition = DropPosition.CENTER,
    ) -> bool:
        """Apply a drag-and-drop gesture; illegal drops are ignored.

        Returns ``True`` when the drop was applied.
        """

        try:
            position = DropPosition(position)
        except ValueError:
            LOGGER.debug("Unknown drop position %r", position)
            return False
        legal = legal_drop_positions(self._state, tab_id, from_group_id, to_group_id)
        if position not in legal:
            LOGGER.debug(
                "Rejected drop of %s from %s onto %s/%s",
                tab_id,
                from_group_id,
                to_group_id,
                position.value,
            )
            return False

        source = GroupId(from_group_id)
        target = GroupId(to_group_id)
        tab = self._state.group(source).find(tab_id)
        if tab is None:  # pragma: no cover - legal_drop_positions already checked
            return False
        working = self._detach(self._state, TabLocation(tab=tab, group_id=source))
        mode = working.split_mode
        P, S, T = GroupId.PRIMARY, GroupId.SECONDARY, GroupId.TERTIARY

        if mode is SplitMode.NONE:
            existing = working.primary
            lone = EditorGroupState(tabs=(tab,), active_tab_id=tab.id)
            new_mode = (
                SplitMode.HORIZONTAL
                if position in (DropPosition.LEFT, DropPosition.RIGHT)
                else SplitMode.VERTICAL
            )
            if position in (DropPosition.LEFT, DropPosition.TOP):
                working = working.with_groups(primary=lone, secondary=existing)
                landed = P
            else:
                working = working.with_groups(primary=existing, secondary=lone)
                landed = S
            working = replace(working, active_group_id=landed).with_layout(split_mode=new_mode)
        elif mode is SplitMode.HORIZONTAL and position is DropPosition.BOTTOM:
            lone = EditorGroupState(tabs=(tab,), active_tab_id=tab.id)
            working = replace(working.with_group(T, lone), active_group_id=T).with_layout(
                split_mode=SplitMode.GRID
            )
        elif mode is SplitMode.HORIZONTAL and position is DropPosition.TOP:
            merged_tabs = working.primary.tabs + working.secondary.tabs
            merged_active = working.active_tab()
            bottom = EditorGroupState(
                tabs=merged_tabs,
                active_tab_id=merged_active.id if merged_active is not None else None,
            ).single_preview().repaired()
            lone = EditorGroupState(tabs=(tab,), active_tab_id=tab.id)
            working = replace(
                working.with_groups(primary=lone, secondary=EditorGroupState(), tertiary=bottom),
                active_group_id=P,
            ).with_layout(split_mode=SplitMode.GRID)
        else:
            landed = landing_group(mode, position, target) or target
            working = self._land(working, tab, landed, 0)

        working = replace(working, dragging_tab_id=None, dragging_from_group_id=None)
        LOGGER.debug("Dropped %s onto %s/%s (%s)", tab_id, target.value, position.value, mode.value)
        self._commit(collapse(working))
        return True

    # ------------------------------------------------------------------
    # Layout operations
    # ------------------------------------------------------------------
    def set_split_mode(self, mode: SplitMode) -> None:
        self._commit(apply_split_mode(self._state, SplitMode(mode)))

    def set_split_ratio(self, ratio: float) -> None:
        self._commit(self._state.with_layout(split_ratio=clamp_split_ratio(ratio)))

    def set_split_ratio2(self, ratio: float) -> None:
        self._commit(self._state.with_layout(split_ratio2=clamp_split_ratio(ratio)))

    def set_anchor_position(self, position: AnchorPosition) -> None:
        self._commit(self._state.with_layout(anchor_position=AnchorPosition(position)))

    def set_anchor_size(self, size: float) -> None:
        self._commit(self._state.with_layout(anchor_size=clamp_anchor_size(size)))

    def toggle_maximize(self) -> None:
        self._commit(self._state.with_layout(is_maximized=not self._state.layout.is_maximized))

    def set_active_group(self, group_id: GroupId) -> bool:
        target = _coerce_group(group_id)
        if target is None or not is_addressable(target, self._state.split_mode):
            LOGGER.debug("Cannot focus pane %s under %s", group_id, self._state.split_mode.value)
            return False
        self._commit(replace(self._state, active_group_id=target))
        return True

    # ------------------------------------------------------------------
    # Mission control
    # ------------------------------------------------------------------
    def open_mission_control(self) -> None:
        self._commit(replace(self._state, is_mission_control_open=True))

    def close_mission_control(self) -> None:
        self._commit(replace(self._state, is_mission_control_open=False))

    def toggle_mission_control(self) -> None:
        self._commit(
            replace(self._state, is_mission_control_open=not self._state.is_mission_control_open)
        )

    def reset(self) -> None:
        """Drop every tab and return to the initial layout."""

        destroyed = [(tab, group_id) for group_id, group in self._state.iter_groups() for tab in group.tabs]
        self._commit(self._initial, destroyed=destroyed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _locate(self, tab_id: str, group_id: GroupId | None) -> TabLocation | None:
        location: TabLocation | None = None
        if group_id is None:
            location = self._state.locate(tab_id)
        else:
            group = _coerce_group(group_id)
            tab = self._state.group(group).find(tab_id) if group is not None else None
            if tab is not None:
                location = TabLocation(tab=tab, group_id=group)
        if location is None:
            LOGGER.debug("Unknown tab %s in %s", tab_id, group_id or "any pane")
        return location

    def _resolve_target(self, state: CanvasState, group_id: GroupId | str | None) -> GroupId:
        mode = state.split_mode
        target = state.active_group_id if group_id is None else _coerce_group(group_id)
        if target is None:
            target = state.active_group_id
        if mode is SplitMode.NONE:
            return GroupId.PRIMARY
        if mode is not SplitMode.GRID and target is GroupId.TERTIARY:
            return GroupId.PRIMARY if state.active_group_id is GroupId.PRIMARY else GroupId.SECONDARY
        return target

    def _replace_tab(self, group_id: GroupId, tab: CanvasTab) -> CanvasState:
        return self._state.with_group(group_id, self._state.group(group_id).replace_tab(tab))

    def _hide(self, state: CanvasState, location: TabLocation) -> CanvasState:
        group = state.group(location.group_id)
        prefer = group.visible_index_at(group.index_of(location.tab.id))
        group = group.replace_tab(replace(location.tab, is_hidden=True))
        if group.active_tab_id == location.tab.id:
            group = group.activate(None)
        return state.with_group(location.group_id, group.repaired(prefer))

    def _detach(self, state: CanvasState, location: TabLocation) -> CanvasState:
        group = state.group(location.group_id)
        prefer = group.visible_index_at(group.index_of(location.tab.id))
        group = group.without(location.tab.id)
        if group.active_tab_id == location.tab.id:
            group = group.activate(None)
        return state.with_group(location.group_id, group.repaired(prefer))

    def _land(self, state: CanvasState, tab: CanvasTab, group_id: GroupId, index: int) -> CanvasState:
        group = state.group(group_id)
        if tab.is_preview and group.preview_index() >= 0:
            tab = replace(tab, state=TabState.ACTIVE)
        group = group.inserted(tab, index).activate(tab.id)
        return replace(state.with_group(group_id, group), active_group_id=group_id)

    def _close_one(
        self,
        state: CanvasState,
        location: TabLocation,
        force_remove: bool,
    ) -> tuple[CanvasState, list[tuple[CanvasTab, GroupId]]]:
        tab = location.tab
        persistent = self.is_persistent(tab)
        if persistent and not force_remove:
            if tab.is_hidden:
                return state, []
            LOGGER.debug("Hiding persistent tab %s", tab.id)
            return self._hide(state, location), []

        closed_tabs = state.closed_tabs
        if not persistent and self._max_closed_tabs:
            record = ClosedTabRecord(
                tab=tab,
                closed_at=self._clock(),
                group_id=location.group_id,
                index=state.group(location.group_id).index_of(tab.id),
            )
            closed_tabs = ((record,) + closed_tabs)[: self._max_closed_tabs]
        state = replace(self._detach(state, location), closed_tabs=closed_tabs)
        LOGGER.debug("Removed tab %s from %s", tab.id, location.group_id.value)
        return state, [(tab, location.group_id)]

    def _commit(
        self,
        new_state: CanvasState,
        *,
        destroyed: Sequence[tuple[CanvasTab, GroupId]] = (),
        revealed: str | None = None,
    ) -> None:
        old_state = self._state
        if new_state == old_state and not destroyed:
            return
        self._state = new_state

        for listener in list(self._listeners):
            try:
                listener(new_state, old_state)
            except Exception:
                LOGGER.exception("Canvas state listener %r failed", listener)

        bus = self._bus
        if bus is None:
            return
        for tab, group_id in destroyed:
            bus.publish(
                TabDestroyed(
                    tab_id=tab.id,
                    group_id=group_id.value,
                    content_type=tab.content_type,
                    metadata=dict(tab.content.metadata),
                )
            )
        if new_state.split_mode is not old_state.split_mode:
            bus.publish(
                LayoutChanged(split_mode=new_state.split_mode.value, previous=old_state.split_mode.value)
            )
        new_active = new_state.active_tab()
        old_active = old_state.active_tab()
        new_key = (new_state.active_group_id, new_active.id if new_active else None)
        old_key = (old_state.active_group_id, old_active.id if old_active else None)
        if new_key != old_key:
            bus.publish(ActiveTabChanged(group_id=new_key[0].value, tab_id=new_key[1]))
        if revealed is not None:
            location = new_state.locate(revealed)
            if location is not None:
                bus.publish(CanvasExpandRequested(group_id=location.group_id.value, tab_id=revealed))


def _coerce_group(value: GroupId | str | None) -> GroupId | None:
    if value is None:
        return None
    try:
        return GroupId(value)
    except ValueError:
        LOGGER.debug("Unknown pane %r", value)
        return None


def _metadata_matches(metadata: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    for key, expected in criteria.items():
        if key not in metadata:
            return False
        actual = metadata[key]
        if key == DEDUPE_KEY:
            if not same_path_key(actual, expected):
                return False
        elif actual != expected:
            return False
    return True


def _tab_summary(tab: CanvasTab) -> dict[str, Any]:
    return {
        "id": tab.id,
        "title": tab.title,
        "type": tab.content_type,
        "state": tab.state.value,
        "is_dirty": tab.is_dirty,
        "is_hidden": tab.is_hidden,
    }
