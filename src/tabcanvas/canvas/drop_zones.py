"""Which drop positions a dragged tab may use, and the drop gesture glue."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .layout_model import DropPosition, GroupId, SplitMode
from .state import CanvasState

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .store import CanvasStore

__all__ = ["legal_drop_positions", "landing_group", "DropZoneNegotiator"]

LOGGER = logging.getLogger(__name__)

_EDGES = frozenset({DropPosition.LEFT, DropPosition.RIGHT, DropPosition.TOP, DropPosition.BOTTOM})
_NOTHING: frozenset[DropPosition] = frozenset()


def landing_group(mode: SplitMode, position: DropPosition, target: GroupId) -> GroupId | None:
    """Return the pane a tab lands in when dropped inside the current topology.

    ``None`` means the drop restructures the topology instead (edge drops on a
    single pane, ``top``/``bottom`` on a horizontal split).
    """

    position = DropPosition(position)
    if position is DropPosition.CENTER:
        return GroupId(target)
    if mode is SplitMode.HORIZONTAL:
        if position is DropPosition.LEFT:
            return GroupId.PRIMARY
        if position is DropPosition.RIGHT:
            return GroupId.SECONDARY
        return None
    if mode is SplitMode.VERTICAL:
        if position is DropPosition.TOP:
            return GroupId.PRIMARY
        if position is DropPosition.BOTTOM:
            return GroupId.SECONDARY
    return None


def legal_drop_positions(
    state: CanvasState,
    tab_id: str,
    source: GroupId,
    target: GroupId,
) -> frozenset[DropPosition]:
    """Return the positions at which ``tab_id`` may be dropped over ``target``.

    Drops that would leave the topology unchanged, or that would empty the
    pane the tab comes from only to refill it, are excluded.
    """

    try:
        source = GroupId(source)
        target = GroupId(target)
    except ValueError:
        return _NOTHING
    source_group = state.group(source)
    tab = source_group.find(tab_id)
    if tab is None or tab.is_hidden:
        return _NOTHING
    mode = state.split_mode
    if target not in state.layout.addressable:
        return _NOTHING
    sole_tab = source_group.visible_count() == 1

    if mode is SplitMode.NONE:
        if target is not GroupId.PRIMARY or sole_tab:
            return _NOTHING
        return _EDGES

    if mode is SplitMode.GRID:
        positions: set[DropPosition] = set()
    elif mode is SplitMode.HORIZONTAL:
        positions = {DropPosition.TOP, DropPosition.BOTTOM, DropPosition.LEFT, DropPosition.RIGHT}
    else:
        positions = {DropPosition.TOP, DropPosition.BOTTOM}

    for position in list(positions):
        landing = landing_group(mode, position, target)
        if landing is source and sole_tab:
            positions.discard(position)
    if target is not source:
        positions.add(DropPosition.CENTER)
    return frozenset(positions)


class DropZoneNegotiator:
    """Bridges drag gestures from the tab strip to :meth:`CanvasStore.handle_drop`."""

    def __init__(self, store: CanvasStore) -> None:
        self._store = store

    @property
    def is_dragging(self) -> bool:
        return self._store.state.dragging_tab_id is not None

    def begin(self, tab_id: str, group_id: GroupId | None = None) -> None:
        self._store.start_drag(tab_id, group_id)

    def cancel(self) -> None:
        self._store.end_drag()

    def zones_for(self, target: GroupId) -> frozenset[DropPosition]:
        """Legal positions over ``target`` for the tab currently being dragged."""

        state = self._store.state
        if state.dragging_tab_id is None or state.dragging_from_group_id is None:
            return _NOTHING
        return legal_drop_positions(state, state.dragging_tab_id, state.dragging_from_group_id, target)

    def drop(self, target: GroupId, position: DropPosition) -> bool:
        """Complete the drag over ``target``; returns whether the layout changed."""

        state = self._store.state
        tab_id = state.dragging_tab_id
        source = state.dragging_from_group_id
        if tab_id is None or source is None:
            LOGGER.debug("Drop on %s ignored: no drag in progress", target)
            return False
        try:
            return self._store.handle_drop(tab_id, source, target, position)
        finally:
            self._store.end_drag()
