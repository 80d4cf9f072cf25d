"""Topology collapse and split-mode redistribution.

Both entry points are pure functions over :class:`CanvasState`. Pane moves are
expressed as a *plan* mapping each destination pane to the ordered source
panes whose tabs it receives; every source appears exactly once, so hidden
tabs (persistent sessions) always travel with the pane that absorbs them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Mapping, Sequence

from .layout_model import GROUP_ORDER, GroupId, SplitMode, addressable_groups
from .state import CanvasState
from .tab_model import EditorGroupState

__all__ = ["collapse", "apply_split_mode", "rebuild"]

LOGGER = logging.getLogger(__name__)

P = GroupId.PRIMARY
S = GroupId.SECONDARY
T = GroupId.TERTIARY

Plan = Mapping[GroupId, Sequence[GroupId]]


def rebuild(state: CanvasState, plan: Plan, mode: SplitMode) -> CanvasState:
    """Redistribute pane contents according to ``plan`` and switch to ``mode``."""

    new_groups: dict[str, EditorGroupState] = {}
    for target in GROUP_ORDER:
        sources = tuple(plan.get(target, ()))
        tabs = tuple(tab for source in sources for tab in state.group(source).tabs)
        active = _pick_active(state, sources)
        group = EditorGroupState(tabs=tabs, active_tab_id=active)
        new_groups[target.value] = group.single_preview().repaired()

    # The active pane follows its tabs; an empty one is retargeted by collapse().
    active_group = state.active_group_id
    if state.group(active_group).visible_count() > 0:
        moved_to = {source: target for target, sources in plan.items() for source in sources}
        active_group = moved_to.get(active_group, active_group)
    return replace(
        state.with_groups(**new_groups),
        layout=replace(state.layout, split_mode=mode),
        active_group_id=active_group,
    )


def collapse(state: CanvasState) -> CanvasState:
    """Eliminate visibly empty addressable panes by downgrading the topology.

    Idempotent: applying it to its own result is a no-op.
    """

    before = state.split_mode
    state = _collapse_panes(state)
    state = _retarget_active_group(state)
    if state.split_mode is not before:
        LOGGER.debug("Topology collapsed: %s -> %s", before.value, state.split_mode.value)
    return state


def apply_split_mode(state: CanvasState, mode: SplitMode) -> CanvasState:
    """Switch to ``mode`` while keeping every addressable pane populated.

    Panes that stop being addressable hand their tabs to the remaining
    panes. Panes that become addressable receive the active tab of a pane
    holding at least two visible tabs; when no such donor exists the
    topology collapses back.
    """

    mode = SplitMode(mode)
    current = state.split_mode
    if mode is current:
        return state

    if mode is SplitMode.NONE:
        state = rebuild(state, {P: (P, S, T)}, mode)
    elif mode in (SplitMode.HORIZONTAL, SplitMode.VERTICAL) and current is SplitMode.GRID:
        state = rebuild(state, {P: (P,), S: (S, T)}, mode)
    else:
        state = replace(state, layout=replace(state.layout, split_mode=mode))

    for target in addressable_groups(mode):
        if state.group(target).visible_count() > 0:
            continue
        donor = _pick_donor(state, exclude=target)
        if donor is None:
            break
        state = _move_active_tab(state, donor, target)
    return collapse(state)


# ----------------------------------------------------------------------
# Internal helpers
# ----------------------------------------------------------------------
def _collapse_panes(state: CanvasState) -> CanvasState:
    counts = state.visible_counts()
    p, s, t = counts[P], counts[S], counts[T]
    mode = state.split_mode

    if mode is SplitMode.GRID:
        if t == 0:
            state = rebuild(state, {P: (P,), S: (S, T)}, SplitMode.HORIZONTAL)
            return _collapse_two_pane(state)
        if p == 0 and s == 0:
            return rebuild(state, {P: (T, P, S)}, SplitMode.NONE)
        if p == 0:
            # Secondary (top-right) and tertiary (bottom) stack vertically.
            return rebuild(state, {P: (S, P), S: (T,)}, SplitMode.VERTICAL)
        if s == 0:
            return rebuild(state, {P: (P,), S: (T, S)}, SplitMode.VERTICAL)
        return state

    if mode in (SplitMode.HORIZONTAL, SplitMode.VERTICAL):
        if state.tertiary.tabs:
            state = rebuild(state, {P: (P,), S: (S, T)}, mode)
        return _collapse_two_pane(state)

    if state.secondary.tabs or state.tertiary.tabs:
        return rebuild(state, {P: (P, S, T)}, SplitMode.NONE)
    return state


def _collapse_two_pane(state: CanvasState) -> CanvasState:
    p = state.primary.visible_count()
    s = state.secondary.visible_count()
    if s == 0:
        return rebuild(state, {P: (P, S)}, SplitMode.NONE)
    if p == 0:
        return rebuild(state, {P: (S, P)}, SplitMode.NONE)
    return state


def _retarget_active_group(state: CanvasState) -> CanvasState:
    addressable = addressable_groups(state.split_mode)
    current = state.active_group_id
    if current in addressable and state.group(current).visible_count() > 0:
        return state
    for group_id in GROUP_ORDER:
        if group_id in addressable and state.group(group_id).visible_count() > 0:
            return replace(state, active_group_id=group_id)
    if current is P:
        return state
    return replace(state, active_group_id=P)


def _pick_active(state: CanvasState, sources: Sequence[GroupId]) -> str | None:
    if state.active_group_id in sources:
        tab = state.group(state.active_group_id).active_tab()
        if tab is not None:
            return tab.id
    for source in sources:
        tab = state.group(source).active_tab()
        if tab is not None:
            return tab.id
    return None


def _pick_donor(state: CanvasState, *, exclude: GroupId) -> GroupId | None:
    addressable = addressable_groups(state.split_mode)
    candidates = [state.active_group_id] + [g for g in GROUP_ORDER if g != state.active_group_id]
    for group_id in candidates:
        if group_id == exclude or group_id not in addressable:
            continue
        group = state.group(group_id)
        if group.visible_count() >= 2 and group.active_tab() is not None:
            return group_id
    return None


def _move_active_tab(state: CanvasState, donor: GroupId, target: GroupId) -> CanvasState:
    source = state.group(donor)
    tab = source.active_tab()
    if tab is None:  # pragma: no cover - donors always have an active tab
        return state
    index = source.index_of(tab.id)
    prefer = source.visible_index_at(index)
    remaining = source.without(tab.id).activate(None).repaired(prefer)
    destination = state.group(target).inserted(tab, 0).activate(tab.id)
    state = state.with_group(donor, remaining).with_group(target, destination)
    return replace(state, active_group_id=target)
