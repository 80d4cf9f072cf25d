"""Tests for topology collapse and split-mode redistribution."""

from __future__ import annotations

from dataclasses import replace

import pytest

from tabcanvas.canvas.layout_model import GroupId, LayoutState, SplitMode, addressable_groups
from tabcanvas.canvas.state import CanvasState
from tabcanvas.canvas.tab_model import CanvasTab, EditorGroupState, PanelContent, TabState, create_tab
from tabcanvas.canvas.topology import apply_split_mode, collapse

P, S, T = GroupId.PRIMARY, GroupId.SECONDARY, GroupId.TERTIARY


def _tab(title: str, *, hidden: bool = False, state: TabState = TabState.ACTIVE) -> CanvasTab:
    tab = create_tab(PanelContent(type="code-editor", title=title), state, tab_id=title)
    return replace(tab, is_hidden=hidden)


def _group(*tabs: CanvasTab) -> EditorGroupState:
    return EditorGroupState(tabs=tabs).repaired()


def _state(mode: SplitMode, p=(), s=(), t=(), active: GroupId = P) -> CanvasState:
    return CanvasState(
        primary=_group(*p),
        secondary=_group(*s),
        tertiary=_group(*t),
        active_group_id=active,
        layout=LayoutState(split_mode=mode),
    )


def _titles(state: CanvasState, group_id: GroupId) -> list[str]:
    return [tab.title for tab in state.group(group_id).tabs]


def _assert_invariants(state: CanvasState) -> None:
    addressable = addressable_groups(state.split_mode)
    any_visible = any(group.visible_count() for _, group in state.iter_groups())
    for group_id, group in state.iter_groups():
        previews = [tab.id for tab in group.visible_tabs() if tab.is_preview]
        assert len(previews) <= 1, f"{group_id} shows several previews: {previews}"
        if group_id not in addressable:
            assert not group.tabs, f"{group_id} should be empty under {state.split_mode}"
        elif any_visible:
            assert group.visible_count() > 0, f"{group_id} is visibly empty"
        active = group.active_tab_id
        assert active is None or group.active_tab() is not None
    if not any_visible:
        assert state.split_mode is SplitMode.NONE


class TestCollapse:
    def test_grid_with_empty_tertiary_becomes_horizontal(self) -> None:
        state = _state(SplitMode.GRID, p=[_tab("a")], s=[_tab("b")], active=T)

        result = collapse(state)

        assert result.split_mode is SplitMode.HORIZONTAL
        assert _titles(result, P) == ["a"] and _titles(result, S) == ["b"]
        assert result.active_group_id is P
        _assert_invariants(result)

    def test_grid_with_only_secondary_left_becomes_none(self) -> None:
        state = _state(SplitMode.GRID, s=[_tab("b"), _tab("c")], active=S)

        result = collapse(state)

        assert result.split_mode is SplitMode.NONE
        assert _titles(result, P) == ["b", "c"]
        assert result.active_group_id is P
        _assert_invariants(result)

    def test_grid_with_only_tertiary_left_moves_it_to_primary(self) -> None:
        state = _state(SplitMode.GRID, t=[_tab("c")], active=T)

        result = collapse(state)

        assert result.split_mode is SplitMode.NONE
        assert _titles(result, P) == ["c"]
        _assert_invariants(result)

    def test_grid_with_empty_primary_shifts_panes(self) -> None:
        state = _state(SplitMode.GRID, s=[_tab("b")], t=[_tab("c")], active=T)

        result = collapse(state)

        assert result.split_mode is SplitMode.VERTICAL
        assert _titles(result, P) == ["b"]
        assert _titles(result, S) == ["c"]
        assert result.active_group_id is S
        _assert_invariants(result)

    def test_grid_with_empty_secondary_moves_tertiary_up(self) -> None:
        state = _state(SplitMode.GRID, p=[_tab("a")], t=[_tab("c")], active=T)

        result = collapse(state)

        assert result.split_mode is SplitMode.VERTICAL
        assert _titles(result, P) == ["a"]
        assert _titles(result, S) == ["c"]
        assert result.active_group_id is S
        _assert_invariants(result)

    @pytest.mark.parametrize("mode", [SplitMode.HORIZONTAL, SplitMode.VERTICAL])
    def test_two_pane_with_empty_primary_promotes_secondary(self, mode: SplitMode) -> None:
        state = _state(mode, s=[_tab("b")], active=S)

        result = collapse(state)

        assert result.split_mode is SplitMode.NONE
        assert _titles(result, P) == ["b"]
        assert result.active_group_id is P

    def test_hidden_tabs_travel_with_the_absorbing_pane(self) -> None:
        terminal = _tab("term", hidden=True)
        state = _state(SplitMode.HORIZONTAL, p=[_tab("a")], s=[terminal])

        result = collapse(state)

        assert result.split_mode is SplitMode.NONE
        assert _titles(result, P) == ["a", "term"]
        assert result.primary.active_tab_id == "a"
        _assert_invariants(result)

    def test_empty_canvas_retargets_active_group_to_primary(self) -> None:
        state = _state(SplitMode.HORIZONTAL, active=S)

        result = collapse(state)

        assert result.split_mode is SplitMode.NONE
        assert result.active_group_id is P

    def test_full_grid_is_untouched(self) -> None:
        state = _state(SplitMode.GRID, p=[_tab("a")], s=[_tab("b")], t=[_tab("c")], active=S)

        assert collapse(state) is state

    @pytest.mark.parametrize(
        "state",
        [
            _state(SplitMode.GRID, p=[_tab("a")], t=[_tab("c")]),
            _state(SplitMode.GRID, s=[_tab("b")], t=[_tab("c")], active=S),
            _state(SplitMode.GRID, p=[_tab("a")], s=[_tab("b")]),
            _state(SplitMode.HORIZONTAL, s=[_tab("b")]),
            _state(SplitMode.VERTICAL, p=[_tab("a")], s=[_tab("t", hidden=True)]),
            _state(SplitMode.NONE),
        ],
    )
    def test_collapse_is_idempotent(self, state: CanvasState) -> None:
        once = collapse(state)

        assert collapse(once) == once
        _assert_invariants(once)


class TestApplySplitMode:
    def test_split_moves_active_tab_into_new_pane(self) -> None:
        a, b, c = _tab("a"), _tab("b"), _tab("c")
        state = replace(_state(SplitMode.NONE, p=[a, b, c]), primary=EditorGroupState((a, b, c), "b"))

        result = apply_split_mode(state, SplitMode.HORIZONTAL)

        assert result.split_mode is SplitMode.HORIZONTAL
        assert _titles(result, P) == ["a", "c"]
        assert _titles(result, S) == ["b"]
        assert result.primary.active_tab_id == "c"
        assert result.active_group_id is S
        _assert_invariants(result)

    def test_split_with_single_tab_collapses_back(self) -> None:
        state = _state(SplitMode.NONE, p=[_tab("a")])

        result = apply_split_mode(state, SplitMode.VERTICAL)

        assert result.split_mode is SplitMode.NONE
        assert _titles(result, P) == ["a"]

    def test_none_merges_every_pane_into_primary(self) -> None:
        state = _state(SplitMode.GRID, p=[_tab("a")], s=[_tab("b")], t=[_tab("c")], active=S)

        result = apply_split_mode(state, SplitMode.NONE)

        assert result.split_mode is SplitMode.NONE
        assert _titles(result, P) == ["a", "b", "c"]
        assert result.primary.active_tab_id == "b"
        assert result.active_group_id is P
        _assert_invariants(result)

    def test_grid_to_two_pane_folds_tertiary_into_secondary(self) -> None:
        state = _state(SplitMode.GRID, p=[_tab("a")], s=[_tab("b")], t=[_tab("c")])

        result = apply_split_mode(state, SplitMode.VERTICAL)

        assert result.split_mode is SplitMode.VERTICAL
        assert _titles(result, S) == ["b", "c"]
        assert not result.tertiary.tabs

    def test_merging_panes_keeps_only_the_first_preview(self) -> None:
        state = _state(
            SplitMode.HORIZONTAL,
            p=[_tab("y"), _tab("a", state=TabState.PREVIEW)],
            s=[_tab("x", state=TabState.PREVIEW)],
        )

        result = apply_split_mode(state, SplitMode.NONE)

        states = {tab.title: tab.state for tab in result.primary.tabs}
        assert states == {"y": TabState.ACTIVE, "a": TabState.PREVIEW, "x": TabState.ACTIVE}
        _assert_invariants(result)

    def test_folding_tertiary_demotes_its_preview(self) -> None:
        state = _state(
            SplitMode.GRID,
            p=[_tab("a")],
            s=[_tab("b", state=TabState.PREVIEW)],
            t=[_tab("c", state=TabState.PREVIEW), _tab("d", state=TabState.PREVIEW, hidden=True)],
        )

        result = apply_split_mode(state, SplitMode.VERTICAL)

        assert [tab.state for tab in result.secondary.tabs] == [
            TabState.PREVIEW,
            TabState.ACTIVE,
            TabState.PREVIEW,
        ]
        _assert_invariants(result)

    def test_horizontal_to_vertical_keeps_panes(self) -> None:
        state = _state(SplitMode.HORIZONTAL, p=[_tab("a")], s=[_tab("b")])

        result = apply_split_mode(state, SplitMode.VERTICAL)

        assert result.split_mode is SplitMode.VERTICAL
        assert _titles(result, P) == ["a"] and _titles(result, S) == ["b"]

    def test_same_mode_is_a_no_op(self) -> None:
        state = _state(SplitMode.NONE, p=[_tab("a")])

        assert apply_split_mode(state, SplitMode.NONE) is state
