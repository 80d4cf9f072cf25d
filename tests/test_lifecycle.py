"""Tests for :mod:`tabcanvas.canvas.lifecycle`."""

from __future__ import annotations

from typing import Callable, Sequence

import pytest

from tabcanvas.canvas.layout_model import GroupId, SplitMode
from tabcanvas.canvas.lifecycle import TabLifecycle
from tabcanvas.canvas.store import CanvasStore
from tabcanvas.canvas.tab_model import SESSION_KEY, PanelContent, TabState
from tabcanvas.events import (
    CanvasExpandRequested,
    EventBus,
    OpenTabRequested,
    PersistentSessionDestroyed,
)

ContentFactory = Callable[..., PanelContent]


@pytest.fixture
def lifecycle(store: CanvasStore) -> TabLifecycle:
    return TabLifecycle(store)


class _Prompt:
    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.calls: list[list[str]] = []

    def __call__(self, titles: Sequence[str]) -> bool:
        self.calls.append(list(titles))
        return self.answer


def test_preview_open_replaces_previous_preview(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    lifecycle.open_preview(make_content("a.py", key="/repo/a.py"))
    tab = lifecycle.open_preview(make_content("b.py", key="/repo/b.py"))

    assert [t.id for t in lifecycle.store.all_tabs()] == [tab.id]
    assert tab.state is TabState.PREVIEW


def test_open_active_focuses_and_promotes_duplicate(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    preview = lifecycle.open_preview(make_content("a.py", key="/Repo/a.py"))
    lifecycle.open_active(make_content("other", key="/repo/other.py"))

    tab = lifecycle.open_active(make_content("a.py", key="/repo//A.PY"))

    assert tab.id == preview.id
    assert tab.state is TabState.ACTIVE
    assert lifecycle.store.active_tab().id == preview.id
    assert len(lifecycle.store.all_tabs()) == 2


def test_repeated_preview_open_of_same_path_is_idempotent(
    lifecycle: TabLifecycle, make_content: ContentFactory
) -> None:
    first = lifecycle.open_preview(make_content("a.py", key="/repo/src/a.py"))
    lifecycle.open_active(make_content("b.py", key="/repo/src/b.py"))

    again = lifecycle.open_preview(make_content("a.py", key="\\Repo\\src\\A.py"))

    assert again.id == first.id
    assert again.state is TabState.PREVIEW
    assert lifecycle.store.active_tab().id == first.id
    assert [t.title for t in lifecycle.store.all_tabs()].count("a.py") == 1
    assert len(lifecycle.store.all_tabs()) == 2


def test_first_edit_promotes_preview(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    tab = lifecycle.open_preview(make_content("a.py"))

    lifecycle.on_content_edit(tab.id)
    lifecycle.open_preview(make_content("b.py"))

    titles = [t.title for t in lifecycle.store.all_tabs()]
    assert titles == ["b.py", "a.py"]


def test_toggle_pin(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    tab = lifecycle.open_active(make_content("a.py"))

    lifecycle.toggle_pin(tab.id)

    assert lifecycle.store.active_tab().state is TabState.PINNED


@pytest.mark.asyncio
async def test_declined_confirmation_keeps_dirty_tab(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    prompt = _Prompt(False)
    lifecycle.set_confirm_callback(prompt)
    tab = lifecycle.open_active(make_content("draft.md"))
    lifecycle.store.set_tab_dirty(tab.id, True)

    closed = await lifecycle.request_close(tab.id)

    assert closed is False
    assert prompt.calls == [["draft.md"]]
    assert lifecycle.store.state.locate(tab.id) is not None


@pytest.mark.asyncio
async def test_async_confirmation_is_awaited(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    seen: list[list[str]] = []

    async def confirm(titles: Sequence[str]) -> bool:
        seen.append(list(titles))
        return True

    lifecycle.set_confirm_callback(confirm)
    tab = lifecycle.open_active(make_content("draft.md"))
    lifecycle.store.set_tab_dirty(tab.id, True)

    assert await lifecycle.request_close(tab.id, GroupId.PRIMARY) is True
    assert seen == [["draft.md"]]
    assert lifecycle.store.state.locate(tab.id) is None


@pytest.mark.asyncio
async def test_clean_tabs_close_without_prompt(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    prompt = _Prompt(False)
    lifecycle.set_confirm_callback(prompt)
    tab = lifecycle.open_active(make_content("notes.md"))

    assert await lifecycle.request_close(tab.id) is True
    assert prompt.calls == []


@pytest.mark.asyncio
async def test_confirmation_can_be_disabled(store: CanvasStore, make_content: ContentFactory) -> None:
    prompt = _Prompt(False)
    lifecycle = TabLifecycle(store, confirm=prompt, confirm_dirty_close=False)
    tab = lifecycle.open_active(make_content("draft.md"))
    store.set_tab_dirty(tab.id, True)

    assert await lifecycle.request_close(tab.id) is True
    assert prompt.calls == []


@pytest.mark.asyncio
async def test_close_of_unknown_or_misplaced_tab_is_ignored(
    lifecycle: TabLifecycle, make_content: ContentFactory
) -> None:
    tab = lifecycle.open_active(make_content("a.py"))

    assert await lifecycle.request_close("missing") is False
    assert await lifecycle.request_close(tab.id, GroupId.SECONDARY) is False
    assert lifecycle.store.state.locate(tab.id) is not None


@pytest.mark.asyncio
async def test_close_all_asks_once_for_every_dirty_tab(
    lifecycle: TabLifecycle, make_content: ContentFactory
) -> None:
    prompt = _Prompt(True)
    lifecycle.set_confirm_callback(prompt)
    first = lifecycle.open_active(make_content("one.md"))
    second = lifecycle.open_active(make_content("two.md"))
    lifecycle.open_active(make_content("clean.md"))
    for tab in (first, second):
        lifecycle.store.set_tab_dirty(tab.id, True)

    assert await lifecycle.request_close_all(GroupId.PRIMARY) is True

    assert len(prompt.calls) == 1
    assert sorted(prompt.calls[0]) == ["one.md", "two.md"]
    assert lifecycle.store.all_tabs() == []


@pytest.mark.asyncio
async def test_close_all_rejects_unknown_pane(lifecycle: TabLifecycle, make_content: ContentFactory) -> None:
    lifecycle.open_active(make_content("a.py"))

    assert await lifecycle.request_close_all("bogus") is False  # type: ignore[arg-type]
    assert len(lifecycle.store.all_tabs()) == 1


class TestOpenRequests:
    def test_duplicate_requests_are_idempotent(
        self, lifecycle: TabLifecycle, recorder_factory
    ) -> None:
        recorder = recorder_factory(CanvasExpandRequested)
        request = OpenTabRequested(
            type="code-editor",
            title="a.py",
            check_duplicate=True,
            duplicate_check_key="/repo/a.py",
        )

        first = lifecycle.handle_open_request(request)
        second = lifecycle.handle_open_request(request)

        assert first.id == second.id
        assert len(lifecycle.store.all_tabs()) == 1
        assert first.state is TabState.ACTIVE
        assert [event.tab_id for event in recorder.of(CanvasExpandRequested)] == [first.id, first.id]

    def test_replace_existing_updates_content(self, lifecycle: TabLifecycle) -> None:
        lifecycle.handle_open_request(
            OpenTabRequested(type="diff", title="old", check_duplicate=True, duplicate_check_key="k")
        )

        tab = lifecycle.handle_open_request(
            OpenTabRequested(
                type="diff",
                title="new",
                check_duplicate=True,
                duplicate_check_key="k",
                replace_existing=True,
            )
        )

        assert tab.title == "new"
        assert len(lifecycle.store.all_tabs()) == 1

    def test_jump_target_refreshes_payload(self, lifecycle: TabLifecycle) -> None:
        lifecycle.handle_open_request(
            OpenTabRequested(type="code-editor", title="a.py", check_duplicate=True, duplicate_check_key="a.py")
        )

        tab = lifecycle.handle_open_request(
            OpenTabRequested(
                type="code-editor",
                title="a.py",
                data={"jump_to_line": 42},
                check_duplicate=True,
                duplicate_check_key="a.py",
            )
        )

        assert tab.content.data["jump_to_line"] == 42

    def test_without_dedupe_a_second_tab_is_opened(self, lifecycle: TabLifecycle) -> None:
        request = OpenTabRequested(type="code-editor", title="a.py", duplicate_check_key="a.py")

        lifecycle.handle_open_request(request)
        lifecycle.handle_open_request(request)

        assert len(lifecycle.store.all_tabs()) == 2

    def test_split_view_request_opens_in_secondary(
        self, lifecycle: TabLifecycle, make_content: ContentFactory
    ) -> None:
        lifecycle.open_active(make_content("left.py"))

        tab = lifecycle.handle_open_request(
            OpenTabRequested(type="git-diff", title="diff", enable_split_view=True)
        )

        state = lifecycle.store.state
        assert state.split_mode is SplitMode.VERTICAL
        assert state.locate(tab.id).group_id is GroupId.SECONDARY

    def test_bus_wiring(self, store: CanvasStore, bus: EventBus, make_content: ContentFactory) -> None:
        lifecycle = TabLifecycle(store)
        lifecycle.attach()
        lifecycle.attach()

        bus.publish(OpenTabRequested(type="code-editor", title="a.py"))
        assert len(store.all_tabs()) == 1

        terminal = store.add_tab(make_content("shell", type="terminal", **{SESSION_KEY: "s-1"}), TabState.ACTIVE)
        store.close_tab(terminal.id)
        bus.publish(PersistentSessionDestroyed(session_id="s-1"))
        assert store.state.locate(terminal.id) is None

        lifecycle.detach()
        bus.publish(OpenTabRequested(type="code-editor", title="b.py"))
        assert len(store.all_tabs()) == 1
