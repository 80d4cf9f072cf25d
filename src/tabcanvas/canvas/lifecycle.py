"""Tab lifecycle policy layered over :class:`CanvasStore`.

The store knows how to mutate the canvas; this module decides *which*
mutation a user gesture or a collaborator request maps to: preview versus
active opening, duplicate detection, the dirty-close confirmation gate and
the reconciliation of persistent sessions torn down elsewhere.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from ..events import (
    CanvasExpandRequested,
    EventBus,
    OpenTabRequested,
    PersistentSessionDestroyed,
)
from .layout_model import GroupId, SplitMode
from .state import TabLocation
from .store import CanvasStore
from .tab_model import DEDUPE_KEY, CanvasTab, PanelContent, TabState

__all__ = ["TabLifecycle", "ConfirmCallback", "JUMP_KEYS"]

LOGGER = logging.getLogger(__name__)

ConfirmCallback = Callable[[Sequence[str]], Union[bool, Awaitable[bool]]]

# Payload keys asking an already-open tab to reveal a location.
JUMP_KEYS: tuple[str, ...] = ("jump_to_range", "jump_to_line", "jump_to_column")


class TabLifecycle:
    """Policy entry points used by views, shortcuts and collaborators."""

    def __init__(
        self,
        store: CanvasStore,
        event_bus: EventBus | None = None,
        *,
        confirm: ConfirmCallback | None = None,
        confirm_dirty_close: bool = True,
    ) -> None:
        self._store = store
        self._bus = event_bus if event_bus is not None else store.event_bus
        self._confirm = confirm
        self._confirm_dirty_close = confirm_dirty_close
        self._attached = False

    @property
    def store(self) -> CanvasStore:
        return self._store

    def set_confirm_callback(self, confirm: ConfirmCallback | None) -> None:
        self._confirm = confirm

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------
    def open_preview(self, content: PanelContent, group_id: GroupId | None = None) -> CanvasTab:
        """Single-click open: focus a duplicate or replace the pane's preview."""

        existing = self._find_duplicate(content)
        if existing is not None:
            self._store.switch_to_tab(existing.tab.id, existing.group_id)
            return self._current(existing)
        return self._store.add_tab(content, TabState.PREVIEW, group_id)

    def open_active(self, content: PanelContent, group_id: GroupId | None = None) -> CanvasTab:
        """Double-click or programmatic open: like preview, but commits the tab."""

        existing = self._find_duplicate(content)
        if existing is not None:
            self._store.switch_to_tab(existing.tab.id, existing.group_id)
            if existing.tab.is_preview:
                self._store.promote_tab(existing.tab.id, existing.group_id)
            return self._current(existing)
        return self._store.add_tab(content, TabState.ACTIVE, group_id)

    def on_content_edit(self, tab_id: str, group_id: GroupId | None = None) -> None:
        """The first edit in a previewed document commits it to a real tab."""

        self._store.promote_tab(tab_id, group_id)

    def toggle_pin(self, tab_id: str, group_id: GroupId | None = None) -> None:
        self._store.toggle_pin_tab(tab_id, group_id)

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------
    async def request_close(
        self,
        tab_id: str,
        group_id: GroupId | None = None,
        *,
        force_remove: bool = False,
    ) -> bool:
        """Close one tab, asking first when it holds unsaved changes.

        Returns ``False`` when the user declined or the tab is unknown.
        """

        location = self._locate(tab_id, group_id)
        if location is None:
            return False
        if location.tab.is_dirty and not await self._confirm_close([location.tab.title]):
            LOGGER.debug("Close of %s declined", tab_id)
            return False
        return self._store.close_tab(location.tab.id, location.group_id, force_remove=force_remove)

    async def request_close_all(self, group_id: GroupId | None = None) -> bool:
        """Close all visible tabs of one pane (or every pane) behind one confirmation."""

        state = self._store.state
        if group_id is None:
            groups = [group for _, group in state.iter_groups()]
        else:
            try:
                groups = [state.group(group_id)]
            except ValueError:
                LOGGER.debug("Close-all ignored for unknown pane %r", group_id)
                return False
        dirty = [tab.title for group in groups for tab in group.visible_tabs() if tab.is_dirty]
        if dirty and not await self._confirm_close(dirty):
            LOGGER.debug("Close-all declined (%d dirty tab(s))", len(dirty))
            return False
        self._store.close_all_tabs(group_id)
        return True

    async def _confirm_close(self, titles: Sequence[str]) -> bool:
        if not self._confirm_dirty_close or self._confirm is None:
            return True
        outcome = self._confirm(list(titles))
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return bool(outcome)

    # ------------------------------------------------------------------
    # Event bus wiring
    # ------------------------------------------------------------------
    def attach(self) -> None:
        """Start consuming open requests and session tear-down notices."""

        if self._bus is None or self._attached:
            return
        self._bus.subscribe(OpenTabRequested, self._handle_open_request)
        self._bus.subscribe(PersistentSessionDestroyed, self._handle_session_destroyed)
        self._attached = True

    def detach(self) -> None:
        if self._bus is None or not self._attached:
            return
        self._bus.unsubscribe(OpenTabRequested, self._handle_open_request)
        self._bus.unsubscribe(PersistentSessionDestroyed, self._handle_session_destroyed)
        self._attached = False

    def handle_open_request(self, request: OpenTabRequested) -> CanvasTab:
        """Apply an inbound open request and return the tab now showing it."""

        metadata: dict[str, Any] = dict(request.metadata)
        if request.duplicate_check_key:
            metadata[DEDUPE_KEY] = request.duplicate_check_key
        content = PanelContent(
            type=request.type,
            title=request.title,
            data=dict(request.data),
            metadata=metadata,
        )

        if request.check_duplicate and request.duplicate_check_key:
            existing = self._store.find_tab_by_metadata({DEDUPE_KEY: request.duplicate_check_key})
            if existing is not None:
                tab_id, group_id = existing.tab.id, existing.group_id
                if request.replace_existing or _has_jump_target(request.data):
                    self._store.update_tab_content(tab_id, content, group_id)
                self._store.switch_to_tab(tab_id, group_id)
                location = self._store.state.locate(tab_id) or existing
                if self._bus is not None:
                    self._bus.publish(
                        CanvasExpandRequested(group_id=location.group_id.value, tab_id=tab_id)
                    )
                return location.tab

        split_mode = None
        if request.enable_split_view and self._store.state.split_mode is SplitMode.NONE:
            split_mode = SplitMode.VERTICAL
        target = request.target_group or None
        return self._store.add_tab(content, TabState.ACTIVE, target, split_mode=split_mode)

    def _handle_open_request(self, event: OpenTabRequested) -> None:
        self.handle_open_request(event)

    def _handle_session_destroyed(self, event: PersistentSessionDestroyed) -> None:
        self._store.close_persistent_session(event.session_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _find_duplicate(self, content: PanelContent) -> TabLocation | None:
        key = content.dedupe_key
        if key is None:
            return None
        return self._store.find_tab_by_metadata({DEDUPE_KEY: key})

    def _locate(self, tab_id: str, group_id: GroupId | None) -> TabLocation | None:
        state = self._store.state
        location = state.locate(tab_id)
        if location is None:
            return None
        if group_id is not None and location.group_id != group_id:
            return None
        return location

    def _current(self, fallback: TabLocation) -> CanvasTab:
        location = self._store.state.locate(fallback.tab.id)
        return location.tab if location is not None else fallback.tab


def _has_jump_target(data: Mapping[str, Any]) -> bool:
    return any(data.get(key) is not None for key in JUMP_KEYS)
