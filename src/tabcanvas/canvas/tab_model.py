"""Dataclasses describing canvas tabs, their content payloads and panes."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .layout_model import GroupId

__all__ = [
    "DEDUPE_KEY",
    "SESSION_KEY",
    "TabState",
    "PanelContent",
    "CanvasTab",
    "EditorGroupState",
    "ClosedTabRecord",
    "create_tab",
]

DEDUPE_KEY = "duplicate_check_key"
SESSION_KEY = "session_id"


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _generate_tab_id() -> str:
    return uuid.uuid4().hex


class TabState(str, Enum):
    """Lifecycle state of a canvas tab."""

    PREVIEW = "preview"
    ACTIVE = "active"
    PINNED = "pinned"


@dataclass(frozen=True, slots=True)
class PanelContent:
    """Opaque payload rendered by a collaborator.

    The canvas only looks at ``type``, ``title`` and two metadata keys
    (:data:`DEDUPE_KEY` and :data:`SESSION_KEY`); ``data`` belongs to whoever
    renders the content.
    """

    type: str
    title: str = ""
    data: Mapping[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def dedupe_key(self) -> str | None:
        value = self.metadata.get(DEDUPE_KEY)
        return value if isinstance(value, str) and value else None

    @property
    def session_id(self) -> str | None:
        value = self.metadata.get(SESSION_KEY)
        return value if isinstance(value, str) and value else None

    def with_metadata(self, **updates: Any) -> PanelContent:
        merged = dict(self.metadata)
        merged.update(updates)
        return replace(self, metadata=merged)


@dataclass(frozen=True, slots=True)
class CanvasTab:
    """One tab on the canvas. Instances are immutable; edits use :func:`replace`."""

    id: str
    title: str
    content: PanelContent
    state: TabState = TabState.PREVIEW
    is_dirty: bool = False
    is_hidden: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    last_accessed_at: datetime = field(default_factory=_utcnow)

    @property
    def is_preview(self) -> bool:
        return self.state is TabState.PREVIEW

    @property
    def is_pinned(self) -> bool:
        return self.state is TabState.PINNED

    @property
    def content_type(self) -> str:
        return self.content.type

    def touched(self, when: datetime | None = None) -> CanvasTab:
        return replace(self, last_accessed_at=when or _utcnow())


def create_tab(
    content: PanelContent,
    state: TabState = TabState.PREVIEW,
    *,
    tab_id: str | None = None,
    now: datetime | None = None,
) -> CanvasTab:
    """Build a fresh tab for ``content``; only the store should call this."""

    stamp = now or _utcnow()
    return CanvasTab(
        id=tab_id or _generate_tab_id(),
        title=content.title or content.type,
        content=content,
        state=TabState(state),
        created_at=stamp,
        last_accessed_at=stamp,
    )


@dataclass(frozen=True, slots=True)
class EditorGroupState:
    """An ordered list of tabs plus the pane's active tab pointer."""

    tabs: tuple[CanvasTab, ...] = ()
    active_tab_id: str | None = None

    def visible_tabs(self) -> tuple[CanvasTab, ...]:
        return tuple(tab for tab in self.tabs if not tab.is_hidden)

    def hidden_tabs(self) -> tuple[CanvasTab, ...]:
        return tuple(tab for tab in self.tabs if tab.is_hidden)

    def visible_count(self) -> int:
        return sum(1 for tab in self.tabs if not tab.is_hidden)

    def is_empty(self) -> bool:
        return self.visible_count() == 0

    def index_of(self, tab_id: str) -> int:
        for index, tab in enumerate(self.tabs):
            if tab.id == tab_id:
                return index
        return -1

    def find(self, tab_id: str) -> CanvasTab | None:
        index = self.index_of(tab_id)
        return self.tabs[index] if index >= 0 else None

    def visible_index_at(self, index: int) -> int:
        """Number of visible tabs that sit before position ``index``."""

        return sum(1 for tab in self.tabs[:index] if not tab.is_hidden)

    def active_tab(self) -> CanvasTab | None:
        if self.active_tab_id is None:
            return None
        tab = self.find(self.active_tab_id)
        if tab is None or tab.is_hidden:
            return None
        return tab

    def preview_index(self) -> int:
        for index, tab in enumerate(self.tabs):
            if tab.is_preview and not tab.is_hidden:
                return index
        return -1

    def replace_tab(self, tab: CanvasTab) -> EditorGroupState:
        tabs = tuple(tab if existing.id == tab.id else existing for existing in self.tabs)
        return replace(self, tabs=tabs)

    def without(self, tab_id: str) -> EditorGroupState:
        return replace(self, tabs=tuple(tab for tab in self.tabs if tab.id != tab_id))

    def inserted(self, tab: CanvasTab, index: int = 0) -> EditorGroupState:
        tabs = list(self.tabs)
        tabs.insert(max(0, min(index, len(tabs))), tab)
        return replace(self, tabs=tuple(tabs))

    def activate(self, tab_id: str | None) -> EditorGroupState:
        return replace(self, active_tab_id=tab_id)

    def single_preview(self) -> EditorGroupState:
        """Keep the first visible preview tab and promote any later ones to active."""

        seen = False
        tabs: list[CanvasTab] = []
        for tab in self.tabs:
            if tab.is_preview and not tab.is_hidden:
                if seen:
                    tab = replace(tab, state=TabState.ACTIVE)
                seen = True
            tabs.append(tab)
        if tuple(tabs) == self.tabs:
            return self
        return replace(self, tabs=tuple(tabs))

    def repaired(self, prefer_visible_index: int | None = None) -> EditorGroupState:
        """Return a copy whose active pointer references a visible tab.

        A valid pointer is kept. Otherwise the tab now sitting at
        ``prefer_visible_index`` wins, falling back to the last visible tab.
        """

        if self.active_tab() is not None:
            return self
        visible = self.visible_tabs()
        if not visible:
            return self if self.active_tab_id is None else replace(self, active_tab_id=None)
        index = 0 if prefer_visible_index is None else prefer_visible_index
        chosen = visible[max(0, min(index, len(visible) - 1))]
        return replace(self, active_tab_id=chosen.id)


@dataclass(frozen=True, slots=True)
class ClosedTabRecord:
    """Entry of the closed-tab history used by "reopen last closed"."""

    tab: CanvasTab
    closed_at: datetime
    group_id: GroupId
    index: int
