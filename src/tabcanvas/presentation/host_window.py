"""Minimal host window embedding the canvas engine.

Content rendering belongs to collaborators; this window only lists each
pane's tabs so the topology can be inspected, and wires the Qt-specific
pieces (shortcut filter, confirmation prompt) into the engine.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QLabel, QMainWindow, QSizePolicy, QVBoxLayout, QWidget

from ..canvas.layout_model import GROUP_ORDER, GroupId, SplitMode
from ..canvas.overflow import OverflowLayout
from ..canvas.state import CanvasState
from .confirm_dialog import QtConfirmationPrompt
from .overflow_monitor import TabStripOverflowMonitor
from .shortcut_filter import ShortcutFilter

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..app import CanvasShell

__all__ = ["CanvasHostWindow", "describe_state"]

LOGGER = logging.getLogger(__name__)

WINDOW_TITLE = "Tab Canvas"


def describe_state(state: CanvasState) -> str:
    """Plain-text outline of the panes, marking the active tab with ``*``."""

    lines = [f"Layout: {state.split_mode.value}"]
    for group_id, group in state.iter_groups():
        if not group.tabs and state.split_mode is SplitMode.NONE:
            continue
        marker = ">" if group_id is state.active_group_id else " "
        names = []
        for tab in group.visible_tabs():
            name = tab.title
            if tab.is_preview:
                name = f"({name})"
            if tab.is_dirty:
                name += " •"
            if tab.id == group.active_tab_id:
                name = f"*{name}"
            names.append(name)
        lines.append(f"{marker} {group_id.value}: {', '.join(names) or '(empty)'}")
    return "\n".join(lines)


class CanvasHostWindow(QMainWindow):
    def __init__(self, shell: CanvasShell, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._shell = shell
        self.setWindowTitle(WINDOW_TITLE)

        central = QWidget(self)
        layout = QVBoxLayout(central)
        self._outline = QLabel(central)
        self._outline.setAlignment(Qt.AlignmentFlag.AlignTop | Qt.AlignmentFlag.AlignLeft)
        self._outline.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        layout.addWidget(self._outline)
        self._strips: dict[GroupId, QLabel] = {}
        self._monitors: dict[GroupId, TabStripOverflowMonitor] = {}
        for group_id in GROUP_ORDER:
            strip = QLabel(central)
            # The strip width is dictated by the window, never by its text.
            strip.setSizePolicy(QSizePolicy.Policy.Ignored, QSizePolicy.Policy.Preferred)
            layout.addWidget(strip)
            monitor = TabStripOverflowMonitor(
                shell.store,
                group_id,
                strip,
                calculator=shell.overflow_calculator(),
                parent=self,
            )
            monitor.layoutChanged.connect(lambda result, strip=strip: _show_overflow(strip, result))
            self._strips[group_id] = strip
            self._monitors[group_id] = monitor
        self.setCentralWidget(central)

        self._prompt = QtConfirmationPrompt(self)
        shell.lifecycle.set_confirm_callback(self._prompt)
        self._shortcut_filter = ShortcutFilter(shell.dispatcher, self)
        self.installEventFilter(self._shortcut_filter)

        shell.store.subscribe(self._on_state_changed)
        self._render(shell.store.state)

    @property
    def outline_text(self) -> str:
        return self._outline.text()

    @property
    def shortcut_filter(self) -> ShortcutFilter:
        return self._shortcut_filter

    @property
    def overflow_monitors(self) -> dict[GroupId, TabStripOverflowMonitor]:
        return dict(self._monitors)

    def strip_text(self, group_id: GroupId) -> str:
        return self._strips[GroupId(group_id)].text()

    def closeEvent(self, event) -> None:  # type: ignore[no-untyped-def, override]
        self._shell.store.unsubscribe(self._on_state_changed)
        for monitor in self._monitors.values():
            monitor.close()
        super().closeEvent(event)

    def _on_state_changed(self, new_state: CanvasState, _old_state: CanvasState) -> None:
        self._render(new_state)

    def _render(self, state: CanvasState) -> None:
        self._outline.setText(describe_state(state))
        title = WINDOW_TITLE
        active = state.active_tab()
        if active is not None:
            title = f"{active.title} - {WINDOW_TITLE}"
        self.setWindowTitle(title)


def _show_overflow(strip: QLabel, result: OverflowLayout) -> None:
    text = ", ".join(tab.title for tab in result.visible)
    if result.show_overflow_button:
        text += f"  [+{result.overflow_count}]"
    strip.setText(text)
