"""Qt event filter feeding key presses into :class:`KeyboardDispatcher`."""

from __future__ import annotations

import logging
from typing import Any

from PySide6.QtCore import QEvent, QObject, Qt
from PySide6.QtGui import QKeyEvent
from PySide6.QtWidgets import QApplication, QLineEdit, QPlainTextEdit, QTextEdit, QWidget

from ..canvas.shortcuts import KeyboardDispatcher

__all__ = ["ShortcutFilter", "chord_from_key_event", "focus_is_text_input"]

LOGGER = logging.getLogger(__name__)


def _coerce_int(value: Any) -> int:
    try:
        return int(value)
    except TypeError:
        return int(value.value)


_KEY_BAR = _coerce_int(Qt.Key.Key_Bar)
_KEY_DIGITS = (_coerce_int(Qt.Key.Key_0), _coerce_int(Qt.Key.Key_9))
_KEY_LETTERS = (_coerce_int(Qt.Key.Key_A), _coerce_int(Qt.Key.Key_Z))
_CONTROL = _coerce_int(Qt.KeyboardModifier.ControlModifier)
_SHIFT = _coerce_int(Qt.KeyboardModifier.ShiftModifier)

_NAMED_KEYS: dict[int, str] = {
    _coerce_int(Qt.Key.Key_Tab): "tab",
    _coerce_int(Qt.Key.Key_Backtab): "tab",
    _coerce_int(Qt.Key.Key_Backslash): "\\",
    _coerce_int(Qt.Key.Key_QuoteLeft): "`",
    _KEY_BAR: "\\",
}


def chord_from_key_event(event: QKeyEvent) -> str | None:
    """Translate a key press into ``mod+shift+key`` form, or ``None`` without a modifier.

    Qt maps Cmd to ``ControlModifier`` on macOS, so ``mod`` is always Ctrl here.
    """

    modifiers = _coerce_int(event.modifiers())
    if not modifiers & _CONTROL:
        return None
    key = _coerce_int(event.key())
    name = _NAMED_KEYS.get(key)
    if name is None:
        if _KEY_DIGITS[0] <= key <= _KEY_DIGITS[1]:
            name = chr(key)
        elif _KEY_LETTERS[0] <= key <= _KEY_LETTERS[1]:
            name = chr(key).lower()
        else:
            return None
    parts = ["mod"]
    if modifiers & _SHIFT or key == _KEY_BAR:
        parts.append("shift")
    parts.append(name)
    return "+".join(parts)


def focus_is_text_input(widget: QWidget | None = None) -> bool:
    focused = widget if widget is not None else QApplication.focusWidget()
    if isinstance(focused, QLineEdit):
        return True
    if isinstance(focused, (QTextEdit, QPlainTextEdit)):
        return not focused.isReadOnly()
    return False


class ShortcutFilter(QObject):
    """Install on a window (or the application) to route canvas chords."""

    def __init__(self, dispatcher: KeyboardDispatcher, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._dispatcher = dispatcher
        self.enabled = True

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # type: ignore[override]
        if not self.enabled:
            return False
        if event.type() not in (QEvent.Type.KeyPress, QEvent.Type.ShortcutOverride):
            return False
        chord = chord_from_key_event(event)  # type: ignore[arg-type]
        if chord is None:
            return False
        input_focused = focus_is_text_input()
        if event.type() == QEvent.Type.ShortcutOverride:
            # Claim the chord so a focused widget does not swallow it first.
            if self._dispatcher.action_for(chord, input_focused=input_focused) is not None:
                event.accept()
                return True
            return False
        if self._dispatcher.dispatch(chord, input_focused=input_focused):
            event.accept()
            return True
        return False
