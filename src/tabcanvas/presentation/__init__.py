"""PySide6 glue between the canvas engine and a Qt host window."""

from .confirm_dialog import QtConfirmationPrompt, format_dirty_prompt
from .frame_throttle import FrameThrottle
from .host_window import CanvasHostWindow
from .overflow_monitor import TabStripOverflowMonitor
from .shortcut_filter import ShortcutFilter, chord_from_key_event, focus_is_text_input

__all__ = [
    "CanvasHostWindow",
    "FrameThrottle",
    "QtConfirmationPrompt",
    "ShortcutFilter",
    "TabStripOverflowMonitor",
    "chord_from_key_event",
    "focus_is_text_input",
    "format_dirty_prompt",
]
