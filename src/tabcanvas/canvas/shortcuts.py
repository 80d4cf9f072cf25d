"""Keyboard chord table and the stateless dispatcher that executes it."""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from .layout_model import AnchorPosition, GroupId, SplitMode
from .store import CanvasStore

__all__ = [
    "ShortcutAction",
    "SHORTCUTS",
    "ALWAYS_HANDLE",
    "normalize_chord",
    "KeyboardDispatcher",
    "CloseHandler",
]

LOGGER = logging.getLogger(__name__)

CloseHandler = Callable[[str, GroupId], Union[Any, Awaitable[Any]]]


class ShortcutAction(str, Enum):
    TOGGLE_MISSION_CONTROL = "toggle_mission_control"
    TOGGLE_HORIZONTAL_SPLIT = "toggle_horizontal_split"
    TOGGLE_VERTICAL_SPLIT = "toggle_vertical_split"
    TOGGLE_ANCHOR_ZONE = "toggle_anchor_zone"
    TOGGLE_MAXIMIZE = "toggle_maximize"
    CLOSE_CURRENT_TAB = "close_current_tab"
    REOPEN_CLOSED_TAB = "reopen_closed_tab"
    SWITCH_TO_TAB_1 = "switch_to_tab_1"
    SWITCH_TO_TAB_2 = "switch_to_tab_2"
    SWITCH_TO_TAB_3 = "switch_to_tab_3"
    SWITCH_TO_TAB_4 = "switch_to_tab_4"
    SWITCH_TO_TAB_5 = "switch_to_tab_5"
    SWITCH_TO_TAB_6 = "switch_to_tab_6"
    SWITCH_TO_TAB_7 = "switch_to_tab_7"
    SWITCH_TO_TAB_8 = "switch_to_tab_8"
    SWITCH_TO_LAST_TAB = "switch_to_last_tab"

    @property
    def tab_number(self) -> int | None:
        prefix = "switch_to_tab_"
        if self.value.startswith(prefix):
            return int(self.value[len(prefix):])
        return None


# "mod" is Ctrl, or Cmd on macOS.
SHORTCUTS: dict[str, ShortcutAction] = {
    "mod+tab": ShortcutAction.TOGGLE_MISSION_CONTROL,
    "mod+\\": ShortcutAction.TOGGLE_HORIZONTAL_SPLIT,
    "mod+shift+\\": ShortcutAction.TOGGLE_VERTICAL_SPLIT,
    "mod+`": ShortcutAction.TOGGLE_ANCHOR_ZONE,
    "mod+shift+m": ShortcutAction.TOGGLE_MAXIMIZE,
    "mod+w": ShortcutAction.CLOSE_CURRENT_TAB,
    "mod+shift+t": ShortcutAction.REOPEN_CLOSED_TAB,
    **{f"mod+{n}": ShortcutAction(f"switch_to_tab_{n}") for n in range(1, 9)},
    "mod+9": ShortcutAction.SWITCH_TO_LAST_TAB,
}

ALWAYS_HANDLE: frozenset[str] = frozenset({"mod+tab", "mod+w", "mod+shift+t"})

_MODIFIER_ORDER = ("mod", "shift")
_MODIFIER_ALIASES = {"ctrl": "mod", "control": "mod", "cmd": "mod", "meta": "mod", "command": "mod"}


def normalize_chord(chord: str) -> str:
    """Canonicalise ``chord`` to the ``mod+shift+key`` spelling used in :data:`SHORTCUTS`."""

    parts = [part.strip().lower() for part in chord.split("+")]
    # A literal "+" key leaves an empty trailing part.
    if chord.endswith("+") and len(parts) >= 2 and parts[-1] == "":
        parts = parts[:-2] + ["+"]
    key = parts[-1] if parts else ""
    modifiers = {_MODIFIER_ALIASES.get(part, part) for part in parts[:-1] if part}
    ordered = [name for name in _MODIFIER_ORDER if name in modifiers]
    ordered.extend(sorted(modifiers.difference(_MODIFIER_ORDER)))
    return "+".join(ordered + [key])


class KeyboardDispatcher:
    """Maps chords to canvas operations.

    The dispatcher keeps no state of its own; each call reads the store's
    current state. Closing the active tab goes through ``close_handler``
    (normally the lifecycle dirty-close gate) when one is supplied.
    """

    def __init__(self, store: CanvasStore, *, close_handler: CloseHandler | None = None) -> None:
        self._store = store
        self._close_handler = close_handler
        self._pending: set[asyncio.Task[Any]] = set()

    def action_for(self, chord: str, *, input_focused: bool = False) -> ShortcutAction | None:
        """Return the action bound to ``chord``, honouring text-input suppression."""

        normalized = normalize_chord(chord)
        action = SHORTCUTS.get(normalized)
        if action is None:
            return None
        if input_focused and normalized not in ALWAYS_HANDLE:
            return None
        return action

    def dispatch(self, chord: str, *, input_focused: bool = False) -> bool:
        """Execute the action bound to ``chord``; returns whether the chord was consumed."""

        action = self.action_for(chord, input_focused=input_focused)
        if action is None:
            return False
        LOGGER.debug("Shortcut %s -> %s", chord, action.value)
        self.execute(action)
        return True

    def execute(self, action: ShortcutAction) -> None:
        store = self._store
        state = store.state
        action = ShortcutAction(action)

        if action is ShortcutAction.TOGGLE_MISSION_CONTROL:
            store.toggle_mission_control()
        elif action is ShortcutAction.TOGGLE_HORIZONTAL_SPLIT:
            store.set_split_mode(_toggled(state.split_mode, SplitMode.HORIZONTAL))
        elif action is ShortcutAction.TOGGLE_VERTICAL_SPLIT:
            store.set_split_mode(_toggled(state.split_mode, SplitMode.VERTICAL))
        elif action is ShortcutAction.TOGGLE_ANCHOR_ZONE:
            hidden = state.layout.anchor_position is AnchorPosition.HIDDEN
            store.set_anchor_position(AnchorPosition.BOTTOM if hidden else AnchorPosition.HIDDEN)
        elif action is ShortcutAction.TOGGLE_MAXIMIZE:
            store.toggle_maximize()
        elif action is ShortcutAction.CLOSE_CURRENT_TAB:
            self._close_active()
        elif action is ShortcutAction.REOPEN_CLOSED_TAB:
            store.reopen_closed_tab()
        else:
            visible = state.active_group().visible_tabs()
            if not visible:
                return
            if action is ShortcutAction.SWITCH_TO_LAST_TAB:
                target = visible[-1]
            else:
                index = (action.tab_number or 1) - 1
                if index >= len(visible):
                    return
                target = visible[index]
            store.switch_to_tab(target.id, state.active_group_id)

    def _close_active(self) -> None:
        state = self._store.state
        tab = state.active_tab()
        if tab is None:
            return
        if tab.is_pinned:
            LOGGER.debug("Close shortcut skipped pinned tab %s", tab.id)
            return
        group_id = state.active_group_id
        if self._close_handler is None:
            self._store.close_tab(tab.id, group_id)
            return
        outcome = self._close_handler(tab.id, group_id)
        if inspect.isawaitable(outcome):
            self._schedule(outcome)

    def _schedule(self, awaitable: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(_await(awaitable))
            return
        task = loop.create_task(_await(awaitable))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _toggled(current: SplitMode, mode: SplitMode) -> SplitMode:
    return SplitMode.NONE if current is mode else mode
