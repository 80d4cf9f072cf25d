"""Keeps a pane's tab-strip overflow layout current as the strip resizes."""

from __future__ import annotations

import logging

from PySide6.QtCore import QEvent, QObject, Signal
from PySide6.QtWidgets import QWidget

from ..canvas.layout_model import GroupId
from ..canvas.overflow import OverflowLayout, TabOverflowCalculator
from ..canvas.state import CanvasState
from ..canvas.store import CanvasStore
from .frame_throttle import FrameThrottle

__all__ = ["TabStripOverflowMonitor"]

LOGGER = logging.getLogger(__name__)


class TabStripOverflowMonitor(QObject):
    """Recomputes the overflow split for one pane.

    Triggers are a resize of ``strip`` and a change in the number of visible
    tabs of the pane; both are coalesced to one recomputation per frame. The
    monitor only reads the store.
    """

    layoutChanged = Signal(object)

    def __init__(
        self,
        store: CanvasStore,
        group_id: GroupId,
        strip: QWidget,
        *,
        calculator: TabOverflowCalculator | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._group_id = GroupId(group_id)
        self._strip = strip
        self._calculator = calculator or TabOverflowCalculator()
        self._layout = OverflowLayout()
        self._last_count = store.group(self._group_id).visible_count()
        self._throttle = FrameThrottle(self.recompute, parent=self)
        strip.installEventFilter(self)
        store.subscribe(self._on_state_changed)

    @property
    def layout(self) -> OverflowLayout:
        return self._layout

    @property
    def calculator(self) -> TabOverflowCalculator:
        return self._calculator

    @property
    def throttle(self) -> FrameThrottle:
        return self._throttle

    def record_width(self, tab_id: str, width: float) -> None:
        """Store the rendered width of a tab so later passes stop estimating it."""

        tab = self._store.group(self._group_id).find(tab_id)
        if tab is not None:
            self._calculator.cache.record(tab, width)

    def recompute(self) -> OverflowLayout:
        tabs = self._store.group(self._group_id).visible_tabs()
        self._calculator.cache.prune(tabs)
        layout = self._calculator.compute(tabs, self._strip.width())
        if layout != self._layout:
            self._layout = layout
            self.layoutChanged.emit(layout)
        return layout

    def close(self) -> None:
        self._throttle.cancel()
        self._store.unsubscribe(self._on_state_changed)
        self._strip.removeEventFilter(self)

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # type: ignore[override]
        if watched is self._strip and event.type() == QEvent.Type.Resize:
            self._throttle.request()
        return False

    def _on_state_changed(self, new_state: CanvasState, _old_state: CanvasState) -> None:
        count = new_state.group(self._group_id).visible_count()
        if count != self._last_count:
            self._last_count = count
            self._throttle.request()
