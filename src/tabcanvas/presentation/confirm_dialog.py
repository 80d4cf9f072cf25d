"""Non-blocking dirty-close confirmation built on :class:`QMessageBox`."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from PySide6.QtWidgets import QMessageBox, QWidget

__all__ = ["QtConfirmationPrompt", "format_dirty_prompt"]

LOGGER = logging.getLogger(__name__)

_MAX_LISTED_TITLES = 5


def format_dirty_prompt(titles: Sequence[str]) -> str:
    """Return the body text asking whether unsaved tabs may be closed."""

    titles = [title for title in titles if title]
    if not titles:
        return "Close without saving?"
    if len(titles) == 1:
        return f'"{titles[0]}" has unsaved changes. Close it anyway?'
    listed = "\n".join(f"  • {title}" for title in titles[:_MAX_LISTED_TITLES])
    hidden = len(titles) - _MAX_LISTED_TITLES
    if hidden > 0:
        listed += f"\n  …and {hidden} more"
    return f"{len(titles)} tabs have unsaved changes:\n{listed}\n\nClose them anyway?"


class QtConfirmationPrompt:
    """Callable confirm gate for :class:`TabLifecycle`.

    The message box is opened window-modal with :meth:`QMessageBox.open` so
    the qasync loop keeps running; the returned future resolves once the user
    answers.
    """

    def __init__(self, parent: QWidget | None = None, *, title: str = "Unsaved changes") -> None:
        self._parent = parent
        self._title = title
        self._box: QMessageBox | None = None

    @property
    def dialog(self) -> QMessageBox | None:
        """The message box currently shown, if any."""

        return self._box

    def __call__(self, titles: Sequence[str]) -> asyncio.Future[bool]:
        loop = asyncio.get_event_loop()
        future: asyncio.Future[bool] = loop.create_future()

        box = QMessageBox(self._parent)
        box.setIcon(QMessageBox.Icon.Warning)
        box.setWindowTitle(self._title)
        box.setText(format_dirty_prompt(titles))
        box.setStandardButtons(QMessageBox.StandardButton.Discard | QMessageBox.StandardButton.Cancel)
        box.setDefaultButton(QMessageBox.StandardButton.Cancel)

        def _resolve(_result: int) -> None:
            clicked = box.clickedButton()
            accepted = clicked is not None and box.standardButton(clicked) == QMessageBox.StandardButton.Discard
            LOGGER.debug("Dirty-close prompt answered: %s", "discard" if accepted else "cancel")
            if not future.done():
                future.set_result(accepted)
            self._box = None
            box.deleteLater()

        box.finished.connect(_resolve)
        self._box = box
        box.open()
        return future
