"""Shared pytest fixtures."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from tabcanvas.canvas.store import CanvasStore  # noqa: E402
from tabcanvas.canvas.tab_model import DEDUPE_KEY, PanelContent  # noqa: E402
from tabcanvas.events import Event, EventBus  # noqa: E402


class _TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self._now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


class EventRecorder:
    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(bus: EventBus) -> CanvasStore:
    return CanvasStore(event_bus=bus, clock=_TickingClock())


@pytest.fixture
def make_content() -> Callable[..., PanelContent]:
    def factory(
        title: str,
        *,
        type: str = "code-editor",
        key: str | None = None,
        **metadata: Any,
    ) -> PanelContent:
        if key is not None:
            metadata[DEDUPE_KEY] = key
        return PanelContent(type=type, title=title, data={"file_path": key or title}, metadata=metadata)

    return factory


@pytest.fixture
def recorder_factory(bus: EventBus) -> Callable[..., EventRecorder]:
    def factory(*event_types: type[Event]) -> EventRecorder:
        return EventRecorder(bus, *event_types)

    return factory
