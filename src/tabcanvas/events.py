"""Typed event bus and the events exchanged between the canvas and its collaborators.

Producers such as a file tree or a terminal manager never hold a reference to
the canvas; they publish :class:`OpenTabRequested` or
:class:`PersistentSessionDestroyed` and the lifecycle layer reacts. The store
publishes the outbound events so a host layout can reveal the canvas region or
reconcile its own side tables.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for canvas events.

    Subclasses are ``@dataclass(slots=True)`` records; handlers are keyed on
    the exact event class.
    """


# =============================================================================
# Inbound events
# =============================================================================


@dataclass(slots=True)
class OpenTabRequested(Event):
    """A collaborator asks the canvas to show some content.

    Attributes:
        type: Content type tag, opaque to the canvas.
        title: Tab title.
        data: Renderer-owned payload.
        metadata: Extra bookkeeping merged into the tab's content metadata.
        check_duplicate: Look for an existing tab sharing ``duplicate_check_key``.
        duplicate_check_key: Path-like key identifying the underlying resource.
        replace_existing: Overwrite the content of a matching tab.
        target_group: Pane to open into; defaults to the active pane.
        enable_split_view: Pre-split a single-pane canvas before inserting.
    """

    type: str
    title: str = ""
    data: Mapping[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)
    check_duplicate: bool = False
    duplicate_check_key: str | None = None
    replace_existing: bool = False
    target_group: str | None = None
    enable_split_view: bool = False


@dataclass(slots=True)
class PersistentSessionDestroyed(Event):
    """The owner of a persistent session (e.g. a terminal) tore it down."""

    session_id: str


# =============================================================================
# Outbound events
# =============================================================================


@dataclass(slots=True)
class CanvasExpandRequested(Event):
    """A tab was inserted or focused; the host may reveal the canvas region."""

    group_id: str
    tab_id: str


@dataclass(slots=True)
class TabDestroyed(Event):
    """A tab left the canvas for good (closed, force-removed or replaced)."""

    tab_id: str
    group_id: str
    content_type: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ActiveTabChanged(Event):
    """The focused tab of the canvas changed."""

    group_id: str
    tab_id: str | None


@dataclass(slots=True)
class LayoutChanged(Event):
    """The split topology changed."""

    split_mode: str
    previous: str


class EventBus(Generic[E]):
    """Synchronous publish/subscribe hub keyed on event classes.

    Bound-method handlers are held through :class:`weakref.WeakMethod` so a
    discarded subscriber drops out on its own; plain functions are held
    strongly. A failing handler is logged and does not stop delivery to the
    remaining handlers.

    Not thread-safe: publish from the thread running the Qt event loop.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: defaultdict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""

        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug("Unsubscribed %s from %s", _handler_name(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to its handlers in subscription order."""

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            logger.debug("No handlers for %s", event_type.__name__)
            return

        logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))
        stale: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                stale.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s failed while handling %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for handler_ref in stale:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, ()))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_target", "_weak")

    def __init__(self, target: Any, weak: bool) -> None:
        self._target = target
        self._weak = weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if getattr(handler, "__self__", None) is not None and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), weak=True)
            except TypeError:
                pass
        return cls(handler, weak=False)

    def resolve(self) -> Handler | None:
        if self._weak:
            return self._target()
        return self._target

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    owner = getattr(handler, "__self__", None)
    func = getattr(handler, "__func__", None)
    if owner is not None and func is not None:
        return f"{type(owner).__name__}.{func.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "OpenTabRequested",
    "PersistentSessionDestroyed",
    "CanvasExpandRequested",
    "TabDestroyed",
    "ActiveTabChanged",
    "LayoutChanged",
]
