"""Application bootstrap helpers for the tab canvas shell."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .canvas.drop_zones import DropZoneNegotiator
from .canvas.layout_model import AnchorPosition, LayoutState
from .canvas.lifecycle import TabLifecycle
from .canvas.mission_control import MissionControl
from .canvas.overflow import TabOverflowCalculator
from .canvas.shortcuts import KeyboardDispatcher
from .canvas.state import CanvasState
from .canvas.store import CanvasStore
from .events import EventBus
from .services.settings import CanvasSettings, SettingsStore
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_ENV_PREFIX = "TABCANVAS_"
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


@dataclass(slots=True)
class CanvasShell:
    """The engine objects wired together for one canvas window."""

    settings: CanvasSettings
    bus: EventBus
    store: CanvasStore
    lifecycle: TabLifecycle
    dispatcher: KeyboardDispatcher
    negotiator: DropZoneNegotiator
    mission_control: MissionControl

    def overflow_calculator(self) -> TabOverflowCalculator:
        """A fresh per-pane calculator honouring the tab picker setting."""

        return TabOverflowCalculator(has_tab_picker=self.settings.tab_picker_enabled)

    def close(self) -> None:
        self.lifecycle.detach()


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure file and console logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    _install_qt_message_handler()


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CanvasSettings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, TypeError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return CanvasSettings()


def build_canvas(settings: CanvasSettings, bus: EventBus | None = None) -> CanvasShell:
    """Create the store, policy layer and input adapters for one canvas."""

    bus = bus or EventBus()
    initial = CanvasState(
        layout=LayoutState(
            split_ratio=settings.split_ratio,
            split_ratio2=settings.split_ratio2,
            anchor_position=AnchorPosition(settings.anchor_position),
            anchor_size=settings.anchor_size,
        )
    )
    store = CanvasStore(
        event_bus=bus,
        persistent_types=settings.persistent_session_types,
        max_closed_tabs=settings.max_closed_tabs,
        initial_state=initial,
    )
    lifecycle = TabLifecycle(store, bus, confirm_dirty_close=settings.confirm_dirty_close)
    lifecycle.attach()
    dispatcher = KeyboardDispatcher(store, close_handler=lifecycle.request_close)
    shell = CanvasShell(
        settings=settings,
        bus=bus,
        store=store,
        lifecycle=lifecycle,
        dispatcher=dispatcher,
        negotiator=DropZoneNegotiator(store),
        mission_control=MissionControl(store, lifecycle),
    )
    _LOGGER.debug(
        "Canvas ready (persistent types=%s, history=%d)",
        settings.persistent_session_types,
        settings.max_closed_tabs,
    )
    return shell


def create_qapp(settings: CanvasSettings) -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    from PySide6.QtWidgets import QApplication
    from qasync import QEventLoop

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("TabCanvas")
    app.setApplicationDisplayName("Tab Canvas")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)
    _LOGGER.debug("Qt runtime created (debug logging=%s)", settings.debug_logging)
    return QtRuntime(app=app, loop=loop)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `tabcanvas` console script."""

    args, passthrough = _parse_cli_args(argv)
    _rewrite_sys_argv(passthrough)

    debug = _env_flag("TABCANVAS_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("TABCANVAS_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    shell = build_canvas(settings)
    if args.dump_state:
        _dump_state(shell)
        return

    from .presentation.host_window import CanvasHostWindow

    runtime = create_qapp(settings)
    window = CanvasHostWindow(shell)
    window.show()

    loop = runtime.loop
    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        shell.close()
        _drain_event_loop(loop)
        loop.close()


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks (e.g. open confirmation prompts) before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = None
        with contextlib.suppress(RuntimeError):
            current_task = asyncio.current_task(loop=loop)
        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - loop already stopping
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Redirect Qt diagnostics into the Python logging stack."""

    from PySide6.QtCore import QtMsgType, qInstallMessageHandler

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        logging.getLogger("PySide6").log(level_map.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(
        prog="tabcanvas",
        add_help=True,
        description="Launch the tab canvas shell or inspect its configuration.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--dump-state",
        action="store_true",
        help="Print the initial canvas state as JSON and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.tabcanvas/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    return parser.parse_known_args(argv)


def _rewrite_sys_argv(passthrough: Sequence[str]) -> None:
    program = sys.argv[0] if sys.argv else "tabcanvas"
    sys.argv = [program, *passthrough]


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    known = CanvasSettings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(CanvasSettings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in known:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, known[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is list:
        try:
            value = json.loads(raw_value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Expected a JSON list, got {raw_value!r}") from exc
        if not isinstance(value, target):
            raise ValueError(f"Expected a JSON list, got {raw_value!r}")
        return value
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is list:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: CanvasSettings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    output = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "cli_overrides": sorted(overrides.keys()),
            "environment_variables": _active_env_overrides(),
        },
    }
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _dump_state(shell: CanvasShell, stream: TextIO | None = None) -> None:
    destination = stream or sys.stdout
    json.dump(shell.store.snapshot(), destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith(_ENV_PREFIX))
