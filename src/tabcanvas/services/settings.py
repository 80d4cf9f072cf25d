"""Canvas settings dataclass and its JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..canvas.layout_model import (
    AnchorPosition,
    DEFAULT_ANCHOR_SIZE,
    clamp_anchor_size,
    clamp_split_ratio,
)

__all__ = ["CanvasSettings", "SettingsStore", "SETTINGS_VERSION", "DEFAULT_SETTINGS_PATH"]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".tabcanvas"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "TABCANVAS_ANCHOR_POSITION": "anchor_position",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "TABCANVAS_DEBUG_LOGGING": "debug_logging",
    "TABCANVAS_CONFIRM_DIRTY_CLOSE": "confirm_dirty_close",
    "TABCANVAS_TAB_PICKER": "tab_picker_enabled",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "TABCANVAS_MAX_CLOSED_TABS": "max_closed_tabs",
    "TABCANVAS_ANCHOR_SIZE": "anchor_size",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "TABCANVAS_SPLIT_RATIO": "split_ratio",
    "TABCANVAS_SPLIT_RATIO2": "split_ratio2",
}
_LIST_ENV_OVERRIDES: Mapping[str, str] = {
    "TABCANVAS_PERSISTENT_TYPES": "persistent_session_types",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class CanvasSettings:
    """User-tunable behaviour of the canvas, persisted between sessions."""

    debug_logging: bool = False
    persistent_session_types: list[str] = field(default_factory=lambda: ["terminal"])
    max_closed_tabs: int = 10
    confirm_dirty_close: bool = True
    tab_picker_enabled: bool = True
    split_ratio: float = 0.5
    split_ratio2: float = 0.5
    anchor_position: str = AnchorPosition.HIDDEN.value
    anchor_size: int = DEFAULT_ANCHOR_SIZE


class SettingsStore:
    """Loads and saves :class:`CanvasSettings` as versioned JSON."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> CanvasSettings:
        """Read settings from disk, then layer CLI and environment overrides on top.

        Missing or unreadable files yield defaults. A payload written by an
        older version is rewritten in the current format.
        """

        payload = self._read_payload()
        settings = CanvasSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = CanvasSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = CanvasSettings()
            if payload.get("version") != SETTINGS_VERSION:
                try:
                    self.save(_normalized(settings))
                except OSError as exc:
                    LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        settings = self._apply_env_overrides(settings)
        return _normalized(settings)

    def save(self, settings: CanvasSettings) -> Path:
        """Write settings atomically through a temporary sibling file."""

        payload = asdict(settings)
        payload["version"] = SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            LOGGER.warning("Unable to read settings file %s: %s", self._path, exc)
            return {}
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain a JSON object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: CanvasSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> CanvasSettings:
        allowed = {item.name for item in fields(CanvasSettings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: CanvasSettings) -> CanvasSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip()
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        for env_name, field_name in _LIST_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = [item.strip() for item in value.split(",") if item.strip()]
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(CanvasSettings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _normalized(settings: CanvasSettings) -> CanvasSettings:
    """Clamp numeric fields and repair values the canvas cannot use."""

    try:
        anchor = AnchorPosition(settings.anchor_position).value
    except ValueError:
        LOGGER.warning("Unknown anchor position %r; using hidden", settings.anchor_position)
        anchor = AnchorPosition.HIDDEN.value
    persistent = settings.persistent_session_types
    if isinstance(persistent, str):
        persistent = [persistent]
    return replace(
        settings,
        persistent_session_types=[str(item) for item in persistent or []],
        max_closed_tabs=max(0, int(settings.max_closed_tabs)),
        split_ratio=clamp_split_ratio(settings.split_ratio),
        split_ratio2=clamp_split_ratio(settings.split_ratio2),
        anchor_position=anchor,
        anchor_size=clamp_anchor_size(settings.anchor_size),
    )
