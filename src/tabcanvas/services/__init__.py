"""Service layer helpers (settings persistence)."""

from .settings import CanvasSettings, SettingsStore

__all__ = ["CanvasSettings", "SettingsStore"]
