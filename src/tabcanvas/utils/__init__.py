"""Utility helpers shared across the canvas packages."""
