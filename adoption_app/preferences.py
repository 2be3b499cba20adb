"""
Process-wide user preferences.

The theme is loaded once at startup from a JSON file and falls back to
``DEFAULT_THEME``; all reads and writes go through ``get_preferences()``.
"""
import json
import logging
import os
import threading
from typing import Optional

from .config import THEMES, DEFAULT_THEME
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


class Preferences:
    """Persisted theme preference."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.Lock()
        self._theme = self._load()

    def _load(self) -> str:
        if not self.path or not os.path.exists(self.path):
            return DEFAULT_THEME
        try:
            with open(self.path, encoding="utf-8") as f:
                saved = json.load(f).get("theme")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Could not read preferences from {self.path}: {e}")
            return DEFAULT_THEME
        return saved if saved in THEMES else DEFAULT_THEME

    @property
    def theme(self) -> str:
        return self._theme

    def set_theme(self, theme: str) -> str:
        """
        Change and persist the theme.

        Raises:
            ValidationError: If the theme is unknown
        """
        if theme not in THEMES:
            raise ValidationError("theme", f"Unknown theme: {theme}")
        with self._lock:
            self._theme = theme
            if self.path:
                try:
                    with open(self.path, "w", encoding="utf-8") as f:
                        json.dump({"theme": theme}, f)
                except OSError as e:
                    logger.error(f"Failed to save preferences to {self.path}: {e}")
        return theme


_preferences = None


def init_preferences(path: Optional[str] = None) -> Preferences:
    global _preferences
    _preferences = Preferences(path)
    logger.info(f"Loaded preferences (theme: {_preferences.theme})")
    return _preferences


def get_preferences() -> Preferences:
    if _preferences is None:
        return init_preferences()
    return _preferences
