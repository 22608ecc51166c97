from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")


class SettingsManager:
    def __init__(self, settings_path: str | None = None):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "thumbnail_target_size": 320,
        "pixel_format": "ARGB_8888",
        "dither": False,
        "loader_workers": 4,
    }

    def load(self) -> None:
        if not self.settings_path:
            self._settings = {}
            return
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except Exception as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        if not self.settings_path:
            return
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except Exception as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def thumbnail_target_size(self) -> int:
        try:
            size = int(self.get("thumbnail_target_size"))
        except (TypeError, ValueError):
            _logger.warning("invalid thumbnail_target_size: %r", self.get("thumbnail_target_size"))
            return int(self.DEFAULTS["thumbnail_target_size"])
        return size if size > 0 else int(self.DEFAULTS["thumbnail_target_size"])

    @property
    def pixel_format_name(self) -> str:
        val = self.get("pixel_format")
        return val if isinstance(val, str) and val else str(self.DEFAULTS["pixel_format"])

    @property
    def dither(self) -> bool:
        return bool(self.get("dither", False))

    @property
    def loader_workers(self) -> int:
        try:
            return max(1, int(self.get("loader_workers")))
        except (TypeError, ValueError):
            return int(self.DEFAULTS["loader_workers"])
