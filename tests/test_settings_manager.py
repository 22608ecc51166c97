from __future__ import annotations

import json
from pathlib import Path

from uri_image.settings_manager import SettingsManager


def test_defaults_without_file(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "missing" / "settings.json"))
    assert sm.thumbnail_target_size == 320
    assert sm.pixel_format_name == "ARGB_8888"
    assert sm.dither is False
    assert sm.loader_workers == 4
    assert not sm.has("dither")


def test_set_persists_and_reloads(tmp_path: Path) -> None:
    settings_path = tmp_path / "conf" / "settings.json"
    sm = SettingsManager(str(settings_path))
    sm.set("thumbnail_target_size", 128)
    sm.set("dither", True)

    assert json.loads(settings_path.read_text(encoding="utf-8")) == {"thumbnail_target_size": 128, "dither": True}
    again = SettingsManager(str(settings_path))
    assert again.thumbnail_target_size == 128
    assert again.dither is True


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"thumbnail_target_size": "big", "loader_workers": 0}), encoding="utf-8")
    sm = SettingsManager(str(settings_path))
    assert sm.thumbnail_target_size == 320
    assert sm.loader_workers == 1


def test_corrupt_file_is_ignored(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text("{not json", encoding="utf-8")
    sm = SettingsManager(str(settings_path))
    assert sm.data == {}
    assert sm.thumbnail_target_size == 320


def test_in_memory_settings_do_not_write(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    sm = SettingsManager()
    sm.set("dither", True)
    assert sm.dither is True
    assert list(tmp_path.iterdir()) == []
