"""Tests for core.settings helpers."""

from __future__ import annotations

import json
from pathlib import Path

from core.settings import SETTINGS_VERSION, load_settings, merge_defaults, save_settings


def test_merge_defaults_includes_backup_block() -> None:
    merged = merge_defaults({})

    backup = merged["backup"]
    assert backup["enable"] is True
    assert (backup["daily_hour"], backup["daily_minute"]) == (3, 0)
    assert backup["timezone"] == "America/Chicago"
    assert backup["max_file_mb"] == 50
    assert backup["warn_total_mb"] == 500
    assert backup["retention"] == {"daily": 7, "weekly": 4, "monthly": 3}


def test_save_settings_fills_missing_backup_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    legacy = {"backup": {"retention": {"daily": 14}}}
    path.write_text(json.dumps(legacy), encoding="utf-8")

    loaded = load_settings(tmp_path)
    assert loaded["backup"]["retention"] == {"daily": 14, "weekly": 4, "monthly": 3}
    assert loaded["version"] == SETTINGS_VERSION

    save_settings(legacy, tmp_path)
    upgraded = json.loads(path.read_text(encoding="utf-8"))

    assert upgraded["backup"]["retention"]["daily"] == 14
    assert upgraded["backup"]["warn_total_mb"] == 500
    assert upgraded["working_dir"] == str(tmp_path)


def test_unknown_keys_are_reported(tmp_path: Path) -> None:
    payload = {"backup": {"retention": {"yearly": 1}, "encrypt": True}, "theme": "dark"}
    (tmp_path / "settings.json").write_text(json.dumps(payload), encoding="utf-8")

    load_settings(tmp_path)

    report = json.loads((tmp_path / "logs" / "settings_unknown.json").read_text(encoding="utf-8"))
    assert report["unknown"] == ["backup.encrypt", "backup.retention.yearly", "theme"]


def test_corrupt_settings_fall_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    loaded = load_settings(tmp_path)

    assert loaded["backup"]["enable"] is True
