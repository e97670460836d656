"""
tests/test_config.py — YAML Configuration Loader Tests
=======================================================
"""

from __future__ import annotations

import pytest

from clubpoints.config import load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_full_file(self, tmp_path):
        cfg = load_config(_write(tmp_path, """
club_name: "SEP Points"
dashboard_port: 8080
starting_points: 50
airtable:
  base_id: appABC
  table_name: Attendance
  person_field: Name
  live_sync_interval_seconds: 15
"""))
        assert cfg.club_name == "SEP Points"
        assert cfg.dashboard_port == 8080
        assert cfg.starting_points == 50
        assert cfg.airtable_base_id == "appABC"
        assert cfg.airtable_table_name == "Attendance"
        assert cfg.airtable_person_field == "Name"
        assert cfg.live_sync_interval_seconds == 15

    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, "club_name: C\ndashboard_port: 8000\n"))
        assert cfg.starting_points == 100
        assert cfg.airtable_base_id is None
        assert cfg.airtable_person_field == "Person"
        assert cfg.live_sync_interval_seconds == 30

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "absent.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "club_name: C\n"))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, "club_name: C\ndashboard_port: 8000\n"))
        with pytest.raises(AttributeError):
            cfg.club_name = "other"
