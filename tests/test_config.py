"""Tests for configuration loading and environment overrides."""

from __future__ import annotations

import json

from lanoel.config import EventConfig


def test_missing_file_is_created_with_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("MAX_VOTES", raising=False)
    path = tmp_path / "config.json"

    config = EventConfig(str(path))

    assert path.exists()
    assert config.get("server", "port") == 3000
    assert config.max_votes == 8
    assert json.loads(path.read_text(encoding="utf-8"))["voting"]["max_votes"] == 8


def test_file_values_are_merged_over_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("PORT", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": {"port": 8000}}), encoding="utf-8")

    config = EventConfig(str(path))

    assert config.get("server", "port") == 8000
    assert config.get("server", "host") == "0.0.0.0"
    # defaults are not mutated by the merge
    assert EventConfig.DEFAULT_CONFIG["server"]["port"] == 3000


def test_env_overrides_are_typed(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PORT", "4000")
    monkeypatch.setenv("ADMIN_PASSWORD", "1234")
    monkeypatch.setenv("MAX_VOTES", "3")

    config = EventConfig(str(tmp_path / "config.json"))

    assert config.get("server", "port") == 4000
    assert config.get("auth", "admin_password") == "1234"
    assert config.max_votes == 3


def test_invalid_values_fall_back(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.delenv("MAX_VOTES", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"voting": {"max_votes": 0}}), encoding="utf-8")

    config = EventConfig(str(path))

    assert config.get("server", "port") == 3000
    assert config.max_votes == 8


def test_malformed_file_uses_defaults(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    config = EventConfig(str(path))

    assert config.get("event_name") == "LAN Noel"
    assert config.get("missing", "key") is None
