"""Tests for settings and the user config file."""

from __future__ import annotations

import json

import pytest

from gator.config import Settings, UserConfig, resolve_database_url
from gator.errors import ConfigError


def test_missing_config_file_is_empty(tmp_path):
    config = UserConfig.read(tmp_path / "absent.json")
    assert config.current_user_name is None
    assert config.db_url is None


def test_set_user_writes_file(tmp_path):
    path = tmp_path / "nested" / "gatorconfig.json"
    config = UserConfig.read(path)
    config.set_user("alice", path)

    data = json.loads(path.read_text())
    assert data["current_user_name"] == "alice"
    assert UserConfig.read(path).current_user_name == "alice"


def test_invalid_config_file_raises(tmp_path):
    path = tmp_path / "gatorconfig.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        UserConfig.read(path)


def test_config_file_database_url_wins(tmp_path):
    settings = Settings(database_url="sqlite+aiosqlite:///env.db", config_path=tmp_path / "gatorconfig.json")
    assert resolve_database_url(settings) == "sqlite+aiosqlite:///env.db"

    UserConfig(db_url="postgresql+asyncpg://localhost/gator").write(settings.config_path)
    assert resolve_database_url(settings) == "postgresql+asyncpg://localhost/gator"
