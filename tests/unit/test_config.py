"""Unit tests for environment configuration."""

from pathlib import Path

import pytest

from rss_reader.config import ServerConfig, load_config


def test_defaults(monkeypatch):
    for name in (
        "RSS_READER_NAME",
        "RSS_READER_LOG_LEVEL",
        "RSS_READER_LOG_FILE",
        "RSS_READER_DB_PATH",
        "RSS_READER_EXPORT_DIR",
        "RSS_READER_FETCH_TIMEOUT",
        "RSS_READER_USER_AGENT",
        "RSS_READER_REFRESH_DEBOUNCE",
    ):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config == ServerConfig()
    assert config.db_path.name == "rss_reader.db"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("RSS_READER_NAME", "reader")
    monkeypatch.setenv("RSS_READER_LOG_LEVEL", "debug")
    monkeypatch.setenv("RSS_READER_DB_PATH", str(tmp_path / "db.sqlite"))
    monkeypatch.setenv("RSS_READER_EXPORT_DIR", str(tmp_path))
    monkeypatch.setenv("RSS_READER_FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("RSS_READER_REFRESH_DEBOUNCE", "0")

    config = load_config()

    assert config.name == "reader"
    assert config.log_level == "DEBUG"
    assert config.db_path == Path(tmp_path / "db.sqlite")
    assert config.export_dir == tmp_path
    assert config.fetch_timeout == 2.5
    assert config.refresh_debounce == 0.0


def test_bad_number_names_variable(monkeypatch):
    monkeypatch.setenv("RSS_READER_FETCH_TIMEOUT", "soon")

    with pytest.raises(ValueError, match="RSS_READER_FETCH_TIMEOUT"):
        load_config()
