"""Configuration for rss_reader.

Settings come from environment variables so the MCP server can be configured
from a client's server entry without a config file.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _default_db_path() -> Path:
    return Path.home() / ".rss_reader" / "rss_reader.db"


def _default_export_dir() -> Path:
    return Path(tempfile.gettempdir())


@dataclass
class ServerConfig:
    """Runtime settings for the server and the feed service."""

    name: str = "rss_reader"
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    db_path: Path = field(default_factory=_default_db_path)
    export_dir: Path = field(default_factory=_default_export_dir)
    fetch_timeout: float = 30.0
    user_agent: str = "RSSReader/1.0 (RSS Feed Reader)"
    refresh_debounce: float = 0.5


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def load_config() -> ServerConfig:
    """Build a ServerConfig from RSS_READER_* environment variables.

    Returns:
        ServerConfig with defaults for anything not set

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    config = ServerConfig()

    config.name = os.environ.get("RSS_READER_NAME") or config.name
    config.log_level = (os.environ.get("RSS_READER_LOG_LEVEL") or config.log_level).upper()

    log_file = os.environ.get("RSS_READER_LOG_FILE")
    if log_file:
        config.log_file = Path(log_file).expanduser()

    db_path = os.environ.get("RSS_READER_DB_PATH")
    if db_path:
        config.db_path = Path(db_path).expanduser()

    export_dir = os.environ.get("RSS_READER_EXPORT_DIR")
    if export_dir:
        config.export_dir = Path(export_dir).expanduser()

    config.user_agent = os.environ.get("RSS_READER_USER_AGENT") or config.user_agent
    config.fetch_timeout = _float_from_env("RSS_READER_FETCH_TIMEOUT", config.fetch_timeout)
    config.refresh_debounce = _float_from_env(
        "RSS_READER_REFRESH_DEBOUNCE", config.refresh_debounce
    )

    return config


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()

    return _config
