"""Unified logging for rss_reader.

All modules get their logger through UnifiedLogger so handlers are set up in
one place. Output goes to stderr because stdout carries the MCP stdio
transport.
"""

import logging
import sys
from typing import List, Optional

from rss_reader.config import ServerConfig

LOGGER_NAME = "rss_reader"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class UnifiedLogger:
    """Process-wide logging setup and logger access."""

    _handlers: List[logging.Handler] = []

    @classmethod
    def initialize_default(cls, config: Optional[ServerConfig] = None) -> None:
        """Configure the rss_reader logger from config.

        Safe to call more than once; handlers installed by an earlier call are
        replaced.

        Args:
            config: Server configuration (defaults used if not provided)
        """
        if config is None:
            config = ServerConfig()

        root = logging.getLogger(LOGGER_NAME)
        for handler in cls._handlers:
            root.removeHandler(handler)
            handler.close()
        cls._handlers = []

        formatter = logging.Formatter(LOG_FORMAT)

        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        cls._handlers.append(stream_handler)

        if config.log_file is not None:
            config.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            cls._handlers.append(file_handler)

        for handler in cls._handlers:
            root.addHandler(handler)

        root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
        root.propagate = False

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger under the rss_reader hierarchy.

        Args:
            name: Usually the calling module's __name__

        Returns:
            Standard library logger
        """
        if not name.startswith(LOGGER_NAME):
            name = f"{LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @classmethod
    def close(cls) -> None:
        """Detach and close all installed handlers."""
        root = logging.getLogger(LOGGER_NAME)
        for handler in cls._handlers:
            root.removeHandler(handler)
            handler.close()
        cls._handlers = []
