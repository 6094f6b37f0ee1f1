"""
Custodian Logging
=================

Process-wide logging setup for the wallet core. Console output goes through a
`rich` handler with wallet-specific highlighting; a rotating log file is added
when LOG_FILE_OUTPUT is enabled in `.env`.

Usage:
    >>> from custodian.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Wallet created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


LOG_FILE_PATH = Path.cwd() / "logs" / "custodian.log"

_THEME = Theme(
    {
        "custodian.address":   "cyan",
        "custodian.amount":    "bold white",
        "custodian.hash":      "dim cyan",
        "custodian.level":     "bold",
        "custodian.rejected":  "bold red",
        "custodian.tag":       "bold magenta",
        "custodian.timestamp": "bold cyan",
    }
)


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escapes and control characters.

    Addresses and payloads reach the log verbatim from callers (CWE-117).
    """

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"       # CSI sequences
        r"|\x1b[@-Z\\-_]"                # lone ESC sequences
        r"|[\x00-\x08\x0B-\x1F\x7F]"     # control chars except tab / newline
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._unsafe_re.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class CustodianLogHighlighter(RegexHighlighter):
    """Highlights addresses, commitment hashes, amounts, audit tags and rejections."""

    base_style = "custodian."
    highlights = [
        r"(?P<hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<level>\b(DEBUG|INFO|WARNING|ERROR|CRITICAL)\b)",
        r"(?P<rejected>\bREJECTED\b)",
        r"(?P<amount>\bamount=\d+\b)",
        r"(?P<tag>\[[a-z_]+/[a-z_]+\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


class LogManager:
    """
    Singleton owning the root logger configuration.

    `configure` runs at most once; later calls are no-ops. `get_logger`
    configures lazily with the `.env` defaults.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
        return cls._instance

    @staticmethod
    def _numeric_level(level: Optional[str]) -> int:
        return getattr(logging, str(level or LOG_LEVEL).upper(), logging.INFO)

    def _console_handler(self) -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=_THEME, highlight=False, stderr=True),
            highlighter=CustodianLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            show_path=False,
            show_time=False,
            show_level=False,
            markup=False,
        )

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install the console and (optionally) rotating file handlers.

        Args:
            log_level: Level name; defaults to LOG_LEVEL from `.env`
            log_file: Log file path; defaults to ./logs/custodian.log
            console_output: Log to stderr
            file_output: Log to a rotating file; defaults to LOG_FILE_OUTPUT
        """
        with self._lock:
            if self._configured:
                return

            level = self._numeric_level(log_level)
            root_logger = logging.getLogger()
            root_logger.setLevel(level)
            root_logger.handlers.clear()

            # Timestamps are UTC regardless of host timezone
            formatter = TerminalSafeFormatter(fmt=str(LOG_FORMAT), datefmt=f"{LOG_DATE_FORMAT} UTC")
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(
                    logging.handlers.RotatingFileHandler(
                        filename=str(path),
                        maxBytes=LOG_MAX_FILE_SIZE,
                        backupCount=LOG_BACKUP_COUNT,
                        encoding="utf-8",
                    )
                )

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root_logger.addHandler(handler)

            self._configured = True

    def set_level(self, log_level: str) -> None:
        """Change the level of the root logger and all of its handlers."""
        level = self._numeric_level(log_level)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name* (usually `__name__`), configuring logging on first use."""
    return _manager.get_logger(name)


def set_log_level(level: str) -> None:
    """Adjust the active log level (used when loading configuration)."""
    _manager.set_level(level)
