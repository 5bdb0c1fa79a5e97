################################################################################
# DOCKA-VAULT
#
# @file:        logging.py
# @module:      docka_vault.helpers.logging
# @description: Console and rotating-file logging with structured extra fields.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - get_logger() hands out loggers below the "docka_vault" namespace
# - StructuredFormatter appends extra={...} fields as key=value pairs
# - LogManager configures handlers once per process (idempotent)
################################################################################

"""
Logging setup for docka-vault.

Every module obtains its logger via ``get_logger(__name__)``. The CLI calls
``setup_logging()`` once; until then records propagate to the root logger
unchanged, which keeps pytest's caplog working.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from .constants import LOG_FORMAT, LOG_DATE_FORMAT

ROOT_LOGGER_NAME = "docka_vault"

# LogRecord attributes that are never treated as structured extras
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {
    "message",
    "asctime",
}


class Colors:
    """ANSI color codes for console output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"

    LEVELS = {
        "DEBUG": DIM,
        "INFO": CYAN,
        "WARNING": YELLOW,
        "ERROR": RED,
        "CRITICAL": BOLD + RED,
    }


class StructuredFormatter(logging.Formatter):
    """
    Formatter that appends structured ``extra`` fields to the message.

    ``logger.info("Stopped", extra={"project": "web"})`` renders as
    ``... - Stopped [project=web]``.
    """

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = LOG_DATE_FORMAT, use_colors: bool = False):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extras:
            fields = " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
            message = f"{message} [{fields}]"

        if self.use_colors:
            color = Colors.LEVELS.get(record.levelname, "")
            if color:
                message = f"{color}{message}{Colors.RESET}"
        return message


class LogManager:
    """Configures the docka_vault logger hierarchy once per process."""

    def __init__(self):
        self._configured = False
        self.log_file: Optional[Path] = None

    @property
    def configured(self) -> bool:
        return self._configured

    def setup(
        self,
        level: Union[str, int] = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        max_size_mb: int = 50,
        backup_count: int = 5,
        use_colors: Optional[bool] = None,
    ) -> logging.Logger:
        """
        Attach console and (optional) rotating file handlers.

        Args:
            level: Log level name or number
            log_file: Optional log file path; skipped with a warning if not writable
            max_size_mb: Rotate the file after this many megabytes
            backup_count: Number of rotated files to keep
            use_colors: Force ANSI colors on/off (default: only on a TTY)

        Returns:
            The package root logger
        """
        if isinstance(level, str):
            level = getattr(logging, level.upper(), logging.INFO)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        root.setLevel(level)
        root.propagate = False

        if use_colors is None:
            use_colors = sys.stderr.isatty()

        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(StructuredFormatter(use_colors=use_colors))
        root.addHandler(console)

        self.log_file = None
        if log_file:
            path = Path(log_file).expanduser()
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    path,
                    maxBytes=max(1, int(max_size_mb)) * 1024 * 1024,
                    backupCount=max(0, int(backup_count)),
                    encoding="utf-8",
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(StructuredFormatter())
                root.addHandler(file_handler)
                self.log_file = path
            except OSError as e:
                root.warning(f"Cannot write log file {path}: {e}")

        self._configured = True
        return root


log_manager = LogManager()


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    **kwargs,
) -> logging.Logger:
    """Shortcut for ``log_manager.setup()``."""
    return log_manager.setup(level=level, log_file=log_file, **kwargs)


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the docka_vault namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
