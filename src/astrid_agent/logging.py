"""Logging setup for the agent process.

All component loggers live under ``astrid_agent`` and share one rotating log
file plus an optional console stream. Model output, git stderr and webhook
payloads end up in log lines, so every handler installed here carries a
:class:`RedactingFilter` that masks API keys, tokens and signatures.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR_ENV = "ASTRID_LOG_DIR"
LOG_LEVEL_ENV = "ASTRID_LOG_LEVEL"

DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "astrid_agent.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = "INFO"

ROOT_LOGGER_NAME = "astrid_agent"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Most specific first: sk-ant- must win over the generic sk- key
REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"gh[po]_[a-zA-Z0-9]{36}"), "[GITHUB_TOKEN]"),
    (re.compile(r"github_pat_[a-zA-Z0-9_]{82}"), "[GITHUB_TOKEN]"),
    (re.compile(r"sk-ant-[a-zA-Z0-9_-]+"), "[ANTHROPIC_KEY]"),
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}"), "[OPENAI_KEY]"),
    (re.compile(r"AIza[a-zA-Z0-9_-]{35}"), "[GOOGLE_KEY]"),
    (re.compile(r"Bearer [a-zA-Z0-9._-]+"), "Bearer [REDACTED]"),
    (re.compile(r"sha256=[a-f0-9]{64}"), "sha256=[REDACTED]"),
    (re.compile(r"(token|key|secret)=[a-zA-Z0-9._-]+"), r"\1=[REDACTED]"),
]


def sanitize_for_log(text: str) -> str:
    """Mask credentials in text bound for a log line."""
    for pattern, replacement in REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def shorten_for_log(text: str, limit: int = 500) -> str:
    """Cut text to ``limit`` characters for a debug line.

    Unlike the sandbox's tool-output cap, the remainder is counted so the
    reader knows how much was left out.
    """
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text) - limit} more chars]"


class RedactingFilter(logging.Filter):
    """Handler filter that runs the formatted message through sanitize_for_log.

    The record is rewritten in place with its arguments merged, so every
    handler after this one sees the masked text.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = sanitize_for_log(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _resolve_level(level: str | None) -> tuple[str, int]:
    name = (level or os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        return DEFAULT_LOG_LEVEL, logging.INFO
    return name, value


def setup_logging(
    log_dir: str | Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    level: str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Attach the rotating file and console handlers to the agent logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        log_dir: Directory for the log file. Falls back to ``ASTRID_LOG_DIR``,
            then ``logs`` in the working directory.
        log_file: File name inside ``log_dir``.
        max_bytes: Size at which the file rotates.
        backup_count: Rotated files to keep.
        level: DEBUG, INFO, WARNING or ERROR. Falls back to
            ``ASTRID_LOG_LEVEL``, then INFO. Unknown names mean INFO.
        console: Also log to stderr.

    Returns:
        The ``astrid_agent`` logger.
    """
    log_dir = Path(log_dir or os.environ.get(LOG_DIR_ENV) or DEFAULT_LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    level_name, log_level = _resolve_level(level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_dir / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    redactor = RedactingFilter()
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        logger.addHandler(handler)

    logger.info("Logging to %s at %s", log_dir / log_file, level_name)
    return logger
