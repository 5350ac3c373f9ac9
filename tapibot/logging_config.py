"""Logging setup for the tapibot CLI and embedding applications.

``setup_logging()`` replaces the root handlers with a console handler and,
when a directory is given, a size-rotated ``tapibot.log``. Both handlers carry
the ``[op:chat:update]`` prefix from :mod:`tapibot.log_context` and mask bot
tokens, which Telegram embeds in every API and default webhook URL.
"""

from __future__ import annotations

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tapibot.log_context import ContextFilter

LOG_FILE_NAME = "tapibot.log"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUPS = 5

CONSOLE_FMT = "%(asctime)s %(levelname)-8s %(name)s: %(ctx)s%(message)s"
FILE_FMT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(ctx)s%(message)s"

# Bot API tokens look like "<bot id>:<35 url-safe chars>".
_TOKEN_RE = re.compile(r"(?<!\d)\d{5,}:[A-Za-z0-9_-]{20,}")
_MASK = "<token>"

_LEVEL_STYLES = {
    logging.DEBUG: "2",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "1;31",
}

# Libraries whose INFO output either duplicates ours or echoes request paths.
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.server", "aiohttp.client")

logger = logging.getLogger(__name__)


def redact_tokens(text: str) -> str:
    return _TOKEN_RE.sub(_MASK, text)


class TokenRedactingFilter(logging.Filter):
    """Render the message once and replace anything shaped like a bot token."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class _ConsoleFormatter(logging.Formatter):
    """Wraps whole lines in an ANSI style by level; INFO stays plain."""

    def __init__(self, *, color: bool) -> None:
        super().__init__(CONSOLE_FMT, datefmt="%H:%M:%S")
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        style = _LEVEL_STYLES.get(record.levelno) if self._color else None
        return f"\x1b[{style}m{line}\x1b[0m" if style else line


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_ConsoleFormatter(color=sys.stderr.isatty()))
    return handler


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FMT))
    return handler


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Install tapibot's handlers on the root logger.

    Safe to call again (the CLI does once the config is known): previous
    root handlers are closed and replaced. ``verbose`` forces DEBUG.
    """
    if verbose:
        level = logging.DEBUG

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(level)

    handlers = [_console_handler(level)]
    if log_dir is not None:
        handlers.append(_file_handler(log_dir))
    for handler in handlers:
        handler.addFilter(ContextFilter())
        handler.addFilter(TokenRedactingFilter())
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(
        "Logging ready (level=%s, file=%s)",
        logging.getLevelName(level),
        log_dir / LOG_FILE_NAME if log_dir is not None else "off",
    )
