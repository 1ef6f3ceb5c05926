"""
Logging for modledger.

Every module asks for ``get_logger("<component>")`` and receives a child of
the ``modledger`` package logger. Handlers are attached once, to the package
logger only:

* a console handler that prints through prompt_toolkit (INFO and up, ANSI
  colours when stderr is a terminal);
* a rotating file handler under ``logs/`` shared by the whole session.

``MODLEDGER_LOG_LEVEL`` overrides the console level and ``MODLEDGER_LOG_DIR``
moves the log directory.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

ROOT_LOGGER_NAME = "modledger"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H-%M-%S"

LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[38;5;88m",
}
RESET = "\033[0m"

MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# A same-day file touched this recently is appended to instead of starting a new one
REUSE_WINDOW_SECONDS = 60

# Third-party loggers and the highest level they may emit below
NOISY_LOGGERS = {
    "discord": logging.ERROR,
    "discord.gateway": logging.ERROR,
    "discord.client": logging.ERROR,
    "discord.http": logging.ERROR,
    "websockets": logging.ERROR,
    "aiohttp": logging.ERROR,
    "aiosqlite": logging.WARNING,
    "httpx": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}

_session_log_file: Path | None = None


class ColorFormatter(logging.Formatter):
    """Wraps the formatted line in the colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        colour = LEVEL_COLOURS.get(record.levelno)
        return f"{colour}{line}{RESET}" if colour else line


class PromptToolkitHandler(logging.Handler):
    """Console handler that keeps log lines from tearing an active prompt_toolkit prompt."""

    def __init__(self, formatter: logging.Formatter | None = None) -> None:
        super().__init__()
        if formatter is not None:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def logs_dir() -> Path:
    """Directory for log files; ``MODLEDGER_LOG_DIR`` or ``<repo>/logs``."""
    override = os.getenv("MODLEDGER_LOG_DIR")
    if override:
        return Path(override).resolve()
    return (Path(__file__).parents[3] / "logs").resolve()


def get_log_filepath() -> Path:
    """
    Return the file every handler of this process writes to.

    Picked on first call: the newest ``<today>*.log`` when it was modified in
    the last minute (a quick restart keeps appending), otherwise a fresh
    timestamped file.
    """
    global _session_log_file

    if _session_log_file is not None:
        return _session_log_file

    directory = logs_dir()
    directory.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    candidates = [p for p in directory.glob(f"{now:%Y-%m-%d}*.log") if p.is_file()]
    newest = max(candidates, key=lambda p: p.stat().st_mtime, default=None)

    if newest is not None and now.timestamp() - newest.stat().st_mtime < REUSE_WINDOW_SECONDS:
        _session_log_file = newest
    else:
        _session_log_file = directory / f"{now.strftime(DATE_FORMAT)}.log"
    return _session_log_file


def _console_level() -> int:
    name = os.getenv("MODLEDGER_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _build_handlers() -> list[logging.Handler]:
    plain = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = PromptToolkitHandler(
        formatter=ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain
    )
    console.setLevel(_console_level())

    log_file = RotatingFileHandler(
        get_log_filepath(),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    log_file.setLevel(logging.DEBUG)
    log_file.setFormatter(plain)

    return [console, log_file]


def quiet_libraries() -> None:
    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def configure_logging() -> logging.Logger:
    """
    Attach the console and file handlers to the package logger.

    Safe to call repeatedly; handlers are only added the first time.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    root.setLevel(logging.DEBUG)
    root.propagate = False
    for handler in _build_handlers():
        root.addHandler(handler)
    quiet_libraries()
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the ``modledger.<name>`` logger, configuring logging on first use."""
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def handle_exception(exc_type, exc_value, exc_traceback) -> None:
    """``sys.excepthook`` replacement; Ctrl+C still exits through the default hook."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    get_logger("crash").critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))
