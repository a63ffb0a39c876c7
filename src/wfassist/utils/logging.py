"""Logging configuration driven by :class:`~wfassist.services.settings.Settings`.

``debug_logging`` selects the level and ``log_dir`` the directory of the
rotating ``wfassist.log`` file. The HTTP stack is kept at WARNING so request
traces come from :mod:`wfassist.services.transport` only.
"""

from __future__ import annotations

import logging
import logging.handlers
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..services.settings import Settings

__all__ = ["LoggingOptions", "configure_logging", "configure_logging_from_settings", "get_log_path"]

LOG_FILE_NAME = "wfassist.log"
DEFAULT_LOG_DIR = Path.home() / ".wfassist" / "logs"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_HTTP_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore")

_active: LoggingOptions | None = None


@dataclass(slots=True, frozen=True)
class LoggingOptions:
    """Resolved logging configuration."""

    level: int = logging.INFO
    log_dir: Path = DEFAULT_LOG_DIR
    console: bool = True
    max_bytes: int = 1_000_000
    backup_count: int = 3

    @classmethod
    def from_settings(cls, settings: Settings, *, console: bool = True) -> LoggingOptions:
        log_dir = Path(settings.log_dir).expanduser() if settings.log_dir else DEFAULT_LOG_DIR
        level = logging.DEBUG if settings.debug_logging else logging.INFO
        return cls(level=level, log_dir=log_dir, console=console)

    @property
    def log_path(self) -> Path:
        return self.log_dir / LOG_FILE_NAME


def configure_logging(options: LoggingOptions | None = None, *, force: bool = False) -> Path:
    """Install the root handlers described by ``options`` and return the log file.

    Calling again with the same options keeps the current handlers. Different
    options, or ``force``, replace them.
    """

    global _active
    options = options or LoggingOptions()
    if _active == options and not force:
        return options.log_path

    options.log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
    handlers = [_file_handler(options, formatter)]
    if options.console:
        handlers.append(_with_formatter(logging.StreamHandler(), options.level, formatter))

    logging.basicConfig(level=options.level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    http_level = max(options.level, logging.WARNING)
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    _active = options
    logging.getLogger(__name__).debug(
        "Logging to %s at %s", options.log_path, logging.getLevelName(options.level)
    )
    return options.log_path


def configure_logging_from_settings(
    settings: Settings, *, console: bool = True, force: bool = False
) -> Path:
    return configure_logging(LoggingOptions.from_settings(settings, console=console), force=force)


def get_log_path() -> Path | None:
    """Return the log file of the active configuration, if any."""

    return _active.log_path if _active is not None else None


def _file_handler(options: LoggingOptions, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        options.log_path,
        maxBytes=options.max_bytes,
        backupCount=options.backup_count,
        encoding="utf-8",
    )
    return _with_formatter(handler, options.level, formatter)


def _with_formatter(
    handler: logging.Handler, level: int, formatter: logging.Formatter
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler
