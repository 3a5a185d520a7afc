from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from asset_mirror.config.models import FileLoggingSettings, LoggingSettings

_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-request client and server chatter; the engine logs its own outcome per asset.
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.internal")


def _file_handler(settings: FileLoggingSettings) -> Optional[logging.Handler]:
    file_path = settings.path.strip()
    if not file_path:
        return None
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=settings.rotation.backup_count,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def init_logging(settings: LoggingSettings) -> None:
    """
    Route asset-mirror logs to stderr and, when ``file.path`` is set, to a file rotated at midnight.

    Replaces any handlers already on the root logger, so calling it again reconfigures logging.
    """
    level = logging.getLevelNamesMapping().get(settings.level.upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {settings.level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        file_handler = _file_handler(settings.file)
    except OSError:
        file_handler = None
        logging.getLogger(__name__).error(
            "File logging handler failed to initialize. path=%s", settings.file.path, exc_info=True
        )
    if file_handler is not None:
        handlers.append(file_handler)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = ["init_logging"]
