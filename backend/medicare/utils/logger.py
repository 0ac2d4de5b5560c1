import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from medicare.config import Settings, get_settings

ROOT_LOGGER = "medicare"

DATEFMT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def _level(settings: Settings) -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return logging.DEBUG if settings.APP_DEBUG else logging.INFO


def _rotating(path: Path, level: int, settings: Settings) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path, maxBytes=settings.LOG_MAX_BYTES, backupCount=settings.LOG_BACKUP_COUNT
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATEFMT))
    return handler


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach stdout plus rotating app/error files to the package logger.

    Safe to call again: existing handlers are replaced.
    """
    root = logging.getLogger(ROOT_LOGGER)
    level = _level(settings)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATEFMT))
    root.addHandler(console)

    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating(log_dir / "app.log", max(level, logging.INFO), settings))
        root.addHandler(_rotating(log_dir / "errors.log", logging.ERROR, settings))
    return root


configure_logging(get_settings())


def get_logger(name: str | None = None) -> logging.Logger:
    """Package logger, or its ``name`` child (``medicare.<name>``)."""
    root = logging.getLogger(ROOT_LOGGER)
    return root.getChild(name) if name else root
