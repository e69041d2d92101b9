"""Logging configuration: JSON lines to stdout and a rotating file."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from pythonjsonlogger import jsonlogger

from chainpulse.core.settings import Settings, settings as default_settings

HANDLER_PREFIX = "chainpulse."
LOG_FILE_NAME = "chainpulse.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Libraries whose INFO output would drown the probe logs
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _formatter(settings: Settings) -> jsonlogger.JsonFormatter:
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "@timestamp", "levelname": "severity"},
        static_fields={"app": settings.app_name, "version": settings.app_version},
    )


def _handlers(settings: Settings, level: int) -> List[logging.Handler]:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    formatter = _formatter(settings)

    console = logging.StreamHandler(sys.stdout)
    console.set_name(f"{HANDLER_PREFIX}console")

    rotating = RotatingFileHandler(
        settings.log_dir / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
    )
    rotating.set_name(f"{HANDLER_PREFIX}file")

    for handler in (console, rotating):
        handler.setFormatter(formatter)
        handler.setLevel(level)
    return [console, rotating]


def _reset_root() -> logging.Logger:
    root = logging.getLogger()
    for handler in list(root.handlers):
        if (handler.get_name() or "").startswith(HANDLER_PREFIX):
            root.removeHandler(handler)
            handler.close()
    return root


def _quiet_noisy_loggers() -> None:
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Route all loggers through JSON handlers on the root logger.

    Safe to call repeatedly (one app per test, CLI then server): handlers
    installed by an earlier call are replaced, not duplicated.
    """
    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    root = _reset_root()
    root.setLevel(level)
    for handler in _handlers(settings, level):
        root.addHandler(handler)
    _quiet_noisy_loggers()

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"log_level": settings.log_level, "log_dir": str(settings.log_dir)},
    )


def setup_cli_logging(verbose: bool = False, settings: Optional[Settings] = None) -> None:
    """JSON logs on stderr only, so stdout carries just the report.

    Warnings and errors are always shown; ``verbose`` adds DEBUG.
    """
    settings = settings or default_settings
    level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(f"{HANDLER_PREFIX}cli")
    handler.setFormatter(_formatter(settings))
    handler.setLevel(level)

    root = _reset_root()
    root.setLevel(level)
    root.addHandler(handler)
    _quiet_noisy_loggers()
