"""
Logging setup shared by every module.
Console output plus a size-rotated file under LOG_DIR (defaults to ./logs).
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from gym_access.config import settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that log every outbound request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")

_configured = False


def _log_dir() -> str:
    if settings.LOG_DIR:
        return settings.LOG_DIR
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    return os.path.join(project_root, "logs")


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    handlers = [logging.StreamHandler()]
    if settings.LOG_TO_FILE:
        log_dir = _log_dir()
        os.makedirs(log_dir, exist_ok=True)
        # 10 × 5MB files
        handlers.append(RotatingFileHandler(
            filename=os.path.join(log_dir, "access_events.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        ))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Named logger; the root logger is configured on first call."""
    _configure_root_logger()
    return logging.getLogger(name)
