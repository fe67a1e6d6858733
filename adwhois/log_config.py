"""Application logging setup.

Log files live in `log_dir` (default `data/logs`, relative to CWD) and are
rotated daily at midnight by TimedRotatingFileHandler; `retention_days`
rotated files are kept. A console handler mirrors everything to stderr
for `docker logs`.
"""
from __future__ import annotations

import glob
import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOG_FILE = "adwhois.log"
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ldap3 logs every PDU at DEBUG; uvicorn.access is noisy at INFO.
_NOISY_LOGGERS = ("ldap3", "uvicorn.access")

# Handlers installed by setup_logging, replaced on reconfiguration.
_installed: list[logging.Handler] = []


def _parse_level(level: str) -> tuple[str, int]:
    name = (level or "").strip().upper()
    if name not in _LEVELS:
        name = "INFO"
    return name, getattr(logging, name)


def _file_handler(path: str, retention_days: int) -> logging.Handler:
    handler = TimedRotatingFileHandler(
        os.path.join(path, _LOG_FILE),
        when="midnight",
        backupCount=retention_days,
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def _drop_installed(root: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()


def setup_logging(
    level: str = "INFO",
    log_dir: str = "data/logs",
    retention_days: int = 30,
) -> None:
    """Configure the root logger: rotating file handler + console handler.

    Safe to call again; the previous handlers are closed and replaced.
    """
    level_name, log_level = _parse_level(level)
    keep_days = min(365, max(1, int(retention_days or 30)))

    path = os.path.abspath(log_dir or "data/logs")
    os.makedirs(path, exist_ok=True)

    root = logging.getLogger()
    _drop_installed(root)

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    for handler in (_file_handler(path, keep_days), logging.StreamHandler()):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed.append(handler)
    root.setLevel(log_level)

    _cleanup_old_logs(path, keep_days)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logging.getLogger("adwhois").info(
        "Logging configured: level=%s, dir=%s, retention=%d days",
        level_name, path, keep_days,
    )


def _cleanup_old_logs(log_dir: str, retention_days: int) -> None:
    """Delete rotated log files older than retention_days."""
    cutoff = time.time() - retention_days * 86400
    for f in glob.glob(os.path.join(log_dir, f"{_LOG_FILE}.*")):
        try:
            if os.path.getmtime(f) < cutoff:
                os.remove(f)
        except OSError:
            pass
