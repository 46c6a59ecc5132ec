"""
Logging setup for the detector process.

Everything goes through the root logger; modules call logging.info(...)
directly. The file handler rotates so an unattended station does not fill
its disk with per-cycle debug output.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO.
QUIET_LOGGERS = ("uvicorn.access", "matplotlib", "PIL")


def setup_logging(
    log_path: str,
    log_level: str,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the root logger with a rotating file handler and a console handler.

    Args:
        log_path: Log file path; its directory is created if missing.
        log_level: Level name, e.g. "INFO" or "DEBUG".
        max_bytes: Rotate the file after this many bytes.
        backup_count: Rotated files to keep.

    Returns:
        The root logger.
    """
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count),
            logging.StreamHandler(),
        ],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger()
