"""Logging configuration for the Tallr service and CLI."""

import logging
from typing import Optional

from tallr.core.config import GlobalConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def configure_logging(config: GlobalConfig, level: Optional[str] = None) -> None:
    """Log to the console and append to the log file under the data directory.

    A log file that cannot be opened is reported and skipped; console
    logging still works.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    log_path = config.log_path
    file_error: Optional[OSError] = None
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    except OSError as e:
        file_error = e

    logging.basicConfig(
        level=getattr(logging, level or config.log_level),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    if file_error is not None:
        logger.warning(f"Could not open log file {log_path}: {file_error}")
    else:
        logger.info(f"Logging initialized - log file: {log_path}")
