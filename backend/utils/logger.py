"""Process-wide logging setup for the coordination engine."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from backend.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
# Third-party loggers that drown request and scheduling lines at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "multipart")

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once.

    Engine modules never attach their own handlers; scheduling runs and
    request resolutions all go through the root logger in one line format.
    """

    global _configured
    if _configured:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
