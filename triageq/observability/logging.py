from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
LEVEL_ENV_VAR: Final[str] = "TRIAGEQ_LOG_LEVEL"


def _resolve_level(level_name: str | None = None) -> int:
    name = (level_name or os.getenv(LEVEL_ENV_VAR, "INFO")).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _attach_root_handler(level: int) -> None:
    global _HANDLER_ATTACHED

    root = logging.getLogger()
    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(handler)
        _HANDLER_ATTACHED = True
    root.setLevel(level)


def configure_logging(level_name: str | None = None) -> int:
    """Attach the triageq stream handler (once) and apply the requested level.

    Returns the numeric level that was applied.
    """
    level = _resolve_level(level_name)
    _attach_root_handler(level)
    return level


def get_logger(name: str) -> logging.Logger:
    """Return a module logger configured with a single stream handler."""
    level = configure_logging()
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
