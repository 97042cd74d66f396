"""Process-wide logging setup for FloWorx modules."""

from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_DEFAULT_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_QUIET_LIBRARIES: Final[tuple[str, ...]] = ("googleapiclient.discovery_cache", "httpx")


def _resolve_level() -> int:
    level_name = os.getenv("FLOWORX_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _attach_root_handler(level: int) -> None:
    global _HANDLER_ATTACHED

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(os.getenv("FLOWORX_LOG_FORMAT", _DEFAULT_FORMAT), datefmt="%Y-%m-%d %H:%M:%S")
    )
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)

    # Gmail discovery cache and httpx are noisy at INFO
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _HANDLER_ATTACHED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the root stream handler is attached once per process."""
    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        _attach_root_handler(level)
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
