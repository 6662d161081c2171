"""
Logging setup shared by the CLI and the API.
"""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a stream handler to the ``cinevault`` logger.

    Calling this more than once only updates the level; no duplicate
    handlers are installed.

    Parameters
    ----------
    level : str
        Logging level name (e.g. ``"INFO"`` or ``"DEBUG"``).

    Returns
    -------
    logging.Logger
        The configured package logger.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root_logger = logging.getLogger("cinevault")
    root_logger.setLevel(log_level)

    if not any(
        getattr(handler, "_cinevault_handler", False)
        for handler in root_logger.handlers
    ):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        handler._cinevault_handler = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)

    for handler in root_logger.handlers:
        handler.setLevel(log_level)

    return root_logger
