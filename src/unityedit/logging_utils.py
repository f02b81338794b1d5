"""Logging setup for the command line tool.

Engine modules only create module loggers; handlers are installed here,
once, by the CLI entry point. Records go to stderr so JSON results on
stdout stay parseable.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_HANDLER_NAME = "unityedit-console"


def resolve_level(level: int | str) -> int:
    """Convert a level name such as ``"debug"`` to its numeric value."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.WARNING


def setup_logging(level: int | str = logging.WARNING) -> logging.Handler:
    """Attach a stderr handler to the ``unityedit`` logger.

    Args:
        level: Logging level (number or name)

    Returns:
        The installed (or already present) handler
    """
    numeric = resolve_level(level)
    package_logger = logging.getLogger("unityedit")
    package_logger.setLevel(numeric)

    for handler in package_logger.handlers:
        if handler.get_name() == _HANDLER_NAME and isinstance(handler, logging.StreamHandler):
            handler.setStream(sys.stderr)
            handler.setLevel(numeric)
            return handler

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    return handler
