"""
Central logging configuration for happenings.

Console output uses a colorlog formatter; library modules only create their
loggers with ``logging.getLogger(__name__)`` and never configure handlers.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

_TRUTHY = ("1", "true", "yes", "on")

HAPPENINGS_MODULES = [
    "happenings",
    "happenings.calendar.pattern_interpreter",
    "happenings.calendar.occurrence_expander",
    "happenings.domain.timeline_builder",
    "happenings.domain.override_resolver",
    "happenings.domain.reschedule",
    "happenings.domain.next_occurrence",
    "happenings.domain.projections",
    "happenings.core.config_manager",
    "happenings.core.timezone_utils",
]


def build_console_handler(level: int = logging.NOTSET) -> logging.Handler:
    """Create a stderr handler with the colorized happenings format."""
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT, log_colors=LOG_COLORS))
    return handler


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> int:
    """
    Configure console logging for applications embedding happenings.

    Args:
        debug_mode: Whether to enable debug logging for happenings modules
        force_debug: Override debug mode setting (None to use env var detection)

    Returns:
        The root log level that was applied

    Environment Variables:
        HAPPENINGS_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        HAPPENINGS_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("HAPPENINGS_DEBUG", "").strip().lower() in _TRUTHY
    env_log_level = os.getenv("HAPPENINGS_LOG_LEVEL", "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist so host applications keep their setup
    if not root_logger.handlers:
        root_logger.addHandler(build_console_handler())

    module_level = logging.DEBUG if final_debug else logging.INFO
    for name in HAPPENINGS_MODULES:
        logging.getLogger(name).setLevel(module_level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s debug=%s",
        logging.getLevelName(root_level),
        final_debug,
    )
    return root_level
