"""Core Memoizable utilities.

This module exports core utilities for use throughout the library.
"""

from memoizable.core.config import Settings, get_settings
from memoizable.core.context import (
    clear_current_actor,
    get_current_actor,
    set_current_actor,
)
from memoizable.core.logging import (
    LoggingContext,
    clear_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "LoggingContext",
    "clear_context",
    "get_current_actor",
    "set_current_actor",
    "clear_current_actor",
]
