"""Utility functions for CodeLoop."""

from .logging import (
    LogCapture,
    disable_logging,
    enable_debug_logging,
    get_logger,
    setup_logging,
)

__all__ = [
    "LogCapture",
    "disable_logging",
    "enable_debug_logging",
    "get_logger",
    "setup_logging",
]
