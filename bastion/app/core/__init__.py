"""Core utilities for the server."""

from bastion.app.core.config import Settings
from bastion.app.core.logging import ensure_log_directory, get_logger, setup_logging

__all__ = [
    "Settings",
    "ensure_log_directory",
    "get_logger",
    "setup_logging",
]
