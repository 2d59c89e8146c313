"""Core infrastructure utilities."""

from .config import ChatSettings, get_settings
from .logging_config import configure_logging, get_logger
from .retry import RetryPolicy

__all__ = [
    "ChatSettings",
    "configure_logging",
    "get_logger",
    "get_settings",
    "RetryPolicy",
]
