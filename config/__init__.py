"""Configuration module."""
from .settings import Settings, get_settings, settings
from .app_logger import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "get_logger",
    "setup_logging",
]
