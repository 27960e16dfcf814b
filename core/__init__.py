"""
Core Module - Foundation components for Location Tracker
========================================================

This module provides:
- Configuration management
- Logging setup
- Exception handling
"""

from .config import Config, load_config, save_config, validate_phone_number
from .exceptions import (
    LocationTrackerError,
    ConfigError,
    LocationError,
    PermissionDeniedError,
    SMSError,
    NotificationError,
    TrackerStateError,
)
from .logging import setup_logging, get_logger

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "validate_phone_number",
    "LocationTrackerError",
    "ConfigError",
    "LocationError",
    "PermissionDeniedError",
    "SMSError",
    "NotificationError",
    "TrackerStateError",
    "setup_logging",
    "get_logger",
]
