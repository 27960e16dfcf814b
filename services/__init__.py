"""
Services Module - Tracking components for Location Tracker
==========================================================

This module provides:
- Location Provider: termux-location subscriptions
- SMS Handler: termux-sms-send integration
- Foreground Indicator: ongoing notification and wake lock
- Tracking Service: relays each fix as an SMS
"""

from .location import LocationProvider, LocationSample, LocationSubscription, TermuxLocationProvider
from .message import format_location_message, build_map_url
from .notification import ForegroundIndicator, NotificationChannel, TermuxForegroundIndicator
from .sms_handler import SMSHandler
from .tracking_service import TrackingService, SessionConfig, ServiceState, TrackingStats

__all__ = [
    "LocationProvider",
    "LocationSample",
    "LocationSubscription",
    "TermuxLocationProvider",
    "format_location_message",
    "build_map_url",
    "ForegroundIndicator",
    "NotificationChannel",
    "TermuxForegroundIndicator",
    "SMSHandler",
    "TrackingService",
    "SessionConfig",
    "ServiceState",
    "TrackingStats",
]
