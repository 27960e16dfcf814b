"""
Exception Definitions - Custom exceptions for Location Tracker
==============================================================

This module defines the exceptions raised by the tracker components.
Sample handling catches and logs most of them so that a single failed
fix or send never stops a running session.
"""


class LocationTrackerError(Exception):
    """
    Base exception for all Location Tracker errors.

    Attributes:
        message (str): Human-readable error description
        details (dict): Additional error details for debugging
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(LocationTrackerError):
    """
    Configuration-related errors.

    Raised for unreadable config files, invalid values
    (negative intervals, unknown providers) and bad overrides.
    """
    pass


class LocationError(LocationTrackerError):
    """
    Location provider errors.

    Raised when termux-location is missing, times out,
    exits non-zero or prints output that is not a fix.
    """
    pass


class PermissionDeniedError(LocationError):
    """Location access has not been granted to Termux:API."""
    pass


class SMSError(LocationTrackerError):
    """
    SMS sending errors.

    Raised when termux-sms-send is unavailable, times out
    or reports a failure.
    """
    pass


class NotificationError(LocationTrackerError):
    """Foreground notification or wake lock command failed."""
    pass


class TrackerStateError(LocationTrackerError):
    """
    Illegal tracking service lifecycle transition.

    Attributes:
        state (str): Service state at the time of the call
    """

    def __init__(self, message: str, state: str = "", details: dict = None):
        self.state = state
        super().__init__(message, details)

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} | State: {self.state}" if self.state else base
