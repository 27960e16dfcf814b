"""
Tracking Service - Relays location fixes by SMS
===============================================

The service ties three capabilities together:
- a LocationProvider that delivers fixes
- an SMS sender (SMSHandler or anything with send_sms)
- a ForegroundIndicator that keeps the task alive and visible

Failures while handling a sample are logged and counted; they
never stop a running session.
"""

import threading
from dataclasses import dataclass
from functools import partial
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from core.config import DEFAULT_INTERVAL_MILLIS
from core.exceptions import (
    ConfigError,
    LocationError,
    NotificationError,
    PermissionDeniedError,
    TrackerStateError,
)
from core.logging import get_logger, mask_phone, set_log_context, clear_log_context
from .location import LocationProvider, LocationSample, LocationSubscription
from .message import format_location_message, format_location_error
from .notification import ForegroundIndicator

logger = get_logger("services.tracking")


class ServiceState(Enum):
    """Lifecycle of a tracking service."""
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SessionConfig:
    """
    Settings for one tracking session, fixed at start.

    Attributes:
        recipient (str): Phone number that receives updates; empty
            means samples are ignored
        interval_millis (int): Minimum time between fixes
    """
    recipient: Optional[str] = None
    interval_millis: int = DEFAULT_INTERVAL_MILLIS

    def __post_init__(self):
        if self.interval_millis is None:
            object.__setattr__(self, "interval_millis", DEFAULT_INTERVAL_MILLIS)
        if self.interval_millis < 0:
            raise ConfigError(
                f"interval_millis cannot be negative, got {self.interval_millis}"
            )

    @property
    def has_recipient(self) -> bool:
        return bool(self.recipient and self.recipient.strip())


@dataclass
class TrackingStats:
    """
    Counters for a tracking service.

    Attributes:
        samples_received (int): Fixes delivered to the service
        samples_skipped (int): Fixes ignored because no recipient is set
        messages_sent (int): Successful sends
        send_failures (int): Failed sends
        location_errors (int): Provider failures, including permission
        last_sample (LocationSample): Most recent fix
        last_error (str): Most recent error message
    """
    samples_received: int = 0
    samples_skipped: int = 0
    messages_sent: int = 0
    send_failures: int = 0
    location_errors: int = 0
    last_sample: Optional[LocationSample] = None
    last_sample_at: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "samples_received": self.samples_received,
            "samples_skipped": self.samples_skipped,
            "messages_sent": self.messages_sent,
            "send_failures": self.send_failures,
            "location_errors": self.location_errors,
            "last_sample": self.last_sample.to_dict() if self.last_sample else None,
            "last_sample_at": self.last_sample_at.isoformat() if self.last_sample_at else None,
            "last_error": self.last_error,
        }


class TrackingService:
    """
    Sends an SMS with the device position for every location fix.

    Example:
        service = TrackingService(
            location_provider=TermuxLocationProvider(),
            sms_sender=SMSHandler(),
            indicator=TermuxForegroundIndicator(NotificationChannel()),
        )
        service.start(SessionConfig("+15551234567", 60000))
        ...
        service.stop()
    """

    def __init__(
        self,
        location_provider: LocationProvider,
        sms_sender,
        indicator: Optional[ForegroundIndicator] = None,
        allow_restart: bool = False,
        send_on_start: bool = False,
        notify_location_errors: bool = False
    ):
        """
        Initialize the service.

        Args:
            location_provider: Source of location fixes
            sms_sender: Object with ``send_sms(phone_number, message)``
            indicator: Foreground indicator (optional)
            allow_restart: Let start() reconfigure a running session
                instead of rejecting the call
            send_on_start: Have the subscription request its first fix
                right away instead of one interval after start
            notify_location_errors: Text the recipient when a fix fails
        """
        self.location_provider = location_provider
        self.sms_sender = sms_sender
        self.indicator = indicator
        self.allow_restart = allow_restart
        self.send_on_start = send_on_start
        self.notify_location_errors = notify_location_errors

        self.stats = TrackingStats()

        self._config: Optional[SessionConfig] = None
        self._subscription: Optional[LocationSubscription] = None
        self._state = ServiceState.UNINITIALIZED
        self._lock = threading.RLock()

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServiceState.RUNNING

    @property
    def config(self) -> Optional[SessionConfig]:
        return self._config

    @property
    def subscription(self) -> Optional[LocationSubscription]:
        return self._subscription

    def start(self, config: SessionConfig) -> None:
        """
        Begin a tracking session.

        Shows the foreground indicator and subscribes to location
        updates. A missing location permission is logged, not raised;
        the service then runs without a subscription.

        Raises:
            TrackerStateError: If already running and restarts are not allowed
        """
        with self._lock:
            if self.is_running:
                if not self.allow_restart:
                    raise TrackerStateError(
                        "Tracking service is already running",
                        state=self._state.value
                    )
                logger.info("Restarting tracking service with new configuration")
                self._release_subscription()

            self._config = config

            clear_log_context()
            if config.has_recipient:
                set_log_context(recipient=mask_phone(config.recipient))
            else:
                logger.warning("No recipient configured, location updates will not be sent")

            self._start_foreground()
            self._subscribe(config)
            self._state = ServiceState.RUNNING

        logger.info(
            f"Tracking started (interval: {config.interval_millis}ms, "
            f"recipient: {mask_phone(config.recipient)})"
        )

    def stop(self) -> None:
        """
        End the tracking session.

        Safe to call any number of times; capabilities are released
        only once.
        """
        with self._lock:
            if self._state is not ServiceState.RUNNING:
                logger.debug(f"Stop ignored, service is {self._state.value}")
                return

            self._release_subscription()
            self._stop_foreground()
            self._state = ServiceState.STOPPED

        clear_log_context()
        logger.info(
            f"Tracking stopped (sent: {self.stats.messages_sent}, "
            f"failed: {self.stats.send_failures})"
        )

    def on_location_sample(
        self,
        sample: LocationSample,
        config: Optional[SessionConfig] = None
    ) -> None:
        """
        Handle one fix from the location provider.

        Does nothing but count the sample when no recipient is set.

        Args:
            sample: The fix to relay
            config: Session the fix belongs to; defaults to the current one
        """
        config = config or self._config
        self.stats.samples_received += 1
        self.stats.last_sample = sample
        self.stats.last_sample_at = datetime.now()

        if config is None or not config.has_recipient:
            self.stats.samples_skipped += 1
            logger.debug("Location sample ignored, no recipient")
            return

        self.send_message(config.recipient, format_location_message(sample))

    def on_location_error(
        self,
        error: Exception,
        config: Optional[SessionConfig] = None
    ) -> None:
        """Handle a failed fix reported by the location provider."""
        self.stats.location_errors += 1
        self.stats.last_error = str(error)
        logger.warning(f"Location provider error: {error}")

        config = config or self._config
        if self.notify_location_errors and config is not None and config.has_recipient:
            self.send_message(config.recipient, format_location_error(error))

    def send_message(self, recipient: str, text: str) -> bool:
        """
        Hand a message to the SMS transport.

        Send failures are logged and counted, never raised.

        Returns:
            True if the transport accepted the message
        """
        try:
            self.sms_sender.send_sms(recipient, text)
        except Exception as e:
            self.stats.send_failures += 1
            self.stats.last_error = str(e)
            logger.error(f"Failed to send location update to {mask_phone(recipient)}: {e}", exc_info=True)
            return False

        self.stats.messages_sent += 1
        return True

    def status(self) -> Dict[str, Any]:
        """Snapshot of state, session settings and counters."""
        config = self._config
        return {
            "state": self._state.value,
            "recipient": mask_phone(config.recipient) if config and config.has_recipient else None,
            "interval_millis": config.interval_millis if config else None,
            "subscribed": bool(self._subscription and self._subscription.active),
            "stats": self.stats.to_dict(),
        }

    def _subscribe(self, config: SessionConfig) -> None:
        # Callbacks keep their own session so a worker outliving a
        # restart never sends to the new recipient.
        try:
            self._subscription = self.location_provider.subscribe(
                config.interval_millis,
                partial(self.on_location_sample, config=config),
                partial(self.on_location_error, config=config),
                fire_immediately=self.send_on_start
            )
        except PermissionDeniedError as e:
            self._record_start_error(e)
            logger.error(f"Location permission denied, tracking without updates: {e}", exc_info=True)
        except LocationError as e:
            self._record_start_error(e)
            logger.error(f"Could not subscribe to location updates: {e}", exc_info=True)

    def _record_start_error(self, error: Exception) -> None:
        self._subscription = None
        self.stats.location_errors += 1
        self.stats.last_error = str(error)

    def _release_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()

    def _start_foreground(self) -> None:
        if self.indicator is None:
            return
        try:
            self.indicator.ensure_channel()
            self.indicator.show()
        except NotificationError as e:
            logger.error(f"Foreground notification unavailable: {e}")

    def _stop_foreground(self) -> None:
        if self.indicator is None:
            return
        try:
            self.indicator.hide()
        except NotificationError as e:
            logger.error(f"Failed to remove foreground notification: {e}")
