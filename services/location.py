"""
Location Provider - Termux API integration for position fixes
============================================================

This module provides:
- LocationSample: a single position fix
- LocationProvider: abstract subscription interface
- LocationSubscription: a polling worker that delivers fixes no
  more often than the requested interval
- TermuxLocationProvider: fixes from termux-location

Requirements:
- Termux:API app installed
- termux-api package: pkg install termux-api
- Location permission granted to Termux:API
"""

import json
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, Callable

from core.exceptions import ConfigError, LocationError, PermissionDeniedError
from core.logging import get_logger, get_log_context, set_log_context

logger = get_logger("services.location")

SampleCallback = Callable[["LocationSample"], None]
ErrorCallback = Callable[[Exception], None]

# Floor for the wait after a failed fix, so a broken provider with a
# zero interval does not spin.
ERROR_RETRY_SECONDS = 1.0


@dataclass(frozen=True)
class LocationSample:
    """
    A position fix.

    Attributes:
        latitude (float): Latitude in decimal degrees
        longitude (float): Longitude in decimal degrees
        accuracy (float): Horizontal accuracy in meters, if reported
        altitude (float): Altitude in meters, if reported
        provider (str): Source of the fix (gps, network, passive)
        timestamp (datetime): When the fix was received
    """
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    provider: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "altitude": self.altitude,
            "provider": self.provider,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_termux(cls, data: Dict[str, Any]) -> 'LocationSample':
        """
        Create from termux-location JSON output.

        Raises:
            LocationError: If latitude or longitude is missing or not numeric
        """
        try:
            latitude = float(data["latitude"])
            longitude = float(data["longitude"])
        except (KeyError, TypeError, ValueError):
            raise LocationError(
                "Location output has no usable coordinates",
                details={"output": data}
            )

        accuracy = data.get("accuracy")
        altitude = data.get("altitude")
        return cls(
            latitude=latitude,
            longitude=longitude,
            accuracy=float(accuracy) if accuracy is not None else None,
            altitude=float(altitude) if altitude is not None else None,
            provider=data.get("provider", ""),
        )


class LocationProvider(ABC):
    """
    Abstract source of location fixes.

    Implementations supply request_fix(); subscribe() wraps it in a
    LocationSubscription after check_permission() passes.
    """

    @abstractmethod
    def request_fix(self) -> LocationSample:
        """
        Get a single fix.

        Raises:
            LocationError: If no fix can be obtained
        """
        pass

    def check_permission(self) -> None:
        """
        Verify the provider may read location.

        Raises:
            PermissionDeniedError: If location access is not authorized
        """
        pass

    def subscribe(
        self,
        interval_millis: int,
        on_sample: SampleCallback,
        on_error: Optional[ErrorCallback] = None,
        fire_immediately: bool = False
    ) -> 'LocationSubscription':
        """
        Start delivering fixes to ``on_sample``.

        The first fix is requested one interval after subscribing, or
        right away when ``fire_immediately`` is set.

        Args:
            interval_millis: Minimum time between fixes
            on_sample: Called with each LocationSample
            on_error: Called with each failed fix (optional)
            fire_immediately: Request the first fix without waiting

        Returns:
            Active LocationSubscription

        Raises:
            ConfigError: If the interval is negative
            PermissionDeniedError: If location access is not authorized
        """
        if interval_millis < 0:
            raise ConfigError(f"interval_millis cannot be negative, got {interval_millis}")

        self.check_permission()

        subscription = LocationSubscription(
            self, interval_millis, on_sample, on_error,
            fire_immediately=fire_immediately
        )
        subscription.start()
        return subscription


class LocationSubscription:
    """
    Polls a provider on one worker thread.

    Callbacks run on that thread one at a time, so a handler never
    sees overlapping samples. A fix that is already being delivered
    when cancel() is called may still reach the handler.
    """

    def __init__(
        self,
        provider: LocationProvider,
        interval_millis: int,
        on_sample: SampleCallback,
        on_error: Optional[ErrorCallback] = None,
        fire_immediately: bool = False
    ):
        self.provider = provider
        self.interval_millis = interval_millis
        self.on_sample = on_sample
        self.on_error = on_error
        self.fire_immediately = fire_immediately

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        """True until cancel() is called."""
        return self._thread is not None and not self._cancelled

    def start(self) -> None:
        if self._thread is not None:
            return

        self._thread = threading.Thread(
            target=self._run,
            args=(get_log_context(),),
            name="location-subscription",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Location subscription started (interval: {self.interval_millis}ms)")

    def cancel(self, timeout: float = 5.0) -> bool:
        """
        Stop the worker.

        Returns:
            True if this call cancelled the subscription, False if it
            was already cancelled
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True

        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

        logger.info("Location subscription cancelled")
        return True

    def _run(self, log_context: Dict[str, Any]) -> None:
        if log_context:
            set_log_context(**log_context)

        interval_seconds = self.interval_millis / 1000.0
        wait_seconds = 0.0 if self.fire_immediately else interval_seconds

        while not self._stop_event.wait(wait_seconds):
            wait_seconds = interval_seconds
            try:
                sample = self.provider.request_fix()
            except Exception as e:
                logger.warning(f"Location fix failed: {e}")
                self._report_error(e)
                wait_seconds = max(interval_seconds, ERROR_RETRY_SECONDS)
            else:
                try:
                    self.on_sample(sample)
                except Exception as e:
                    logger.error(f"Location callback error: {e}", exc_info=True)

    def _report_error(self, error: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception as e:
            logger.error(f"Location error callback failed: {e}", exc_info=True)


class TermuxLocationProvider(LocationProvider):
    """
    Location fixes from termux-location.

    Example:
        provider = TermuxLocationProvider(provider="gps")
        sample = provider.request_fix()
        print(sample.latitude, sample.longitude)
    """

    PERMISSION_MARKERS = ("permission", "denied", "not granted")

    def __init__(
        self,
        provider: str = "gps",
        command: str = "termux-location",
        timeout: int = 60
    ):
        """
        Initialize the provider.

        Args:
            provider: Android location provider (gps, network or passive)
            command: Path to termux-location
            timeout: Seconds to wait for a fix
        """
        self.provider = provider
        self.command = command
        self.timeout = timeout

    def request_fix(self) -> LocationSample:
        """
        Request one fresh fix.

        Raises:
            PermissionDeniedError: If location access is not authorized
            LocationError: On timeout, command failure or unparsable output
        """
        sample = self._query("once")
        if sample is None:
            raise LocationError("No location fix available", details={"provider": self.provider})
        logger.debug(f"Location fix: {sample.latitude:.6f}, {sample.longitude:.6f}")
        return sample

    def last_known(self) -> Optional[LocationSample]:
        """Last cached fix, or None if the device has none."""
        return self._query("last")

    def check_permission(self) -> None:
        """
        Probe termux-location with a cached-fix request.

        Raises:
            LocationError: If the command is not installed
            PermissionDeniedError: If location access is not authorized
        """
        if not shutil.which(self.command):
            raise LocationError(
                f"Termux API command not found: {self.command}",
                details={"hint": "Install termux-api package: pkg install termux-api"}
            )

        self.last_known()
        logger.info("Location permission verified")

    def _query(self, request: str) -> Optional[LocationSample]:
        cmd = [self.command, "-p", self.provider, "-r", request]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise LocationError(
                "Location command timed out",
                details={"timeout": self.timeout, "request": request}
            )
        except FileNotFoundError:
            raise LocationError(
                f"Termux API command not found: {self.command}",
                details={"hint": "Install termux-api package: pkg install termux-api"}
            )

        if result.returncode != 0:
            error = (result.stderr or result.stdout or "").strip() or "Unknown error"
            self._raise_for_error(error, returncode=result.returncode)

        return self._parse_output(result.stdout)

    def _parse_output(self, output: str) -> Optional[LocationSample]:
        output = (output or "").strip()
        if not output:
            # termux-location prints nothing when no fix is cached
            return None

        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            self._raise_for_error(output)

        if not isinstance(data, dict):
            raise LocationError("Unexpected location output", details={"output": output})

        error = data.get("API_ERROR") or data.get("error")
        if error:
            self._raise_for_error(str(error))

        return LocationSample.from_termux(data)

    def _raise_for_error(self, error: str, returncode: Optional[int] = None) -> None:
        details = {"provider": self.provider}
        if returncode is not None:
            details["returncode"] = returncode

        if any(marker in error.lower() for marker in self.PERMISSION_MARKERS):
            logger.error("Location permission not granted!")
            logger.error("Grant permission: Settings → Apps → Termux:API → Permissions → Location")
            raise PermissionDeniedError(f"Location access denied: {error}", details=details)

        raise LocationError(f"Location request failed: {error}", details=details)
