"""
Foreground Indicator - Persistent notification and wake lock
============================================================

While tracking is active the device shows an ongoing notification
and Termux holds a wake lock so Android does not suspend the
location worker. Both are released on stop.
"""

import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from core.exceptions import NotificationError
from core.logging import get_logger

logger = get_logger("services.notification")


@dataclass(frozen=True)
class NotificationChannel:
    """
    Notification category used for the tracking indicator.

    Attributes:
        channel_id (str): Stable channel identifier
        name (str): User-visible channel name
        importance (str): min, low, default, high or max
        description (str): User-visible channel description
    """
    channel_id: str = "location_tracking"
    name: str = "Location Tracking"
    importance: str = "low"
    description: str = "Tracking your location"


class ForegroundIndicator(ABC):
    """
    Keeps a background task alive and visibly indicated.

    ensure_channel() may be called any number of times. show() and
    hide() bracket one tracking session.
    """

    @abstractmethod
    def ensure_channel(self) -> None:
        pass

    @abstractmethod
    def show(self) -> None:
        pass

    @abstractmethod
    def hide(self) -> None:
        pass


class TermuxForegroundIndicator(ForegroundIndicator):
    """
    Foreground indicator built on termux-notification.

    Example:
        indicator = TermuxForegroundIndicator(NotificationChannel())
        indicator.ensure_channel()
        indicator.show()
        ...
        indicator.hide()
    """

    def __init__(
        self,
        channel: NotificationChannel,
        notification_id: int = 1,
        title: str = "Location Tracker",
        text: str = "Tracking active",
        open_action: str = "",
        wake_lock: bool = True,
        timeout: int = 10
    ):
        """
        Args:
            channel: Channel the notification is posted to
            notification_id: Id used to replace and remove the notification
            title: Notification title
            text: Notification body
            open_action: Shell command run when the notification is tapped
            wake_lock: Hold termux-wake-lock while shown
            timeout: Seconds allowed for each termux command
        """
        self.channel = channel
        self.notification_id = notification_id
        self.title = title
        self.text = text
        self.open_action = open_action
        self.wake_lock = wake_lock
        self.timeout = timeout

        self._channel_ready = False
        self._wake_lock_held = False

    def ensure_channel(self) -> None:
        """
        Create the notification channel if it is not there yet.

        Older Termux:API builds have no channel command; the
        notification then goes to the default channel.
        """
        if self._channel_ready:
            return

        if not shutil.which("termux-notification-channel"):
            logger.warning("termux-notification-channel not found, using default channel")
            self._channel_ready = True
            return

        self._run(["termux-notification-channel", self.channel.channel_id, self.channel.name])
        self._channel_ready = True
        logger.debug(f"Notification channel ready: {self.channel.channel_id}")

    def show(self) -> None:
        """Post the ongoing notification and take the wake lock."""
        self._run(self._build_notification_command())

        if self.wake_lock and not self._wake_lock_held:
            self._run(["termux-wake-lock"])
            self._wake_lock_held = True

        logger.info("Foreground notification shown")

    def hide(self) -> None:
        """Remove the notification and release the wake lock."""
        errors = []

        for release in (self._remove_notification, self._release_wake_lock):
            try:
                release()
            except NotificationError as e:
                errors.append(str(e))

        if errors:
            raise NotificationError(
                "Failed to release foreground indicator",
                details={"errors": errors}
            )

        logger.info("Foreground notification removed")

    def _remove_notification(self) -> None:
        self._run(["termux-notification-remove", str(self.notification_id)])

    def _release_wake_lock(self) -> None:
        if not self._wake_lock_held:
            return
        self._run(["termux-wake-unlock"])
        self._wake_lock_held = False

    def _build_notification_command(self) -> List[str]:
        cmd = [
            "termux-notification",
            "--id", str(self.notification_id),
            "--title", self.title,
            "--content", self.text,
            "--priority", self.channel.importance,
            "--ongoing",
        ]

        if self._channel_ready and shutil.which("termux-notification-channel"):
            cmd.extend(["--channel", self.channel.channel_id])

        if self.open_action:
            cmd.extend(["--action", self.open_action])

        return cmd

    def _run(self, cmd: List[str]) -> None:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise NotificationError(
                f"{cmd[0]} timed out",
                details={"timeout": self.timeout}
            )
        except FileNotFoundError:
            raise NotificationError(
                f"Termux API command not found: {cmd[0]}",
                details={"hint": "Install termux-api package: pkg install termux-api"}
            )

        if result.returncode != 0:
            error = (result.stderr or "").strip() or "Unknown error"
            raise NotificationError(
                f"{cmd[0]} failed: {error}",
                details={"returncode": result.returncode}
            )
