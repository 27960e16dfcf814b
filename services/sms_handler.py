"""
SMS Handler - Termux API integration for sending SMS
====================================================

This module sends location updates with termux-sms-send and
optionally reports each attempt to a delivery-status webhook.
"""

import subprocess
import json
import re
import shutil
import httpx
from datetime import datetime
from typing import Optional, Dict, Any
import threading

from core.exceptions import SMSError
from core.logging import get_logger, mask_phone

logger = get_logger("services.sms")

DIAGNOSTIC_COMMANDS = {
    "sms_send_available": "termux-sms-send",
    "location_available": "termux-location",
    "notification_available": "termux-notification",
    "wake_lock_available": "termux-wake-lock",
}


class SMSHandler:
    """
    Sends SMS messages using Termux API.

    Requirements:
    - Termux app installed
    - Termux:API app installed
    - termux-api package: pkg install termux-api
    - SMS permission granted

    Example:
        handler = SMSHandler()
        handler.send_sms("+15551234567", "Location Update ...")
    """

    def __init__(
        self,
        termux_api_path: str = "termux-sms-send",
        timeout: int = 30,
        webhook_config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize SMS handler.

        Args:
            termux_api_path: Path to termux-sms-send command
            timeout: Command timeout in seconds
            webhook_config: Delivery-status webhook (enabled, url, headers)
        """
        self.termux_api_path = termux_api_path
        self.timeout = timeout
        self.webhook_config = webhook_config or {"enabled": False, "url": "", "headers": {}}

        self._available = self._check_availability()

        logger.info(
            "SMS Handler initialized",
            extra={"available": self._available}
        )

    def _check_availability(self) -> bool:
        """Check that termux-sms-send is on PATH."""
        if not shutil.which(self.termux_api_path):
            logger.error(f"{self.termux_api_path} command not found")
            return False
        return True

    @property
    def is_available(self) -> bool:
        """Check if SMS handler is available."""
        return self._available

    def send_sms(self, phone_number: str, message: str) -> bool:
        """
        Send an SMS message.

        Args:
            phone_number: Recipient phone number
            message: Message content

        Returns:
            True if message was sent successfully

        Raises:
            SMSError: If sending fails
        """
        if not self._available:
            raise SMSError(
                "Termux API not available",
                details={"hint": "Install Termux:API app and run 'pkg install termux-api'"}
            )

        phone_number = self._normalize_phone_number(phone_number)
        if not phone_number:
            raise SMSError("Recipient phone number is empty")

        cmd = [self.termux_api_path, "-n", phone_number]

        logger.info(
            "Sending SMS",
            extra={"phone": mask_phone(phone_number), "length": len(message)}
        )

        try:
            result = subprocess.run(
                cmd,
                input=message,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            self._report_delivery_status(phone_number, "timeout", "Command timed out")
            raise SMSError(
                "SMS send command timed out",
                details={"timeout": self.timeout}
            )
        except FileNotFoundError:
            self._report_delivery_status(phone_number, "failed", "Command not found")
            raise SMSError(
                f"Termux API command not found: {self.termux_api_path}",
                details={"hint": "Install termux-api package: pkg install termux-api"}
            )

        if result.returncode != 0:
            error_msg = (result.stderr or "").strip() or "Unknown error"
            self._report_delivery_status(phone_number, "failed", error_msg)
            raise SMSError(
                f"Failed to send SMS: {error_msg}",
                details={"phone": mask_phone(phone_number), "returncode": result.returncode}
            )

        self._report_delivery_status(phone_number, "sent")
        logger.info(f"SMS sent successfully to {mask_phone(phone_number)}")
        return True

    def _report_delivery_status(self, phone: str, status: str, error: Optional[str] = None) -> None:
        """Post the outcome of a send attempt to the status webhook."""
        if not self.webhook_config.get("enabled"):
            return

        url = self.webhook_config.get("url")
        if not url:
            return

        payload = {
            "phone_number": phone,
            "status": status,
            "timestamp": datetime.now().isoformat(),
            "error": error,
        }
        headers = self.webhook_config.get("headers") or {}

        # Background thread so the location worker is not held up
        def send_report():
            try:
                with httpx.Client(timeout=10.0) as client:
                    response = client.post(url, json=payload, headers=headers)
                    response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Failed to send delivery status report: {e}")

        threading.Thread(target=send_report, name="sms-status-webhook", daemon=True).start()

    def diagnose(self) -> Dict[str, Any]:
        """
        Check which Termux API commands the tracker needs are installed.

        Returns:
            Dictionary with one boolean per command plus device info
        """
        results: Dict[str, Any] = {key: False for key in DIAGNOSTIC_COMMANDS}
        results["device_info"] = None
        results["errors"] = []

        for key, command in DIAGNOSTIC_COMMANDS.items():
            results[key] = bool(shutil.which(command))
            if not results[key]:
                results["errors"].append(f"{command} not found")

        try:
            result = subprocess.run(
                ["termux-telephony-deviceinfo"],
                capture_output=True,
                text=True,
                timeout=10
            )
            if result.returncode == 0:
                results["device_info"] = json.loads(result.stdout)
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            results["errors"].append(f"Device info failed: {e}")

        return results

    def _normalize_phone_number(self, phone: str) -> str:
        """
        Normalize phone number format.

        Removes non-numeric characters except +.
        """
        return re.sub(r'[^\d+]', '', phone or "")
