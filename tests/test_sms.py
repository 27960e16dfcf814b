"""
Test SMS Handler Module
======================

Unit tests for SMS sending and delivery-status reporting.
"""

import subprocess
import pytest
from unittest.mock import patch, MagicMock
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from services.sms_handler import SMSHandler
from core.exceptions import SMSError
from core.logging import mask_phone


class TestSMSHandler:
    """Tests for SMSHandler class."""

    @pytest.fixture
    def handler(self):
        """Create SMSHandler instance with mocked availability check."""
        with patch.object(SMSHandler, '_check_availability', return_value=True):
            return SMSHandler()

    def test_phone_normalization(self, handler):
        """Test phone number normalization."""
        assert handler._normalize_phone_number("+1 (555) 123-4567") == "+15551234567"
        assert handler._normalize_phone_number("5551234567") == "5551234567"
        assert handler._normalize_phone_number(None) == ""

    def test_phone_masking(self):
        """Test phone number masking."""
        assert mask_phone("+15551234567") == "+15****4567"
        assert mask_phone("123") == "****"
        assert mask_phone(None) == "****"

    @patch("subprocess.run")
    def test_send_sms(self, mock_run, handler):
        """Test sending SMS."""
        mock_run.return_value = MagicMock(returncode=0, stderr="")

        result = handler.send_sms("+1 555 123 4567", "Location Update")
        assert result is True

        cmd = mock_run.call_args[0][0]
        assert cmd == ["termux-sms-send", "-n", "+15551234567"]
        assert mock_run.call_args[1]["input"] == "Location Update"

    @patch("subprocess.run")
    def test_send_sms_failure(self, mock_run, handler):
        """Test a non-zero exit raises SMSError."""
        mock_run.return_value = MagicMock(returncode=1, stderr="Generic failure")

        with pytest.raises(SMSError):
            handler.send_sms("+15551234567", "Location Update")

    @patch("subprocess.run")
    def test_send_sms_timeout(self, mock_run, handler):
        """Test a hung send raises SMSError."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="termux-sms-send", timeout=30)

        with pytest.raises(SMSError):
            handler.send_sms("+15551234567", "Location Update")

    def test_send_sms_empty_recipient(self, handler):
        """Test an empty number is refused."""
        with pytest.raises(SMSError):
            handler.send_sms("", "Location Update")

    def test_unavailable(self):
        """Test sending without Termux API raises SMSError."""
        with patch("shutil.which", return_value=None):
            handler = SMSHandler()

        assert handler.is_available is False
        with pytest.raises(SMSError):
            handler.send_sms("+15551234567", "Location Update")


class TestDeliveryStatusWebhook:
    """Tests for the delivery-status webhook."""

    @pytest.fixture
    def handler(self):
        with patch.object(SMSHandler, '_check_availability', return_value=True):
            return SMSHandler(webhook_config={
                "enabled": True,
                "url": "https://example.com/status",
                "headers": {"X-Token": "abc"},
            })

    @patch("services.sms_handler.httpx.Client")
    @patch("services.sms_handler.threading.Thread")
    @patch("subprocess.run")
    def test_report_sent(self, mock_run, mock_thread, mock_client_cls, handler):
        """Test a successful send is reported."""
        mock_run.return_value = MagicMock(returncode=0, stderr="")

        handler.send_sms("+15551234567", "Location Update")

        target = mock_thread.call_args[1]["target"]
        target()

        client = mock_client_cls.return_value.__enter__.return_value
        url = client.post.call_args[0][0]
        payload = client.post.call_args[1]["json"]
        assert url == "https://example.com/status"
        assert payload["status"] == "sent"
        assert payload["phone_number"] == "+15551234567"
        assert payload["error"] is None
        assert client.post.call_args[1]["headers"] == {"X-Token": "abc"}

    @patch("services.sms_handler.threading.Thread")
    @patch("subprocess.run")
    def test_report_failed(self, mock_run, mock_thread, handler):
        """Test a failed send is reported before raising."""
        mock_run.return_value = MagicMock(returncode=1, stderr="Generic failure")

        with pytest.raises(SMSError):
            handler.send_sms("+15551234567", "Location Update")

        mock_thread.assert_called_once()

    @patch("services.sms_handler.threading.Thread")
    @patch("subprocess.run")
    def test_disabled(self, mock_run, mock_thread):
        """Test nothing is posted when the webhook is off."""
        mock_run.return_value = MagicMock(returncode=0, stderr="")
        with patch.object(SMSHandler, '_check_availability', return_value=True):
            handler = SMSHandler()

        handler.send_sms("+15551234567", "Location Update")

        mock_thread.assert_not_called()


class TestDiagnose:
    """Tests for SMSHandler.diagnose."""

    @patch("subprocess.run")
    @patch("shutil.which")
    def test_diagnose(self, mock_which, mock_run):
        """Test missing commands are listed."""
        mock_which.side_effect = lambda cmd: None if cmd == "termux-location" else f"/usr/bin/{cmd}"
        mock_run.return_value = MagicMock(returncode=0, stdout='{"network_operator_name": "Carrier"}')

        handler = SMSHandler()
        results = handler.diagnose()

        assert results["sms_send_available"] is True
        assert results["location_available"] is False
        assert results["device_info"]["network_operator_name"] == "Carrier"
        assert "termux-location not found" in results["errors"]
