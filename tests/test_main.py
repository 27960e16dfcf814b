"""
Test Main Module
================

Unit tests for command-line parsing and wiring.
"""

import pytest
from pathlib import Path
import sys
from unittest.mock import patch, MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

import main
from core.config import Config
from core.exceptions import ConfigError, SMSError
from services.location import LocationSample, TermuxLocationProvider
from services.notification import TermuxForegroundIndicator
from services.sms_handler import SMSHandler
from services.tracking_service import TrackingService, SessionConfig


@pytest.fixture
def env_dirs(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCATION_TRACKER_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("LOCATION_TRACKER_DATA_DIR", str(tmp_path / "data"))
    return tmp_path


class TestArguments:
    """Tests for parse_args and overrides."""

    def test_daemon_arguments(self):
        """Test daemon session options are parsed."""
        args = main.parse_args(["--daemon", "--recipient", "+15551234567", "--interval", "60000"])
        assert args.daemon
        assert args.recipient == "+15551234567"
        assert args.interval == 60000

    def test_modes_are_exclusive(self):
        """Test two modes cannot be combined."""
        with pytest.raises(SystemExit):
            main.parse_args(["--daemon", "--once"])

    def test_overrides(self):
        """Test command-line values replace config values."""
        args = main.parse_args(["--recipient", "+15551234567", "--interval", "1000", "--allow-restart"])
        config = main.apply_cli_overrides(Config(), args)

        assert config.tracking.recipient == "+15551234567"
        assert config.tracking.interval_millis == 1000
        assert config.tracking.allow_restart is True

    def test_interval_default_kept(self):
        """Test the default interval survives when --interval is absent."""
        config = main.apply_cli_overrides(Config(), main.parse_args([]))
        assert config.tracking.interval_millis == 300000

    def test_negative_interval_rejected(self):
        """Test a negative --interval raises ConfigError."""
        args = main.parse_args(["--interval", "-5"])
        with pytest.raises(ConfigError):
            main.apply_cli_overrides(Config(), args)


class TestWiring:
    """Tests for building the tracking service from config."""

    def test_build_tracking_service(self):
        """Test the service gets the Termux capabilities and flags."""
        config = Config()
        config.tracking.allow_restart = True
        config.location.provider = "network"

        with patch.object(SMSHandler, "_check_availability", return_value=True):
            service = main.build_tracking_service(config)

        assert isinstance(service.location_provider, TermuxLocationProvider)
        assert service.location_provider.provider == "network"
        assert isinstance(service.sms_sender, SMSHandler)
        assert isinstance(service.indicator, TermuxForegroundIndicator)
        assert service.indicator.channel.name == "Location Tracking"
        assert service.allow_restart is True


class TestSessionSummary:
    """Tests for the daemon shutdown summary."""

    def test_summary_from_service_status(self, capsys):
        """Test the summary prints the service counters."""
        sms_sender = MagicMock()
        sms_sender.send_sms.side_effect = [True, SMSError("Failed to send SMS")]
        service = TrackingService(MagicMock(), sms_sender)
        service.start(SessionConfig(recipient="+15551234567"))
        service.on_location_sample(LocationSample(latitude=1.0, longitude=2.0))
        service.on_location_sample(LocationSample(latitude=3.0, longitude=4.0))
        service.stop()

        main.print_session_summary(service.status())

        out = capsys.readouterr().out
        assert "Session stopped" in out
        assert "+15****4567" in out
        assert "Messages sent: 1" in out
        assert "Send failures: 1" in out
        assert "Last error: Failed to send SMS" in out


class TestMain:
    """Tests for main() exit codes."""

    def test_setup(self, env_dirs):
        """Test --setup writes config.yaml."""
        config_path = env_dirs / "custom" / "config.yaml"
        assert main.main(["--setup", "--config", str(config_path)]) == 0
        assert config_path.exists()

    def test_setup_custom_file_name(self, env_dirs, capsys):
        """Test --setup honors the file name so --status can read it back."""
        config_path = env_dirs / "custom" / "tracker.yaml"

        assert main.main(["--setup", "--config", str(config_path)]) == 0
        assert config_path.exists()
        assert not (env_dirs / "custom" / "config.yaml").exists()

        assert main.main(["--status", "--config", str(config_path)]) == 0
        assert "300000ms" in capsys.readouterr().out

    def test_status(self, env_dirs, capsys):
        """Test --status prints the effective configuration."""
        assert main.main(["--status", "--recipient", "+15551234567"]) == 0
        out = capsys.readouterr().out
        assert "+15****4567" in out
        assert "300000ms" in out

    def test_invalid_interval_exit_code(self, env_dirs):
        """Test configuration errors exit with 1."""
        assert main.main(["--status", "--interval", "-1"]) == 1

    def test_once_without_recipient(self, env_dirs, monkeypatch):
        """Test --once refuses to run without a recipient."""
        monkeypatch.delenv("LOCATION_TRACKER_TRACKING_RECIPIENT", raising=False)
        assert main.main(["--once"]) == 1

    def test_once_sends_fix(self, env_dirs):
        """Test --once relays a single fix."""
        sample = LocationSample(latitude=37.422, longitude=-122.084)
        handler = MagicMock()

        with patch.object(TermuxLocationProvider, "request_fix", return_value=sample), \
                patch.object(main, "build_sms_handler", return_value=handler):
            assert main.main(["--once", "--recipient", "+15551234567"]) == 0

        handler.send_sms.assert_called_once()
        recipient, body = handler.send_sms.call_args[0]
        assert recipient == "+15551234567"
        assert body.startswith("Location Update\nLat: 37.422000")
