#!/usr/bin/env python3
"""
Location Tracker - Main Entry Point
===================================

Command-line interface for running the tracker on Termux.

Usage:
    python main.py --daemon --recipient +15551234567   # Track in background
    python main.py --once                              # Send one update now
    python main.py --send-test +15551234567            # Send a test SMS
    python main.py --diagnose                          # Check Termux API
    python main.py --status                            # Show configuration
    python main.py --setup                             # Write default config
"""

import sys
import argparse
import signal
import time
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import Config, load_config, create_default_config, validate_phone_number
from core.logging import setup_logging, get_logger, mask_phone
from core.exceptions import LocationTrackerError, ConfigError

logger = get_logger("main")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Location Tracker - Termux-based location relay over SMS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --daemon --recipient +15551234567
  python main.py --daemon --recipient +15551234567 --interval 60000
  python main.py --once --recipient +15551234567
  python main.py --send-test +15551234567
  python main.py --diagnose
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--daemon",
        action="store_true",
        help="Run the tracker until interrupted"
    )
    mode_group.add_argument(
        "--once",
        action="store_true",
        help="Get one location fix and send it"
    )
    mode_group.add_argument(
        "--send-test",
        type=str,
        metavar="NUMBER",
        help="Send a test SMS to NUMBER"
    )
    mode_group.add_argument(
        "--diagnose",
        action="store_true",
        help="Check which Termux API commands are available"
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Show the effective configuration"
    )
    mode_group.add_argument(
        "--setup",
        action="store_true",
        help="Write a default configuration file"
    )

    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--recipient",
        type=str,
        metavar="NUMBER",
        help="Phone number that receives location updates"
    )
    parser.add_argument(
        "--interval",
        type=int,
        metavar="MILLIS",
        help="Minimum time between updates in milliseconds (default: 300000)"
    )
    parser.add_argument(
        "--allow-restart",
        action="store_true",
        help="Allow a running session to be reconfigured by a new start"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def apply_cli_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Copy command-line session settings onto the loaded config."""
    if args.recipient is not None:
        config.tracking.recipient = args.recipient
    if args.interval is not None:
        config.tracking.interval_millis = args.interval
    if args.allow_restart:
        config.tracking.allow_restart = True
    if args.debug:
        config.debug = True

    config.tracking.validate()
    return config


def build_sms_handler(config: Config):
    from services.sms_handler import SMSHandler

    return SMSHandler(
        termux_api_path=config.sms.termux_api_path,
        timeout=config.sms.sms_timeout,
        webhook_config={
            "enabled": config.sms.webhook_enabled,
            "url": config.sms.webhook_url,
            "headers": config.sms.webhook_headers
        }
    )


def build_location_provider(config: Config):
    from services.location import TermuxLocationProvider

    return TermuxLocationProvider(
        provider=config.location.provider,
        command=config.location.command,
        timeout=config.location.timeout
    )


def build_indicator(config: Config):
    from services.notification import NotificationChannel, TermuxForegroundIndicator

    notification = config.notification
    channel = NotificationChannel(
        channel_id=notification.channel_id,
        name=notification.channel_name,
        importance=notification.importance,
        description=notification.channel_description
    )
    return TermuxForegroundIndicator(
        channel,
        notification_id=notification.notification_id,
        title=notification.title,
        text=notification.text,
        open_action=notification.open_action,
        wake_lock=notification.wake_lock
    )


def build_tracking_service(config: Config):
    """Wire the Termux capabilities into a TrackingService."""
    from services.tracking_service import TrackingService

    return TrackingService(
        location_provider=build_location_provider(config),
        sms_sender=build_sms_handler(config),
        indicator=build_indicator(config),
        allow_restart=config.tracking.allow_restart,
        send_on_start=config.tracking.send_on_start,
        notify_location_errors=config.tracking.notify_location_errors
    )


def check_recipient(recipient: str) -> bool:
    """Warn about missing or implausible recipients. Returns False if missing."""
    if not recipient:
        print("✗ No recipient configured")
        print("  Use --recipient NUMBER or set tracking.recipient in config.yaml")
        return False

    if not validate_phone_number(recipient):
        print(f"⚠ Recipient {recipient} does not look like a phone number (10-15 digits)")
    return True


def print_session_summary(status: dict) -> None:
    """Print the counters of a finished tracking session."""
    stats = status["stats"]
    print("\n" + "-" * 50)
    print(f"Session {status['state']}")
    print(f"  Recipient: {status['recipient'] or 'Not set'}")
    print(f"  Samples received: {stats['samples_received']}")
    print(f"  Messages sent: {stats['messages_sent']}")
    print(f"  Send failures: {stats['send_failures']}")
    print(f"  Location errors: {stats['location_errors']}")
    if stats["last_error"]:
        print(f"  Last error: {stats['last_error']}")
    print("-" * 50)


def run_daemon(config: Config) -> int:
    """Run the tracking service until SIGINT/SIGTERM."""
    from services.tracking_service import SessionConfig

    print("\nStarting Location Tracker daemon...")
    print("Press Ctrl+C to stop\n")

    if not config.tracking.recipient:
        print("⚠ No recipient configured, location updates will not be sent")
    else:
        check_recipient(config.tracking.recipient)

    service = build_tracking_service(config)

    if not service.sms_sender.is_available:
        print("⚠ termux-sms-send not available, sends will fail")
        print("  Run: python main.py --diagnose")

    def shutdown(signum, frame):
        logger.info("Shutting down...")
        service.stop()
        print_session_summary(service.status())
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    service.start(SessionConfig(
        recipient=config.tracking.recipient,
        interval_millis=config.tracking.interval_millis
    ))

    if service.subscription is None:
        print("⚠ Location updates unavailable (permission denied or termux-location missing)")
        print("  Grant permission: Settings → Apps → Termux:API → Permissions → Location")

    print(
        f"✓ Tracking every {config.tracking.interval_millis / 1000:.0f}s "
        f"to {mask_phone(config.tracking.recipient)}"
    )

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        shutdown(None, None)

    return 0


def run_once(config: Config) -> int:
    """Get one fix and text it to the configured recipient."""
    from services.message import format_location_message

    if not check_recipient(config.tracking.recipient):
        return 1

    provider = build_location_provider(config)
    sms_handler = build_sms_handler(config)

    print("\nRequesting location fix...")
    sample = provider.request_fix()
    message = format_location_message(sample)
    print(message)
    print("-" * 50)

    sms_handler.send_sms(config.tracking.recipient, message)
    print(f"✓ Location sent to {mask_phone(config.tracking.recipient)}")
    return 0


def run_send_test(config: Config, phone_number: str) -> int:
    """Send a test SMS."""
    check_recipient(phone_number)

    sms_handler = build_sms_handler(config)
    if not sms_handler.is_available:
        print("✗ SMS handler not available!")
        print("  Check Termux API installation and permissions.")
        return 1

    print(f"\nSending test SMS to {phone_number}...")
    try:
        sms_handler.send_sms(phone_number, f"{config.app_name}: test message")
    except LocationTrackerError as e:
        print(f"✗ Failed to send message: {e}")
        return 1

    print("✓ Message sent successfully")
    return 0


def run_diagnosis(config: Config) -> int:
    """Print Termux API availability."""
    sms_handler = build_sms_handler(config)
    results = sms_handler.diagnose()

    print("\n" + "=" * 50)
    print("Location Tracker - Diagnostic Mode")
    print("=" * 50 + "\n")

    checks = [
        ("termux-sms-send", results["sms_send_available"]),
        ("termux-location", results["location_available"]),
        ("termux-notification", results["notification_available"]),
        ("termux-wake-lock", results["wake_lock_available"]),
    ]
    for command, available in checks:
        mark = "✓" if available else "✗"
        print(f"   {mark} {command}")

    if results["device_info"]:
        print(f"\n   Network: {results['device_info'].get('network_operator_name', 'Unknown')}")

    if results["errors"]:
        print("\nErrors Found")
        print("-" * 30)
        for err in results["errors"]:
            print(f"   • {err}")
        print("\n→ Run: pkg install termux-api")
        print("→ Grant Termux:API the SMS and Location permissions")

    print()
    return 0 if all(available for _, available in checks) else 1


def run_status(config: Config) -> int:
    """Print the effective configuration."""
    print("\n" + "=" * 50)
    print(f"{config.app_name} - Configuration")
    print("=" * 50 + "\n")

    print(f"  Recipient: {mask_phone(config.tracking.recipient) if config.tracking.recipient else 'Not set'}")
    print(f"  Interval: {config.tracking.interval_millis}ms")
    print(f"  Allow restart: {'Yes' if config.tracking.allow_restart else 'No'}")
    print(f"  Send on start: {'Yes' if config.tracking.send_on_start else 'No'}")
    print(f"  Location provider: {config.location.provider}")
    print(f"  Notification channel: {config.notification.channel_name} ({config.notification.importance})")
    print(f"  Webhook: {'Enabled' if config.sms.webhook_enabled else 'Disabled'}")
    print(f"  Config dir: {config.config_dir}")
    print(f"  Log dir: {config.log_dir}")
    print()
    return 0


def run_setup(config_path: Optional[str] = None) -> int:
    """Write a default config file, to config_path when given."""
    config_dir = str(Path(config_path).parent) if config_path else None
    config = create_default_config(config_dir, config_path)
    print(f"✓ Created default configuration in {config_path or config.config_dir}")
    print("  Set tracking.recipient, then run: python main.py --daemon")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        if args.setup:
            return run_setup(args.config)

        config = apply_cli_overrides(load_config(args.config), args)

        setup_logging(
            log_dir=config.log_dir,
            log_level="DEBUG" if config.debug else "INFO",
            console_output=True
        )

        if args.daemon:
            return run_daemon(config)
        if args.once:
            return run_once(config)
        if args.send_test:
            return run_send_test(config, args.send_test)
        if args.diagnose:
            return run_diagnosis(config)
        if args.status:
            return run_status(config)

        run_status(config)
        print("No mode specified. Use --daemon, --once, --diagnose or --help")
        return 0

    except ConfigError as e:
        print(f"\nConfiguration error: {e}")
        return 1
    except LocationTrackerError as e:
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0
    except Exception as e:
        print(f"\nUnexpected error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
