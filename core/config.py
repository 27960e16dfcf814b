"""
Configuration Management - YAML-based configuration with environment overrides
=============================================================================

Configuration is resolved in this order:
1. Dataclass defaults
2. config.yaml in the config directory (or an explicit path)
3. .env file in the config directory
4. LOCATION_TRACKER_<SECTION>_<KEY> environment variables
"""

import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, asdict

from .exceptions import ConfigError

DEFAULT_INTERVAL_MILLIS = 300000  # 5 minutes

LOCATION_PROVIDERS = ("gps", "network", "passive")
NOTIFICATION_IMPORTANCE = ("min", "low", "default", "high", "max")

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15

ENV_PREFIX = "LOCATION_TRACKER"
APP_DIR_NAME = "location-tracker"


@dataclass
class TrackingConfig:
    """
    Session settings for the tracking service.

    ``recipient`` may be left empty; the service then runs
    but sends nothing.
    """
    recipient: str = ""
    interval_millis: int = DEFAULT_INTERVAL_MILLIS

    # Repeated start while running: reconfigure instead of rejecting
    allow_restart: bool = False

    # Request one fix right after subscribing
    send_on_start: bool = False

    # Text the recipient when the location provider reports an error
    notify_location_errors: bool = False

    def validate(self) -> None:
        """Validate tracking parameters."""
        if not isinstance(self.interval_millis, int) or isinstance(self.interval_millis, bool):
            raise ConfigError(
                f"interval_millis must be an integer, got {self.interval_millis!r}"
            )
        if self.interval_millis < 0:
            raise ConfigError(
                f"interval_millis cannot be negative, got {self.interval_millis}"
            )


@dataclass
class LocationConfig:
    """termux-location settings."""
    provider: str = "gps"
    command: str = "termux-location"
    timeout: int = 60

    def validate(self) -> None:
        if self.provider not in LOCATION_PROVIDERS:
            raise ConfigError(
                f"Invalid location provider: {self.provider}",
                {"allowed": list(LOCATION_PROVIDERS)}
            )
        if self.timeout <= 0:
            raise ConfigError(f"location timeout must be positive, got {self.timeout}")


@dataclass
class SMSConfig:
    """
    SMS transport configuration.

    The optional webhook receives a delivery-status report after
    every send attempt.
    """
    termux_api_path: str = "termux-sms-send"
    sms_timeout: int = 30

    webhook_enabled: bool = False
    webhook_url: str = ""
    webhook_headers: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if self.sms_timeout <= 0:
            raise ConfigError(f"sms_timeout must be positive, got {self.sms_timeout}")

        if self.webhook_enabled and not self.webhook_url:
            raise ConfigError("webhook_url is required when webhook_enabled is set")


@dataclass
class NotificationConfig:
    """
    Foreground indicator configuration.

    Mirrors an Android notification channel plus the ongoing
    notification shown while tracking is active.
    """
    channel_id: str = "location_tracking"
    channel_name: str = "Location Tracking"
    channel_description: str = "Tracking your location"
    importance: str = "low"

    notification_id: int = 1
    title: str = "Location Tracker"
    text: str = "Tracking active"

    # Command run when the notification is tapped
    open_action: str = "am start -n com.termux/.app.TermuxActivity"

    # Hold a Termux wake lock while the notification is shown
    wake_lock: bool = True

    def validate(self) -> None:
        if self.importance not in NOTIFICATION_IMPORTANCE:
            raise ConfigError(
                f"Invalid notification importance: {self.importance}",
                {"allowed": list(NOTIFICATION_IMPORTANCE)}
            )
        if not self.channel_id:
            raise ConfigError("channel_id cannot be empty")


@dataclass
class Config:
    """
    Main configuration container.
    """
    app_name: str = "Location Tracker"
    version: str = "1.0.0"
    debug: bool = False

    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    sms: SMSConfig = field(default_factory=SMSConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)

    # Paths (set at runtime)
    config_dir: str = ""
    data_dir: str = ""
    log_dir: str = ""

    def validate(self) -> None:
        """
        Validate all configuration sections.

        Raises:
            ConfigError: If any configuration section is invalid
        """
        self.tracking.validate()
        self.location.validate()
        self.sms.validate()
        self.notification.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "app_name": self.app_name,
            "version": self.version,
            "debug": self.debug,
            "tracking": asdict(self.tracking),
            "location": asdict(self.location),
            "sms": asdict(self.sms),
            "notification": asdict(self.notification),
        }


SECTIONS = ("tracking", "location", "sms", "notification")


def validate_phone_number(phone_number: Optional[str]) -> bool:
    """
    Check that a phone number has a plausible number of digits.

    Formatting characters are ignored; only the digit count matters.
    """
    if not phone_number:
        return False
    digits = re.sub(r"\D", "", phone_number)
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


def get_default_config_dir() -> Path:
    """
    Get the default configuration directory path.

    Returns:
        Path to the configuration directory
    """
    if f"{ENV_PREFIX}_CONFIG_DIR" in os.environ:
        return Path(os.environ[f"{ENV_PREFIX}_CONFIG_DIR"])

    if "XDG_CONFIG_HOME" in os.environ:
        return Path(os.environ["XDG_CONFIG_HOME"]) / APP_DIR_NAME

    return Path.home() / ".config" / APP_DIR_NAME


def get_default_data_dir() -> Path:
    """
    Get the default data directory path.

    Returns:
        Path to the data directory
    """
    if f"{ENV_PREFIX}_DATA_DIR" in os.environ:
        return Path(os.environ[f"{ENV_PREFIX}_DATA_DIR"])

    if "XDG_DATA_HOME" in os.environ:
        return Path(os.environ["XDG_DATA_HOME"]) / APP_DIR_NAME

    return Path.home() / ".local" / "share" / APP_DIR_NAME


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> Config:
    """
    Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to configuration file (optional)
        load_env: Whether to read .env and environment overrides

    Returns:
        Validated Config object

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    config = Config()

    config.config_dir = str(get_default_config_dir())
    config.data_dir = str(get_default_data_dir())
    config.log_dir = str(Path(config.data_dir) / "logs")

    if load_env:
        _load_env_file(Path(config.config_dir) / ".env")

    if config_path:
        yaml_path = Path(config_path)
        if not yaml_path.exists():
            raise ConfigError("Config file not found", {"path": str(yaml_path)})
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}", {"path": str(yaml_path)})
        except IOError as e:
            raise ConfigError(f"Failed to read config file: {e}", {"path": str(yaml_path)})

        if not isinstance(yaml_config, dict):
            raise ConfigError("Config file must contain a mapping", {"path": str(yaml_path)})

        _apply_yaml_config(config, yaml_config)

    if load_env:
        _apply_env_overrides(config)

    config.validate()

    return config


def _load_env_file(env_file: Path) -> None:
    """Copy KEY=VALUE lines into os.environ without overwriting."""
    if not env_file.exists():
        return

    try:
        with open(env_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key, value = key.strip(), value.strip().strip('"').strip("'")
                    if key and key not in os.environ:
                        os.environ[key] = value
    except IOError as e:
        raise ConfigError(f"Failed to read .env file: {e}", {"path": str(env_file)})


def _apply_yaml_config(config: Config, yaml_config: Dict[str, Any]) -> None:
    """
    Apply YAML configuration values to Config object.

    Unknown keys are ignored.
    """
    for key in ("app_name", "version", "debug"):
        if key in yaml_config:
            setattr(config, key, yaml_config[key])

    for section in SECTIONS:
        values = yaml_config.get(section)
        if not values:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Section '{section}' must be a mapping")

        section_obj = getattr(config, section)
        for key, value in values.items():
            if hasattr(section_obj, key):
                setattr(section_obj, key, value)


def _apply_env_overrides(config: Config) -> None:
    """
    Apply environment variable overrides to Config object.

    Variables follow LOCATION_TRACKER_<SECTION>_<KEY>, for example
    LOCATION_TRACKER_TRACKING_RECIPIENT or
    LOCATION_TRACKER_TRACKING_INTERVAL_MILLIS.
    """
    env_mappings = {
        # Tracking session
        "TRACKING_RECIPIENT": ("tracking", "recipient"),
        "TRACKING_INTERVAL_MILLIS": ("tracking", "interval_millis", int),
        "TRACKING_ALLOW_RESTART": ("tracking", "allow_restart", bool),
        "TRACKING_SEND_ON_START": ("tracking", "send_on_start", bool),
        "TRACKING_NOTIFY_LOCATION_ERRORS": ("tracking", "notify_location_errors", bool),

        # Location provider
        "LOCATION_PROVIDER": ("location", "provider"),
        "LOCATION_TIMEOUT": ("location", "timeout", int),

        # SMS
        "SMS_TIMEOUT": ("sms", "sms_timeout", int),
        "SMS_WEBHOOK_ENABLED": ("sms", "webhook_enabled", bool),
        "SMS_WEBHOOK_URL": ("sms", "webhook_url"),

        # Notification
        "NOTIFICATION_IMPORTANCE": ("notification", "importance"),
        "NOTIFICATION_WAKE_LOCK": ("notification", "wake_lock", bool),
    }

    for suffix, mapping in env_mappings.items():
        env_var = f"{ENV_PREFIX}_{suffix}"
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str

        if converter == bool:
            converted = value.lower() in ("true", "1", "yes", "on")
        else:
            try:
                converted = converter(value)
            except ValueError:
                raise ConfigError(
                    f"Invalid value for {env_var}: {value!r}",
                    {"expected": converter.__name__}
                )

        setattr(getattr(config, section), key, converted)


def save_config(config: Config, config_path: Optional[str] = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigError: If configuration cannot be saved
    """
    if config_path:
        yaml_path = Path(config_path)
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to save config file: {e}", {"path": str(yaml_path)})


def create_default_config(
    config_dir: Optional[str] = None,
    config_path: Optional[str] = None
) -> Config:
    """
    Create the directory layout and a default config file.

    Args:
        config_dir: Directory to create configuration in (optional)
        config_path: File to write instead of <config_dir>/config.yaml (optional)

    Returns:
        Config object with default values
    """
    config = Config()

    if config_dir:
        config.config_dir = config_dir
        config.data_dir = str(Path(config_dir) / "data")
        config.log_dir = str(Path(config_dir) / "logs")
    else:
        config.config_dir = str(get_default_config_dir())
        config.data_dir = str(get_default_data_dir())
        config.log_dir = str(Path(config.data_dir) / "logs")

    for directory in (config.config_dir, config.data_dir, config.log_dir):
        Path(directory).mkdir(parents=True, exist_ok=True)

    save_config(config, config_path)

    return config
