"""Configuration management for the alert monitor."""

import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field


class MonitorSettings(BaseModel):
    """Main configuration for the alert monitor."""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log renderer: console or json")

    # Control server (used to build mute links in notifications)
    control_server_port: int = Field(default=3000, description="Port of the control HTTP app")
    control_server_url: str = Field(default="", description="Public base URL of the control HTTP app")

    # Notification gateway
    sms_endpoint: str = Field(
        default="http://localhost:9090/api/sms/send", description="Gateway SMS send URL"
    )
    email_endpoint: str = Field(
        default="http://localhost:9090/api/email/send", description="Gateway email send URL"
    )
    notify_timeout_seconds: float = Field(default=15.0, description="Timeout for one gateway call")

    # Polling
    default_check_interval_ms: int = Field(default=60_000, gt=0, description="Interval for endpoints without one")
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="Upstream API request timeout")

    # Storage
    state_path: str = Field(default="data/notification-state.json", description="Notification state file")
    registry_path: str = Field(default="data/config-state.json", description="Endpoint override file")

    # Presentation
    display_timezone: str = Field(default="Asia/Dhaka", description="Timezone for timestamps in messages")

    # Immutable base endpoint definitions: tag -> endpoint fields
    endpoints: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Base endpoint configs")

    def resolved_control_server_url(self) -> str:
        url = (self.control_server_url or "").strip()
        if url:
            return url.rstrip("/")
        return f"http://localhost:{self.control_server_port}"


def load_config(config_path: Optional[str] = None) -> MonitorSettings:
    """Load configuration from file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("ALERT_MONITOR_CONFIG", "config/alert-monitor.yaml")

    config_data: Dict[str, Any] = {}

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError("Config YAML must be a mapping")

    env_overrides = {
        "log_level": os.getenv("LOG_LEVEL"),
        "log_format": os.getenv("LOG_FORMAT"),
        "control_server_port": os.getenv("CONTROL_SERVER_PORT"),
        "control_server_url": os.getenv("CONTROL_SERVER_URL"),
        "sms_endpoint": os.getenv("SMS_ENDPOINT"),
        "email_endpoint": os.getenv("EMAIL_ENDPOINT"),
        "state_path": os.getenv("ALERT_MONITOR_STATE_PATH"),
        "registry_path": os.getenv("ALERT_MONITOR_REGISTRY_PATH"),
        "request_timeout_seconds": os.getenv("REQUEST_TIMEOUT_SECONDS"),
        "display_timezone": os.getenv("DISPLAY_TIMEZONE"),
    }

    for key, value in env_overrides.items():
        if value is None or not value.strip():
            continue
        value = value.strip()
        if key == "control_server_port":
            config_data[key] = int(value)
        elif key == "request_timeout_seconds":
            config_data[key] = float(value)
        else:
            config_data[key] = value

    return MonitorSettings(**config_data)
