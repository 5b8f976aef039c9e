"""
Teleop Channel Configuration
============================

This module handles configuration loading for the operator console.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    TELEOP_WS_URL          -> connection.url
    TELEOP_RECONNECT_DELAY -> connection.reconnect_delay_seconds
    TELEOP_ROBOT_NAME      -> robot.name
    TELEOP_ACCESS_TOKEN    -> robot.access_token
    TELEOP_LOG_LEVEL       -> logging.level

Example:
    from teleop_channel.config import settings

    print(settings.connection.url)
    print(settings.exchanges.frames)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class RobotConfig(BaseModel):
    """Robot identity and credentials, fixed for a session."""

    name: str = Field(default="robot", min_length=1, description="Robot identifier")
    access_token: str = Field(default="", description="Static access token")


class ConnectionConfig(BaseModel):
    """Relay connection configuration."""

    url: str = Field(
        default="ws://localhost:8765",
        description="WebSocket URL of the relay (shared by all exchanges)",
    )
    reconnect_delay_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Delay between a close and the next attempt (0 = immediate)",
    )
    open_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds allowed for the opening handshake",
    )
    ping_interval: Optional[float] = Field(
        default=20.0,
        description="Keepalive ping interval in seconds (None = disabled)",
    )
    ping_timeout: Optional[float] = Field(
        default=20.0,
        description="Keepalive pong timeout in seconds (None = disabled)",
    )
    close_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds allowed for the closing handshake",
    )
    max_message_size: Optional[int] = Field(
        default=16 * 1024 * 1024,
        description="Largest inbound message in bytes (None = unlimited)",
    )

    def connect_options(self) -> dict:
        """Keyword arguments for websockets.connect."""
        return {
            "open_timeout": self.open_timeout,
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "close_timeout": self.close_timeout,
            "max_size": self.max_message_size,
        }


class ExchangesConfig(BaseModel):
    """Exchange names used in handshakes."""

    frames: str = Field(default="camera0", description="Composite frame exchange")
    state: str = Field(default="state", description="Robot state exchange")
    commands: str = Field(default="commands", description="Command exchange")
    rgb: str = Field(default="rgbjpeg", description="Plain JPEG exchange")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the operator console.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    robot: RobotConfig = Field(default_factory=RobotConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    exchanges: ExchangesConfig = Field(default_factory=ExchangesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path.home() / ".config" / "teleop-channel" / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Connection settings
    if env_url := os.environ.get("TELEOP_WS_URL"):
        config_data.setdefault("connection", {})["url"] = env_url
    if env_delay := os.environ.get("TELEOP_RECONNECT_DELAY"):
        config_data.setdefault("connection", {})["reconnect_delay_seconds"] = float(env_delay)

    # Robot identity
    if env_robot := os.environ.get("TELEOP_ROBOT_NAME"):
        config_data.setdefault("robot", {})["name"] = env_robot
    if env_token := os.environ.get("TELEOP_ACCESS_TOKEN"):
        config_data.setdefault("robot", {})["access_token"] = env_token

    # Logging settings
    if env_log := os.environ.get("TELEOP_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
