"""
Hotwire Configuration Management

Centralized configuration for the dev server, the change-notification
transports and logging with:
- Environment-based configuration
- Type-safe settings with Pydantic
- JSON file round-tripping
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels for Hotwire."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ServerConfig(BaseModel):
    """Configuration for the development server."""
    host: str = "localhost"
    port: int = Field(default=4080, gt=0, lt=0xFFFF)
    root: Path = Path(".")
    url: str = "/"
    poll_timeout: float = 25.0  # seconds a long-poll request may block
    static_wait: float = 10.0  # seconds a GET may wait for a rebuild to finish
    ws_protocol: str = "hmr"

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: Any) -> str:
        """Collapse slashes and wrap the mount point in a leading/trailing slash."""
        parts = [part for part in str(v).replace("\\", "/").split("/") if part]
        if not parts:
            return "/"
        return "/" + "/".join(parts) + "/"


class TransportConfig(BaseModel):
    """Configuration for the client-side change-notification transports."""
    retry_delay: float = 1.5  # fixed backoff after any network failure
    keepalive_interval: float = 5.0  # websocket ping cadence
    request_timeout: float = 30.0  # must outlast the server's poll_timeout
    ws_protocol: str = "hmr"


class MonitoringConfig(BaseModel):
    """Configuration for logging."""
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "text"] = "text"


class HotwireConfig(BaseSettings):
    """
    Main Hotwire Configuration

    Loads configuration from environment variables and/or config files.
    Environment variables are prefixed with HOTWIRE_
    (e.g., HOTWIRE_SERVER__PORT=5000).
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = {
        "env_prefix": "HOTWIRE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @classmethod
    def from_file(cls, config_path: Path) -> "HotwireConfig":
        """Load configuration from a JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = json.load(f)

        return cls(**config_data)

    def to_file(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(), f, indent=2, default=str)


# Global configuration instance (lazy loaded)
_config: Optional[HotwireConfig] = None


def get_config() -> HotwireConfig:
    """Get the global Hotwire configuration instance."""
    global _config
    if _config is None:
        _config = HotwireConfig()
    return _config


def set_config(config: HotwireConfig) -> None:
    """Set the global Hotwire configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration to default."""
    global _config
    _config = None
