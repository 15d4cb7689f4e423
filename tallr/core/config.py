"""Configuration management for Tallr."""

import os
import platform
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tallr.core.errors import DataDirectoryError

APP_NAME = "Tallr"

SESSIONS_FILE_NAME = "sessions.json"
TOKEN_FILE_NAME = ".token"
SETUP_MARKER_NAME = ".setup_completed"
LOG_FILE_NAME = "tallr.log"


def default_data_dir() -> Path:
    """Resolve the per-platform application data directory.

    Raises:
        DataDirectoryError: If the user's home directory cannot be determined
    """
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise DataDirectoryError(f"Unable to find home directory: {e}") from e

    system = platform.system()
    if system == "Darwin":
        return home / "Library" / "Application Support" / APP_NAME
    if system == "Windows":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return base / APP_NAME

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg_data_home) if xdg_data_home else home / ".local" / "share"
    return base / APP_NAME.lower()


class GlobalConfig(BaseSettings):
    """Global Tallr configuration loaded from environment variables."""

    # Storage
    data_dir: Optional[Path] = Field(None, alias="TALLR_DATA_DIR")

    # Gateway (loopback only)
    host: str = Field("127.0.0.1", alias="TALLR_HOST")
    port: int = Field(4317, alias="TALLR_PORT")

    # Logging configuration
    log_level: str = Field("INFO", alias="TALLR_LOG_LEVEL")
    log_file: Optional[Path] = Field(None, alias="TALLR_LOG_FILE")

    # Development flags: enables /v1/debug routes and transition tracing
    debug: bool = Field(False, alias="TALLR_DEBUG")

    # Cleanup sweep
    done_grace_seconds: int = Field(30, alias="TALLR_DONE_GRACE_SECONDS")
    idle_max_age_seconds: int = Field(3600, alias="TALLR_IDLE_MAX_AGE_SECONDS")
    cleanup_idle: bool = Field(True, alias="TALLR_CLEANUP_IDLE")
    cleanup_interval_seconds: int = Field(60, alias="TALLR_CLEANUP_INTERVAL_SECONDS")

    # Notifications
    notifications_enabled: bool = Field(True, alias="TALLR_NOTIFICATIONS_ENABLED")

    cli_install_path: Path = Field(Path("/usr/local/bin/tallr"), alias="TALLR_CLI_INSTALL_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"TALLR_LOG_LEVEL must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError(f"TALLR_PORT must be between 1 and 65535, got: {v}")
        return v

    @field_validator("done_grace_seconds", "idle_max_age_seconds", "cleanup_interval_seconds")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Cleanup windows must be non-negative, got: {v}")
        return v

    def resolve_data_dir(self) -> Path:
        """Return the configured data directory, falling back to the platform default."""
        if self.data_dir is not None:
            return Path(self.data_dir).expanduser()
        return default_data_dir()

    @property
    def sessions_file(self) -> Path:
        return self.resolve_data_dir() / SESSIONS_FILE_NAME

    @property
    def token_file(self) -> Path:
        return self.resolve_data_dir() / TOKEN_FILE_NAME

    @property
    def setup_marker(self) -> Path:
        return self.resolve_data_dir() / SETUP_MARKER_NAME

    @property
    def log_path(self) -> Path:
        if self.log_file is not None:
            return Path(self.log_file).expanduser()
        return self.resolve_data_dir() / "logs" / LOG_FILE_NAME

    def ensure_directories(self) -> None:
        """Ensure the data and log directories exist."""
        self.resolve_data_dir().mkdir(parents=True, exist_ok=True)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)


def load_environment(env_file: str = ".env") -> None:
    """Load environment variables from a .env file if one exists."""
    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(env_path)


def load_config(env_file: str = ".env") -> GlobalConfig:
    """Load environment overrides and build the global configuration."""
    load_environment(env_file)
    return GlobalConfig()
