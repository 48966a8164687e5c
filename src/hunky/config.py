"""Configuration management for hunky."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevelName = Literal["error", "warn", "info", "debug", "trace"]


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    Uses the HUNKY_ prefix and supports loading from a .env file. A Settings
    value is built once at process start and passed to whatever needs it.

    Examples:
        HUNKY_LOG=true
        HUNKY_LOG_LEVEL=debug
        HUNKY_LOG_FILE=/tmp/hunky.log
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HUNKY_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    log: bool = Field(
        default=False,
        description="Write diagnostics to the log file",
    )
    log_level: LogLevelName = Field(
        default="info",
        description="Most verbose level written to the log file",
    )
    log_file: str = Field(
        default="hunky.log",
        description="Log file path",
    )
    log_filtered_events: bool = Field(
        default=False,
        description="Also log file-system events dropped by the watcher filter",
    )

    # Engine configuration
    debounce_ms: int = Field(
        default=500,
        description="Delay before a burst of file-system events triggers a refresh",
        ge=0,
        le=60000,
    )
    context_lines: int = Field(
        default=3,
        description="Context lines around each changed region",
        ge=0,
        le=100,
    )
    git_executable: str = Field(
        default="git",
        description="git executable used by the command-line backend",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept any casing and the 'warning' spelling."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "warning":
                return "warn"
        return v

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0
