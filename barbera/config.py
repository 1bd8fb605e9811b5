"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import ConfigurationError

SERVICE_ROLE_KEY_ENV = "SUPABASE_SERVICE_ROLE_KEY"


class BookingConfig(BaseModel):
    """Slot generation and calendar settings."""
    slot_step_minutes: int = 5
    fallback_service_minutes: int = 30
    booking_horizon_days: int = 60

    @field_validator("slot_step_minutes", "fallback_service_minutes", "booking_horizon_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure minute and day counts are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value


class SupabaseConfig(BaseModel):
    """Connection settings for the Supabase project."""
    url: str
    api_key: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Supabase url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")

    def resolve_api_key(self) -> str:
        """
        Return the configured key, falling back to the service-role key in
        the environment.

        Raises:
            ConfigurationError: If neither is set
        """
        key = self.api_key or os.environ.get(SERVICE_ROLE_KEY_ENV)
        if not key:
            raise ConfigurationError(
                f"No Supabase API key configured. Set supabase.api_key or {SERVICE_ROLE_KEY_ENV}."
            )
        return key


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/New_York"
    booking: BookingConfig = Field(default_factory=BookingConfig)
    supabase: Optional[SupabaseConfig] = None
    log_level: str = "WARNING"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Schedule times are interpreted in this zone, so it must exist."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    def require_supabase(self) -> SupabaseConfig:
        """
        Return the Supabase settings.

        Raises:
            ConfigurationError: If the config has no supabase section
        """
        if self.supabase is None:
            raise ConfigurationError(
                "No supabase section in the configuration. Add one or use --mock."
            )
        return self.supabase

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of barbera/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
