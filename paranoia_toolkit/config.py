"""
Configuration module for Paranoia Toolkit.

Provides centralized configuration for the soft delete lifecycle engine
and its command line interface.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union, get_args, get_origin

import pytz
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Log levels accepted by the command line interface."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ParanoiaConfig(BaseModel):
    """Central configuration for soft delete behaviour.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (PARANOIA_ prefix)
        3. Default values (lowest priority)

    Example:
        >>> config = ParanoiaConfig(timezone="Europe/Berlin")

        Loading from environment:

        >>> import os
        >>> os.environ['PARANOIA_TIMESTAMP_COLUMNS'] = 'updated_at,modified_at'
        >>> config = ParanoiaConfig.from_env()

    Note:
        Timestamps written to the lifecycle column are naive values in
        ``timezone``. Changing the zone of a populated database shifts the
        apparent deletion time of existing rows.
    """

    # General settings
    application_name: str = Field(
        "Paranoia Application", description="Name of the application"
    )
    environment: str = Field(
        "production", description="Environment (development, staging, production)"
    )
    timezone: str = Field("UTC", description="Timezone for lifecycle timestamps")

    # Lifecycle settings
    timestamp_columns: List[str] = Field(
        default_factory=lambda: ["updated_at"],
        description="Columns touched whenever a record is deleted or restored",
    )
    default_recovery_window_hours: Optional[int] = Field(
        None, description="Recovery window applied by CLI restores", gt=0
    )

    # Command line settings
    database_url: Optional[str] = Field(
        None, description="Database connection string used by the CLI"
    )
    log_level: LogLevel = Field(LogLevel.WARNING, description="CLI log level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Environment must be one of: {', '.join(sorted(valid_environments))}"
            )
        return v.lower()

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the timezone is known to pytz."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_env(cls, prefix: str = "PARANOIA_") -> "ParanoiaConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            field_type = field_info.annotation

            # Handle Optional types
            if get_origin(field_type) is Union:
                args = get_args(field_type)
                field_type = next((arg for arg in args if arg is not type(None)), str)

            try:
                if field_type == bool:
                    config_dict[field_name] = value.lower() in ("true", "1", "yes", "on")
                elif field_type == int:
                    config_dict[field_name] = int(value)
                elif get_origin(field_type) is list:
                    config_dict[field_name] = [
                        item.strip() for item in value.split(",") if item.strip()
                    ]
                elif isinstance(field_type, type) and issubclass(field_type, Enum):
                    config_dict[field_name] = field_type(value.upper())
                else:
                    config_dict[field_name] = value
            except (ValueError, TypeError):
                # Let pydantic report the raw value
                config_dict[field_name] = value

        return cls.model_validate(config_dict)


# Global configuration instance
_config: Optional[ParanoiaConfig] = None


def get_config() -> ParanoiaConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        try:
            _config = ParanoiaConfig.from_env()
        except ValueError as e:
            logger.warning(f"Ignoring invalid environment configuration: {e}")
            _config = ParanoiaConfig.model_validate({})

    return _config


def set_config(config: Optional[ParanoiaConfig]) -> None:
    """
    Set the global configuration instance.

    Passing ``None`` resets to environment defaults on next access.
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> ParanoiaConfig:
    """
    Configure the toolkit with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = ParanoiaConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = ParanoiaConfig(**config_dict)

    return _config
