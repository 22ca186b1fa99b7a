"""
Base configuration management for the auction operator.
"""

import os
import logging
from typing import Any, Dict, Optional, List
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

VALID_ENVIRONMENTS = ["local", "dev", "staging", "production"]
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigError(Exception):
    """Exception raised for configuration-related errors."""
    pass


def env_field(getter, key: str, *args, **kwargs):
    """Dataclass field whose default is read from the environment at instantiation."""
    return field(default_factory=lambda: getter(key, *args, **kwargs))


@dataclass
class BaseConfig:
    """Base configuration class with environment variable management."""

    # Environment
    ENVIRONMENT: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "local"))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    LOG_FILE: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE") or None)

    def __post_init__(self):
        """Initialize configuration after dataclass creation."""
        self._setup_logging()
        self._validate_config()

    def _setup_logging(self):
        """Setup logging configuration."""
        level = getattr(logging, self.LOG_LEVEL.upper(), None)
        if not isinstance(level, int):
            raise ConfigError(f"Invalid log level: {self.LOG_LEVEL}")

        handlers = [logging.StreamHandler()]
        if self.LOG_FILE:
            handlers.append(logging.FileHandler(self.LOG_FILE))

        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)

    def _validate_config(self):
        """Validate configuration values."""
        if self.ENVIRONMENT not in VALID_ENVIRONMENTS:
            raise ConfigError(f"Invalid environment: {self.ENVIRONMENT}")

    @staticmethod
    def get_env(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Get environment variable with validation.

        Args:
            key: Environment variable name
            default: Default value if not found
            required: Whether the variable is required

        Returns:
            Environment variable value

        Raises:
            ConfigError: If required variable is missing
        """
        value = os.getenv(key, default)
        if required and not value:
            raise ConfigError(f"Required environment variable '{key}' is not set")
        return value

    @staticmethod
    def get_env_int(key: str, default: Optional[int] = None, required: bool = False) -> int:
        """Get environment variable as integer."""
        value = BaseConfig.get_env(key, str(default) if default is not None else None, required)
        try:
            return int(value)
        except (ValueError, TypeError):
            raise ConfigError(f"Environment variable '{key}' must be an integer, got: {value}")

    @staticmethod
    def get_env_float(key: str, default: Optional[float] = None, required: bool = False) -> float:
        """Get environment variable as float."""
        value = BaseConfig.get_env(key, str(default) if default is not None else None, required)
        try:
            return float(value)
        except (ValueError, TypeError):
            raise ConfigError(f"Environment variable '{key}' must be a float, got: {value}")

    @staticmethod
    def get_env_bool(key: str, default: bool = False) -> bool:
        """Get environment variable as boolean."""
        value = BaseConfig.get_env(key, str(default))
        return value.lower() in ("true", "1", "yes", "on")

    @staticmethod
    def get_env_list(key: str, default: Optional[List[str]] = None, separator: str = ",") -> List[str]:
        """Get environment variable as list."""
        value = BaseConfig.get_env(key, separator.join(default) if default else "")
        return [item.strip() for item in value.split(separator) if item.strip()] if value else []

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            field: getattr(self, field)
            for field in self.__dataclass_fields__
            if not field.startswith('_')
        }
