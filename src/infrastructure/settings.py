"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from src.infrastructure.config_manager import (
    ConfigManager,
    MessagingConfig,
    StorageConfig,
)

# Application metadata
APP_NAME = "Intake-Relay"
APP_VERSION = "1.0.0"

# Seconds to wait for a published sheet before the batch fails
DEFAULT_FETCH_TIMEOUT = 10.0


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from configuration manager and environment."""

    def __init__(self):
        """Initialize settings from environment."""
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("IR_APP_NAME", APP_NAME)
        self.log_level = os.getenv("IR_LOG_LEVEL", "INFO")
        self.log_json = _env_flag("IR_LOG_JSON")
        self.fetch_timeout = float(os.getenv("IR_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT)))

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def storage_config(self) -> StorageConfig:
        return self.config_manager.get_storage_config()

    @property
    def messaging_config(self) -> MessagingConfig:
        return self.config_manager.get_messaging_config()


# Global settings instance
settings = Settings()
