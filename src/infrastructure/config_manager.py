"""Configuration Manager.

This module loads storage and messaging configuration from environment
variables or a JSON file into validated Pydantic models.

Architecture:
    - Follows Hexagonal Architecture: Infrastructure layer isolated from domain
    - Type-safe configuration using Pydantic models
    - Fail-fast validation prevents runtime errors
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "IR_"
SUPPORTED_STORAGE_TYPES = ("memory", "duckdb")


class StorageConfig(BaseModel):
    """Storage backend configuration.

    Parameters:
        storage_type: Backend type ('memory' or 'duckdb')
        db_path: Path to the DuckDB database file (':memory:' for an in-process database)
    """

    storage_type: str = Field(default="memory", description="Storage backend (memory, duckdb)")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")

    @field_validator("storage_type")
    @classmethod
    def validate_storage_type(cls, v: str) -> str:
        """Validate storage type."""
        v = (v or "").strip().lower()
        if v not in SUPPORTED_STORAGE_TYPES:
            raise ValueError(f"Unsupported storage type: {v}. Supported: {list(SUPPORTED_STORAGE_TYPES)}")
        return v

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate database directory exists (if a file path is provided)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v)
        # File may not exist yet; its directory must.
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")
        return str(db_path_obj)

    def get_db_path(self) -> str:
        return self.db_path or ":memory:"


class MessagingConfig(BaseModel):
    """Identifiers written into the MSH header of every encoded message."""

    sending_application: str = Field(default="GOOGLE_FORMS")
    sending_facility: str = Field(default="AETHER")
    receiving_application: str = Field(default="FHIR_PORTAL")
    receiving_facility: str = Field(default="HOSPITAL")

    @field_validator("*")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Message header identifiers cannot be empty")
        return v.strip()


class ConfigManager:
    """Configuration manager for storage and messaging settings.

    Example Usage:
        ```python
        # Load from environment variables
        config = ConfigManager.from_environment()
        storage_config = config.get_storage_config()

        # Load from file
        config = ConfigManager.from_file("config.json")
        messaging_config = config.get_messaging_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        """Initialize configuration manager.

        Parameters:
            config_data: Configuration dictionary with optional "storage" and
                "messaging" sections
        """
        self._config_data = config_data
        self._storage_config: Optional[StorageConfig] = None
        self._messaging_config: Optional[MessagingConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - IR_STORAGE_TYPE: Storage backend (memory, duckdb)
            - IR_DB_PATH: Path to database file (for DuckDB)
            - IR_SENDING_APPLICATION / IR_SENDING_FACILITY: MSH sender
            - IR_RECEIVING_APPLICATION / IR_RECEIVING_FACILITY: MSH receiver

        A .env file in the working directory is loaded first if present;
        variables already set in the environment take precedence.

        Returns:
            ConfigManager instance
        """
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        messaging = {
            key: os.getenv(f"{ENV_PREFIX}{key.upper()}")
            for key in MessagingConfig.model_fields
        }
        config_data = {
            "storage": {
                "storage_type": os.getenv("IR_STORAGE_TYPE", "memory"),
                "db_path": os.getenv("IR_DB_PATH"),
            },
            "messaging": {k: v for k, v in messaging.items() if v is not None},
        }
        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Parameters:
            config_path: Path to configuration file

        Returns:
            ConfigManager instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a JSON object")
        return cls(config_data)

    def get_storage_config(self) -> StorageConfig:
        if self._storage_config is None:
            self._storage_config = StorageConfig(**self._config_data.get("storage", {}))
        return self._storage_config

    def get_messaging_config(self) -> MessagingConfig:
        if self._messaging_config is None:
            self._messaging_config = MessagingConfig(**self._config_data.get("messaging", {}))
        return self._messaging_config


# ============================================================================
# Convenience Functions
# ============================================================================

def get_storage_config() -> StorageConfig:
    """Storage configuration from environment, defaulting to in-memory storage."""
    return ConfigManager.from_environment().get_storage_config()


def get_messaging_config() -> MessagingConfig:
    return ConfigManager.from_environment().get_messaging_config()
