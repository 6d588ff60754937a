"""Tests for configuration loading from environment variables and files."""

import json

import pytest
from pydantic import ValidationError

from src.infrastructure.config_manager import (
    ConfigManager,
    MessagingConfig,
    StorageConfig,
    get_messaging_config,
    get_storage_config,
)
from src.infrastructure.settings import APP_NAME, Settings

ENV_VARS = (
    "IR_STORAGE_TYPE",
    "IR_DB_PATH",
    "IR_SENDING_APPLICATION",
    "IR_SENDING_FACILITY",
    "IR_RECEIVING_APPLICATION",
    "IR_RECEIVING_FACILITY",
    "IR_APP_NAME",
    "IR_LOG_LEVEL",
    "IR_LOG_JSON",
    "IR_FETCH_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the caller's environment and any .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestStorageConfig:

    def test_defaults(self):
        config = StorageConfig()
        assert config.storage_type == "memory"
        assert config.get_db_path() == ":memory:"

    def test_storage_type_normalized(self):
        assert StorageConfig(storage_type=" DuckDB ").storage_type == "duckdb"

    def test_unsupported_storage_type(self):
        with pytest.raises(ValidationError, match="Unsupported storage type"):
            StorageConfig(storage_type="postgresql")

    def test_db_path_directory_must_exist(self, tmp_path):
        with pytest.raises(ValidationError, match="Database directory does not exist"):
            StorageConfig(storage_type="duckdb", db_path=str(tmp_path / "missing" / "x.duckdb"))

    def test_db_path_file_may_not_exist(self, tmp_path):
        config = StorageConfig(storage_type="duckdb", db_path=str(tmp_path / "x.duckdb"))
        assert config.get_db_path() == str(tmp_path / "x.duckdb")


class TestMessagingConfig:

    def test_defaults(self):
        config = MessagingConfig()
        assert config.model_dump() == {
            "sending_application": "GOOGLE_FORMS",
            "sending_facility": "AETHER",
            "receiving_application": "FHIR_PORTAL",
            "receiving_facility": "HOSPITAL",
        }

    def test_blank_identifier_rejected(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            MessagingConfig(sending_facility="  ")


class TestConfigManagerFromEnvironment:

    def test_defaults_to_memory(self):
        assert get_storage_config().storage_type == "memory"
        assert get_messaging_config() == MessagingConfig()

    def test_duckdb_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IR_STORAGE_TYPE", "duckdb")
        monkeypatch.setenv("IR_DB_PATH", str(tmp_path / "intake.duckdb"))

        config = ConfigManager.from_environment().get_storage_config()
        assert config.storage_type == "duckdb"
        assert config.get_db_path() == str(tmp_path / "intake.duckdb")

    def test_messaging_overrides(self, monkeypatch):
        monkeypatch.setenv("IR_SENDING_FACILITY", "NORTH_CLINIC")
        monkeypatch.setenv("IR_RECEIVING_FACILITY", "GENERAL")

        config = ConfigManager.from_environment().get_messaging_config()
        assert config.sending_facility == "NORTH_CLINIC"
        assert config.receiving_facility == "GENERAL"
        assert config.sending_application == "GOOGLE_FORMS"

    def test_dotenv_file_loaded(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text("IR_SENDING_APPLICATION=PAPER_FORMS\n")
        # Registered with monkeypatch so the value load_dotenv sets is undone.
        monkeypatch.setenv("IR_SENDING_APPLICATION", "")
        monkeypatch.delenv("IR_SENDING_APPLICATION")

        config = ConfigManager.from_environment().get_messaging_config()
        assert config.sending_application == "PAPER_FORMS"

    def test_environment_wins_over_dotenv(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text("IR_SENDING_APPLICATION=PAPER_FORMS\n")
        monkeypatch.setenv("IR_SENDING_APPLICATION", "KIOSK")

        config = ConfigManager.from_environment().get_messaging_config()
        assert config.sending_application == "KIOSK"

    def test_invalid_storage_type_fails_on_access(self, monkeypatch):
        monkeypatch.setenv("IR_STORAGE_TYPE", "sqlite")
        manager = ConfigManager.from_environment()

        with pytest.raises(ValidationError):
            manager.get_storage_config()


class TestConfigManagerFromFile:

    def test_loads_sections(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "storage": {"storage_type": "duckdb", "db_path": str(tmp_path / "intake.duckdb")},
            "messaging": {"receiving_application": "EHR"},
        }))

        manager = ConfigManager.from_file(str(path))
        assert manager.get_storage_config().storage_type == "duckdb"
        assert manager.get_messaging_config().receiving_application == "EHR"

    def test_missing_sections_use_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{}")

        manager = ConfigManager.from_file(str(path))
        assert manager.get_storage_config() == StorageConfig()
        assert manager.get_messaging_config() == MessagingConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager.from_file(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            ConfigManager.from_file(str(path))

    def test_non_object_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="must contain a JSON object"):
            ConfigManager.from_file(str(path))


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.app_name == APP_NAME
        assert settings.log_level == "INFO"
        assert settings.log_json is False
        assert settings.fetch_timeout == 10.0
        assert settings.storage_config.storage_type == "memory"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("IR_LOG_JSON", "true")
        monkeypatch.setenv("IR_FETCH_TIMEOUT", "2.5")
        monkeypatch.setenv("IR_LOG_LEVEL", "DEBUG")

        settings = Settings()
        assert settings.log_json is True
        assert settings.fetch_timeout == 2.5
        assert settings.log_level == "DEBUG"

    def test_storage_config_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IR_STORAGE_TYPE", "duckdb")
        monkeypatch.setenv("IR_DB_PATH", str(tmp_path / "intake.duckdb"))

        storage_config = Settings().storage_config
        assert storage_config.storage_type == "duckdb"
        assert storage_config.get_db_path() == str(tmp_path / "intake.duckdb")
