"""Tests for centralized configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from credential_broker.config import (
    AppConfig,
    FeatureFlags,
    LoggingConfig,
    ProvisioningConfig,
    QueueConfig,
    SecurityConfig,
    get_config,
    reset_config,
    set_config,
)
from credential_broker.db import DatabaseConfig, get_production_config
from credential_broker.exceptions import ValidationError


class TestQueueConfig:
    """Test QueueConfig model."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            config = QueueConfig()
        assert config.connection_string == ""
        assert config.logs_queue_name == "logs-queue"

    def test_from_env(self):
        with patch.dict(os.environ, {"AzureWebJobsStorage": "UseDevelopmentStorage=true"}):
            assert QueueConfig().connection_string == "UseDevelopmentStorage=true"


class TestLoggingConfig:
    """Test LoggingConfig model."""

    def test_level_is_normalised(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level(self):
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="LOUD")

    def test_level_from_env(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}):
            assert LoggingConfig().level == "WARNING"


class TestFeatureFlags:
    def test_logs_queue_disabled_by_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert FeatureFlags().enable_logs_queue is False

    def test_logs_queue_from_env(self):
        with patch.dict(os.environ, {"ENABLE_LOGS_QUEUE": "True"}):
            assert FeatureFlags().enable_logs_queue is True


class TestSecurityConfig:
    def test_key_from_env(self):
        with patch.dict(os.environ, {"BROKER_SECRET": "s3cret"}):
            assert SecurityConfig().encryption_key == "s3cret"

    def test_key_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert SecurityConfig().encryption_key is None

    def test_iterations_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            SecurityConfig(encryption_key="k", kdf_iterations=0)


class TestProvisioningConfig:
    """Values here end up in DDL, so they are validated strictly."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = ProvisioningConfig()
        assert config.profile == "APPUSERS"
        assert config.role == "GSB"
        assert config.initial_size == "100M"
        assert config.autoextend_next == "100M"
        assert config.probe_sql == "SELECT 1 FROM DUAL"

    def test_profile_and_role_from_env(self):
        with patch.dict(os.environ, {"ACCOUNT_PROFILE": "batch_users", "ACCOUNT_ROLE": "app_rw"}):
            config = ProvisioningConfig()
        assert config.profile == "BATCH_USERS"
        assert config.role == "APP_RW"

    @pytest.mark.parametrize("role", ["GSB; DROP USER SYS", "1ROLE", "app role"])
    def test_rejects_unsafe_identifiers(self, role):
        with pytest.raises(PydanticValidationError):
            ProvisioningConfig(role=role)

    def test_rejects_unsafe_role_from_env(self):
        with patch.dict(os.environ, {"ACCOUNT_ROLE": "GSB; DROP USER SYS"}):
            with pytest.raises(PydanticValidationError):
                ProvisioningConfig()

    def test_size_is_normalised(self):
        assert ProvisioningConfig(initial_size="512m").initial_size == "512M"

    @pytest.mark.parametrize("size", ["0M", "100", "100MB", "10M AUTOEXTEND OFF"])
    def test_rejects_bad_sizes(self, size):
        with pytest.raises(PydanticValidationError):
            ProvisioningConfig(autoextend_next=size)


class TestDatabaseConfig:
    """Connection settings for the broker's own store."""

    def test_sqlite_connection_string(self):
        config = DatabaseConfig(db_type="sqlite", database=":memory:")
        assert config.get_connection_string() == "sqlite:///:memory:"

    def test_postgres_connection_string(self):
        config = DatabaseConfig(
            host="pg", database="broker", username="broker", password="pw", port="5433"
        )
        assert config.get_connection_string() == "postgresql://broker:pw@pg:5433/broker"

    def test_postgres_requires_credentials(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(database="broker").get_connection_string()

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(db_type="mysql", database="broker").get_connection_string()

    def test_repr_masks_password(self):
        config = DatabaseConfig(host="pg", database="broker", username="u", password="topsecret")
        assert "topsecret" not in repr(config)

    def test_production_config_from_env(self):
        env = {
            "DB_TYPE": "postgres",
            "DB_HOST": "pg.internal",
            "DB_PORT": "6543",
            "DB_NAME": "tokens",
            "DB_USER": "broker",
            "DB_PASSWORD": "pw",
        }
        with patch.dict(os.environ, env):
            config = get_production_config()
        assert config.host == "pg.internal"
        assert config.port == "6543"
        assert config.database == "tokens"
        assert config.development_mode is False


class TestGlobalConfig:
    def test_get_config_is_cached(self):
        reset_config()
        assert get_config() is get_config()

    def test_set_and_reset(self):
        custom = AppConfig(environment="test")
        set_config(custom)
        assert get_config() is custom

        reset_config()
        assert get_config() is not custom
