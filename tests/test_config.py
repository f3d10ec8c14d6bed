"""Tests for configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from alertchain.config import (
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    Config,
    ConfigurationError,
    LogFormat,
    StorageAccessTier,
)

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"
TENANT_ID = "87654321-4321-4321-4321-210987654321"


def make_config(**overrides: object) -> Config:
    values: dict[str, object] = {
        "subscription_id": SUBSCRIPTION_ID,
        "client_id": "app-id",
        "client_secret": "app-secret",
        "tenant_id": TENANT_ID,
    }
    values.update(overrides)
    return Config(**values)  # type: ignore[arg-type]


class TestConfig:
    """Tests for Config class."""

    def test_valid_config(self) -> None:
        """Test creating a valid configuration."""
        config = make_config()

        assert config.location == "eastus2"
        assert config.action_group_location == "global"
        assert config.access_tier == StorageAccessTier.COOL
        assert config.operation_timeout_seconds == DEFAULT_OPERATION_TIMEOUT_SECONDS
        assert config.subscription_scope == f"/subscriptions/{SUBSCRIPTION_ID}"

    def test_secret_not_in_repr(self) -> None:
        """Test that the client secret never appears in repr output."""
        config = make_config(client_secret="super-secret-value")

        assert "super-secret-value" not in repr(config)

    @pytest.mark.parametrize(
        "field_name,env_name",
        [
            ("client_id", "CLIENT_ID"),
            ("client_secret", "CLIENT_SECRET"),
            ("tenant_id", "TENANT_ID"),
            ("subscription_id", "SUBSCRIPTION_ID"),
        ],
    )
    def test_missing_identity_value(self, field_name: str, env_name: str) -> None:
        """Test that each identity value is required."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_config(**{field_name: ""})

        assert env_name in str(exc_info.value)

    def test_all_errors_reported_together(self) -> None:
        """Test that validation collects every error before raising."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(subscription_id="")

        message = str(exc_info.value)
        assert "SUBSCRIPTION_ID" in message
        assert "CLIENT_ID" in message
        assert "CLIENT_SECRET" in message
        assert "TENANT_ID" in message

    def test_credentials_optional_when_not_required(self) -> None:
        """Test that plan-only configuration needs only a subscription."""
        config = Config(subscription_id=SUBSCRIPTION_ID, require_credentials=False)

        assert config.client_id == ""

    def test_invalid_subscription_guid(self) -> None:
        """Test that a malformed subscription id is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_config(subscription_id="not-a-guid")

        assert "valid GUID" in str(exc_info.value)

    def test_invalid_location(self) -> None:
        """Test that a malformed region is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_config(location="East US 2")

        assert "AZURE_LOCATION" in str(exc_info.value)

    def test_invalid_timeout(self) -> None:
        """Test that out-of-range timeout raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_config(operation_timeout_seconds=5)  # Too low

        assert "OPERATION_TIMEOUT" in str(exc_info.value)

    def test_missing_receivers_file(self, tmp_path: Path) -> None:
        """Test that a configured receivers file must exist."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_config(receivers_file=tmp_path / "missing.yaml")

        assert "Receivers file" in str(exc_info.value)


class TestConfigFromEnv:
    """Tests for Config.from_env."""

    def test_from_env(self, tmp_path: Path) -> None:
        """Test loading configuration from environment."""
        receivers = tmp_path / "receivers.yaml"
        receivers.write_text("email: []\n")
        env = {
            "CLIENT_ID": "app-id",
            "CLIENT_SECRET": "app-secret",
            "TENANT_ID": TENANT_ID,
            "SUBSCRIPTION_ID": SUBSCRIPTION_ID,
            "AZURE_LOCATION": "westeurope",
            "STORAGE_ACCESS_TIER": "hot",
            "RECEIVERS_FILE": str(receivers),
            "OPERATION_TIMEOUT": "600",
            "LOG_FORMAT": "TEXT",
        }

        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()

        assert config.location == "westeurope"
        assert config.access_tier == StorageAccessTier.HOT
        assert config.receivers_file == receivers
        assert config.operation_timeout_seconds == 600
        assert config.log_format == LogFormat.TEXT

    def test_azure_prefixed_fallbacks(self) -> None:
        """Test that AZURE_* variable names are accepted."""
        env = {
            "AZURE_CLIENT_ID": "app-id",
            "AZURE_CLIENT_SECRET": "app-secret",
            "AZURE_TENANT_ID": TENANT_ID,
            "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
        }

        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()

        assert config.client_id == "app-id"
        assert config.subscription_id == SUBSCRIPTION_ID

    def test_empty_environment_fails(self) -> None:
        """Test that an empty environment fails before anything else runs."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError):
                Config.from_env()

    def test_invalid_integer(self) -> None:
        """Test that a non-integer timeout is rejected."""
        env = {"SUBSCRIPTION_ID": SUBSCRIPTION_ID, "OPERATION_TIMEOUT": "soon"}

        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env(require_credentials=False)

        assert "OPERATION_TIMEOUT must be an integer" in str(exc_info.value)

    def test_invalid_access_tier(self) -> None:
        """Test that an unknown access tier is rejected."""
        env = {"SUBSCRIPTION_ID": SUBSCRIPTION_ID, "STORAGE_ACCESS_TIER": "Archive"}

        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env(require_credentials=False)

        assert "STORAGE_ACCESS_TIER" in str(exc_info.value)

    def test_invalid_log_format(self) -> None:
        """Test that an unknown log format is rejected."""
        env = {"SUBSCRIPTION_ID": SUBSCRIPTION_ID, "LOG_FORMAT": "xml"}

        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env(require_credentials=False)

        assert "LOG_FORMAT" in str(exc_info.value)
