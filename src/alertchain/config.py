"""Configuration management with validation.

Identity and placement settings are read from the environment once at
startup. Invalid or missing values fail the whole run before any Azure
resource is touched.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class StorageAccessTier(str, Enum):
    """Blob access tiers accepted for the monitored storage account."""

    HOT = "Hot"
    COOL = "Cool"


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_LOCATION = "eastus2"
DEFAULT_ACTION_GROUP_LOCATION = "global"

DEFAULT_OPERATION_TIMEOUT_SECONDS = 1800
MIN_OPERATION_TIMEOUT_SECONDS = 60
MAX_OPERATION_TIMEOUT_SECONDS = 7200

MAX_RECEIVERS_FILE_SIZE_BYTES = 64 * 1024  # 64KB max receivers file

# Input validation patterns
VALID_GUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"


@dataclass(frozen=True)
class Config:
    """Workflow configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-chain.
    """

    subscription_id: str
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    tenant_id: str = ""

    # Placement
    location: str = DEFAULT_LOCATION
    action_group_location: str = DEFAULT_ACTION_GROUP_LOCATION
    access_tier: StorageAccessTier = StorageAccessTier.COOL

    # Notification receivers (None selects the built-in sample receivers)
    receivers_file: Path | None = None

    # Timing
    operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS

    log_format: LogFormat = LogFormat.JSON

    # Plan rendering does not authenticate, so it can skip the identity checks
    require_credentials: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Every problem is collected so a single error lists all of them.
        """
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("SUBSCRIPTION_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.subscription_id.lower()):
            errors.append(f"SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if self.require_credentials:
            if not self.client_id:
                errors.append("CLIENT_ID is required")
            if not self.client_secret:
                errors.append("CLIENT_SECRET is required")
            if not self.tenant_id:
                errors.append("TENANT_ID is required")
            elif not re.match(VALID_GUID_PATTERN, self.tenant_id.lower()):
                errors.append(f"TENANT_ID must be a valid GUID: {self.tenant_id}")

        if not self.location:
            errors.append("AZURE_LOCATION is required")
        elif not re.match(VALID_LOCATION_PATTERN, self.location.lower()):
            errors.append(f"AZURE_LOCATION must be a valid Azure region: {self.location}")

        if not self.action_group_location:
            errors.append("ACTION_GROUP_LOCATION is required")

        if not (
            MIN_OPERATION_TIMEOUT_SECONDS
            <= self.operation_timeout_seconds
            <= MAX_OPERATION_TIMEOUT_SECONDS
        ):
            errors.append(
                f"OPERATION_TIMEOUT must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
            )

        if self.receivers_file is not None and not self.receivers_file.is_file():
            errors.append(f"Receivers file does not exist: {self.receivers_file}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def subscription_scope(self) -> str:
        """ARM scope of the whole subscription."""
        return f"/subscriptions/{self.subscription_id}"

    @classmethod
    def from_env(cls, *, require_credentials: bool = True) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            CLIENT_ID / AZURE_CLIENT_ID: Service principal application ID
            CLIENT_SECRET / AZURE_CLIENT_SECRET: Service principal secret
            TENANT_ID / AZURE_TENANT_ID: Entra ID tenant
            SUBSCRIPTION_ID / AZURE_SUBSCRIPTION_ID: Target Azure subscription
            AZURE_LOCATION: Region for the resource group and storage (default: eastus2)
            ACTION_GROUP_LOCATION: Region for the action group (default: global)
            STORAGE_ACCESS_TIER: Hot or Cool (default: Cool)
            RECEIVERS_FILE: YAML file with notification receivers (optional)
            OPERATION_TIMEOUT: Seconds to wait for each Azure operation (default: 1800)
            LOG_FORMAT: json or text (default: json)
        """

        def get_first(*keys: str) -> str:
            for key in keys:
                value = os.environ.get(key)
                if value:
                    return value
            return ""

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_access_tier(value: str | None) -> StorageAccessTier:
            if not value:
                return StorageAccessTier.COOL
            for tier in StorageAccessTier:
                if tier.value.lower() == value.lower():
                    return tier
            valid = [t.value for t in StorageAccessTier]
            raise ConfigurationError(f"STORAGE_ACCESS_TIER must be one of {valid}: {value}")

        def get_log_format(value: str | None) -> LogFormat:
            if not value:
                return LogFormat.JSON
            try:
                return LogFormat(value.lower())
            except ValueError as e:
                valid = [f.value for f in LogFormat]
                raise ConfigurationError(f"LOG_FORMAT must be one of {valid}: {value}") from e

        receivers_file = os.environ.get("RECEIVERS_FILE")

        return cls(
            subscription_id=get_first("SUBSCRIPTION_ID", "AZURE_SUBSCRIPTION_ID"),
            client_id=get_first("CLIENT_ID", "AZURE_CLIENT_ID"),
            client_secret=get_first("CLIENT_SECRET", "AZURE_CLIENT_SECRET"),
            tenant_id=get_first("TENANT_ID", "AZURE_TENANT_ID"),
            location=os.environ.get("AZURE_LOCATION", DEFAULT_LOCATION),
            action_group_location=os.environ.get(
                "ACTION_GROUP_LOCATION", DEFAULT_ACTION_GROUP_LOCATION
            ),
            access_tier=get_access_tier(os.environ.get("STORAGE_ACCESS_TIER")),
            receivers_file=Path(receivers_file) if receivers_file else None,
            operation_timeout_seconds=get_int(
                "OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS
            ),
            log_format=get_log_format(os.environ.get("LOG_FORMAT")),
            require_credentials=require_credentials,
        )
