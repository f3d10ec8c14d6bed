"""Pydantic models for resource descriptors with validation.

These models provide:
1. Immutable, provider-agnostic descriptions of each resource to create
2. Validation at the boundary (fail fast, fail loudly)
3. YAML/JSON friendly dumps for plan rendering
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ARM operation the alert rule is designed to detect
LIST_KEYS_OPERATION = "Microsoft.Storage/storageAccounts/listkeys/action"

# Fields that must all be present in the activity log alert condition
REQUIRED_CONDITION_FIELDS: tuple[str, ...] = ("category", "resourceId", "operationName")

MAX_ACTION_GROUP_SHORT_NAME_LENGTH = 12
VALID_STORAGE_ACCOUNT_NAME_PATTERN = r"^[a-z0-9]{3,24}$"


class ResourceKind(str, Enum):
    """Kinds of resources created by the workflow, in creation order."""

    RESOURCE_GROUP = "Microsoft.Resources/resourceGroups"
    STORAGE_ACCOUNT = "Microsoft.Storage/storageAccounts"
    ACTION_GROUP = "Microsoft.Insights/actionGroups"
    ACTIVITY_LOG_ALERT = "Microsoft.Insights/activityLogAlerts"


class StorageSkuName(str, Enum):
    """Storage redundancy SKUs."""

    STANDARD_LRS = "Standard_LRS"
    STANDARD_GRS = "Standard_GRS"


class FrozenModel(BaseModel):
    """Base for immutable descriptor models."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


# =============================================================================
# Anchor and storage
# =============================================================================


class ResourceGroupSpec(FrozenModel):
    """Resource group that anchors every other resource."""

    kind: Literal[ResourceKind.RESOURCE_GROUP] = ResourceKind.RESOURCE_GROUP
    name: Annotated[str, Field(min_length=1, max_length=90)]
    location: Annotated[str, Field(min_length=1)]


class StorageAccountSpec(FrozenModel):
    """Storage account whose key listing is monitored."""

    kind: Literal[ResourceKind.STORAGE_ACCOUNT] = ResourceKind.STORAGE_ACCOUNT
    name: str
    location: Annotated[str, Field(min_length=1)]
    sku_name: StorageSkuName = Field(StorageSkuName.STANDARD_GRS, alias="skuName")
    account_kind: str = Field("BlobStorage", alias="accountKind")
    access_tier: str = Field("Cool", alias="accessTier")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not re.match(VALID_STORAGE_ACCOUNT_NAME_PATTERN, v):
            raise ValueError("name must be 3-24 lowercase letters or digits")
        return v


# =============================================================================
# Notification receivers
# =============================================================================


class AppPushReceiver(FrozenModel):
    """Azure mobile app push receiver."""

    name: Annotated[str, Field(min_length=1)]
    email_address: Annotated[str, Field(min_length=3, alias="emailAddress")]


class EmailReceiver(FrozenModel):
    """Email receiver."""

    name: Annotated[str, Field(min_length=1)]
    email_address: Annotated[str, Field(min_length=3, alias="emailAddress")]

    @field_validator("email_address")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("emailAddress must contain '@'")
        return v


class SmsReceiver(FrozenModel):
    """SMS receiver."""

    name: Annotated[str, Field(min_length=1)]
    country_code: Annotated[str, Field(pattern=r"^[0-9]{1,3}$", alias="countryCode")]
    phone_number: Annotated[str, Field(pattern=r"^[0-9]{4,15}$", alias="phoneNumber")]


class VoiceReceiver(FrozenModel):
    """Voice call receiver."""

    name: Annotated[str, Field(min_length=1)]
    country_code: Annotated[str, Field(pattern=r"^[0-9]{1,3}$", alias="countryCode")]
    phone_number: Annotated[str, Field(pattern=r"^[0-9]{4,15}$", alias="phoneNumber")]


class WebhookReceiver(FrozenModel):
    """Webhook receiver."""

    name: Annotated[str, Field(min_length=1)]
    service_uri: str = Field(alias="serviceUri")

    @field_validator("service_uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("serviceUri must be an http(s) URL")
        return v


class NotificationChannelSet(FrozenModel):
    """Receivers attached to an action group, partitioned by channel kind.

    Receiver names must be unique within a channel kind. Azure enforces
    that when the action group is created.
    """

    push: tuple[AppPushReceiver, ...] = ()
    email: tuple[EmailReceiver, ...] = ()
    sms: tuple[SmsReceiver, ...] = ()
    voice: tuple[VoiceReceiver, ...] = ()
    webhook: tuple[WebhookReceiver, ...] = ()

    @property
    def total_receivers(self) -> int:
        return (
            len(self.push) + len(self.email) + len(self.sms) + len(self.voice) + len(self.webhook)
        )


class ActionGroupSpec(FrozenModel):
    """Action group that notifies the security team."""

    kind: Literal[ResourceKind.ACTION_GROUP] = ResourceKind.ACTION_GROUP
    name: Annotated[str, Field(min_length=1, max_length=260)]
    location: Annotated[str, Field(min_length=1)]
    short_name: Annotated[
        str, Field(min_length=1, max_length=MAX_ACTION_GROUP_SHORT_NAME_LENGTH, alias="shortName")
    ]
    enabled: bool = True
    channels: NotificationChannelSet = Field(default_factory=NotificationChannelSet)

    # Non-fatal findings recorded by the builder (e.g. no receivers)
    warnings: tuple[str, ...] = ()


# =============================================================================
# Activity log alert
# =============================================================================


class AlertCondition(FrozenModel):
    """Single leaf condition; every condition of a rule must match."""

    field: Annotated[str, Field(min_length=1)]
    equals: Annotated[str, Field(min_length=1)]


class AlertRuleSpec(FrozenModel):
    """Activity log alert bound to the storage account and action group."""

    kind: Literal[ResourceKind.ACTIVITY_LOG_ALERT] = ResourceKind.ACTIVITY_LOG_ALERT
    name: Annotated[str, Field(min_length=1, max_length=260)]
    location: str = "global"
    scopes: Annotated[tuple[str, ...], Field(min_length=1)]
    conditions: tuple[AlertCondition, ...]
    action_group_id: Annotated[str, Field(min_length=1, alias="actionGroupId")]
    description: str = "Security StorageAccounts ListAccountKeys trigger"
    enabled: bool = True

    @field_validator("conditions")
    @classmethod
    def validate_conditions(cls, v: tuple[AlertCondition, ...]) -> tuple[AlertCondition, ...]:
        fields = [c.field for c in v]
        missing = [f for f in REQUIRED_CONDITION_FIELDS if f not in fields]
        if missing:
            raise ValueError(f"conditions missing required fields: {missing}")
        if len(fields) != len(REQUIRED_CONDITION_FIELDS):
            raise ValueError(
                f"conditions must contain exactly {list(REQUIRED_CONDITION_FIELDS)}: {fields}"
            )
        return v

    def condition_value(self, field_name: str) -> str | None:
        for condition in self.conditions:
            if condition.field == field_name:
                return condition.equals
        return None


ResourceSpec = ResourceGroupSpec | StorageAccountSpec | ActionGroupSpec | AlertRuleSpec
