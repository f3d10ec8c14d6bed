"""Descriptor builders for every resource in the provisioning chain.

Builders are pure: they validate their inputs and return frozen models.
The only collaborator is the injected name factory. Validation failures
surface as InvalidSpec so the orchestrator can halt before the matching
create call.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import ValidationError

from .config import Config, StorageAccessTier
from .models import (
    LIST_KEYS_OPERATION,
    ActionGroupSpec,
    AlertCondition,
    AlertRuleSpec,
    AppPushReceiver,
    EmailReceiver,
    NotificationChannelSet,
    ResourceGroupSpec,
    ResourceSpec,
    SmsReceiver,
    StorageAccountSpec,
    VoiceReceiver,
    WebhookReceiver,
)
from .naming import NameFactory, create_random_name

logger = logging.getLogger(__name__)

RESOURCE_GROUP_PREFIX = "rgMonitor"
STORAGE_ACCOUNT_PREFIX = "samonitor"
ACTION_GROUP_PREFIX = "securityBreachActionGroup"
ALERT_RULE_PREFIX = "alertRule"

DEFAULT_ACTION_GROUP_SHORT_NAME = "AG"
NO_RECEIVERS_WARNING = "action group has no receivers; alerts will not notify anyone"


class InvalidSpec(Exception):
    """Raised when a resource descriptor fails local validation."""

    pass


def _format_validation_error(kind: str, error: ValidationError) -> str:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    )
    return f"Invalid {kind} descriptor: {details}"


def build_resource_group_spec(
    region: str,
    *,
    name_factory: NameFactory = create_random_name,
) -> ResourceGroupSpec:
    """Build the anchor resource group descriptor."""
    if not region:
        raise InvalidSpec("Resource group region is required")
    try:
        return ResourceGroupSpec(name=name_factory(RESOURCE_GROUP_PREFIX), location=region)
    except ValidationError as e:
        raise InvalidSpec(_format_validation_error("resource group", e)) from e


def build_storage_account_spec(
    region: str,
    access_tier: StorageAccessTier = StorageAccessTier.COOL,
    *,
    name_factory: NameFactory = create_random_name,
) -> StorageAccountSpec:
    """Build the storage account descriptor.

    Redundancy (geo-redundant) and kind (blob storage) are fixed; only the
    access tier varies.
    """
    try:
        tier = StorageAccessTier(access_tier)
    except ValueError as e:
        raise InvalidSpec(f"Unsupported storage access tier: {access_tier}") from e

    try:
        return StorageAccountSpec(
            name=name_factory(STORAGE_ACCOUNT_PREFIX),
            location=region,
            access_tier=tier.value,
        )
    except ValidationError as e:
        raise InvalidSpec(_format_validation_error("storage account", e)) from e


def build_action_group_spec(
    region: str,
    channels: NotificationChannelSet,
    *,
    short_name: str = DEFAULT_ACTION_GROUP_SHORT_NAME,
    name_factory: NameFactory = create_random_name,
) -> ActionGroupSpec:
    """Build the action group descriptor.

    An empty channel set is accepted by Azure but notifies nobody, so it is
    flagged on the descriptor instead of rejected.
    """
    warnings: tuple[str, ...] = ()
    if channels.total_receivers == 0:
        warnings = (NO_RECEIVERS_WARNING,)
        logger.warning(
            "Action group has no notification receivers",
            extra={"short_name": short_name},
        )

    try:
        return ActionGroupSpec(
            name=name_factory(ACTION_GROUP_PREFIX),
            location=region,
            short_name=short_name,
            channels=channels,
            warnings=warnings,
        )
    except ValidationError as e:
        raise InvalidSpec(_format_validation_error("action group", e)) from e


def storage_key_listing_conditions(storage_account_id: str) -> tuple[AlertCondition, ...]:
    """Conditions matching key retrieval on one storage account."""
    return (
        AlertCondition(field="category", equals="Security"),
        AlertCondition(field="resourceId", equals=storage_account_id),
        AlertCondition(field="operationName", equals=LIST_KEYS_OPERATION),
    )


def build_alert_rule_spec(
    scopes: Sequence[str],
    conditions: Sequence[AlertCondition],
    target_action_group_id: str | None,
    *,
    name_factory: NameFactory = create_random_name,
) -> AlertRuleSpec:
    """Build the activity log alert descriptor.

    Raises:
        InvalidSpec: If the action group target is absent, the scope list is
            empty, or the conditions are not exactly category, resourceId and
            operationName.
    """
    if not target_action_group_id:
        raise InvalidSpec("Alert rule requires a target action group id")
    if not scopes:
        raise InvalidSpec("Alert rule requires at least one scope")

    try:
        return AlertRuleSpec(
            name=name_factory(ALERT_RULE_PREFIX),
            scopes=tuple(scopes),
            conditions=tuple(conditions),
            action_group_id=target_action_group_id,
        )
    except ValidationError as e:
        raise InvalidSpec(_format_validation_error("alert rule", e)) from e


def default_notification_channels() -> NotificationChannelSet:
    """Receivers that page the security team through every channel kind."""
    return NotificationChannelSet(
        push=(
            AppPushReceiver(
                name="MAAPRtierOne", email_address="security_on_duty@securecorporation.com"
            ),
        ),
        email=(
            EmailReceiver(name="MERtierOne", email_address="security_guards@securecorporation.com"),
            EmailReceiver(name="MERtierTwo", email_address="ceo@securecorporation.com"),
        ),
        sms=(SmsReceiver(name="MSRtierOne", country_code="1", phone_number="4255655665"),),
        voice=(VoiceReceiver(name="MVRtierOne", country_code="1", phone_number="2062066050"),),
        webhook=(
            WebhookReceiver(
                name="MWRtierOne", service_uri="https://www.weseemstobehacked.securecorporation.com"
            ),
        ),
    )


def predicted_resource_id(subscription_id: str, resource_group: str, spec: ResourceSpec) -> str:
    """ARM id a resource will receive once created."""
    group_id = f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
    if isinstance(spec, ResourceGroupSpec):
        return group_id
    return f"{group_id}/providers/{spec.kind.value}/{spec.name}"


def build_plan(
    config: Config,
    channels: NotificationChannelSet,
    *,
    name_factory: NameFactory = create_random_name,
) -> list[ResourceSpec]:
    """Build every descriptor of the chain without contacting Azure.

    Identifiers that only exist after creation are replaced by the ids ARM
    will assign, which are deterministic.
    """
    group = build_resource_group_spec(config.location, name_factory=name_factory)
    storage = build_storage_account_spec(
        config.location, config.access_tier, name_factory=name_factory
    )
    action_group = build_action_group_spec(
        config.action_group_location, channels, name_factory=name_factory
    )
    alert_rule = build_alert_rule_spec(
        [config.subscription_scope],
        storage_key_listing_conditions(
            predicted_resource_id(config.subscription_id, group.name, storage)
        ),
        predicted_resource_id(config.subscription_id, group.name, action_group),
        name_factory=name_factory,
    )
    return [group, storage, action_group, alert_rule]
