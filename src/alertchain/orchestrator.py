"""Provisioning orchestrator for the storage key listing alert.

Drives a strictly linear chain of create operations:

    START -> GROUP_CREATED -> STORAGE_CREATED -> ACTION_GROUP_CREATED
          -> ALERT_RULE_CREATED -> DONE

Each step waits for the previous create to reach a terminal state because
later descriptors need the ids produced by earlier ones. The first
ProviderError or InvalidSpec halts the chain and is recorded on the
outcome. Nothing is retried here. The resource group is handed to the
TeardownGuard the moment it exists; that guard, not the orchestrator, is
responsible for deleting it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .config import Config
from .descriptors import (
    InvalidSpec,
    build_action_group_spec,
    build_alert_rule_spec,
    build_resource_group_spec,
    build_storage_account_spec,
    default_notification_channels,
    storage_key_listing_conditions,
)
from .models import NotificationChannelSet, ResourceKind
from .naming import NameFactory, create_random_name
from .provider import ProviderError, ResourceHandle, ResourceProvider
from .teardown import CleanupError, TeardownGuard
from .verification import ProbeResult, run_verification_probe

logger = logging.getLogger(__name__)


class ProvisioningState(str, Enum):
    """Forward-only states of the provisioning chain."""

    START = "Start"
    GROUP_CREATED = "GroupCreated"
    STORAGE_CREATED = "StorageCreated"
    ACTION_GROUP_CREATED = "ActionGroupCreated"
    ALERT_RULE_CREATED = "AlertRuleCreated"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class ProvisioningOutcome:
    """Result of one orchestrator run.

    ``handles`` holds every resource created so far, complete or partial.
    On failure ``halted_at`` is the last state reached before the error.
    """

    state: ProvisioningState = ProvisioningState.START
    halted_at: ProvisioningState | None = None
    handles: dict[ResourceKind, ResourceHandle] = field(default_factory=dict)
    error: Exception | None = None
    probe: ProbeResult | None = None
    cleanup_error: CleanupError | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def success(self) -> bool:
        return self.state is ProvisioningState.DONE

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


class ProvisioningOrchestrator:
    """Runs the provisioning chain against a ResourceProvider."""

    def __init__(
        self,
        config: Config,
        provider: ResourceProvider,
        guard: TeardownGuard,
        *,
        channels: NotificationChannelSet | None = None,
        name_factory: NameFactory = create_random_name,
    ) -> None:
        self._config = config
        self._provider = provider
        self._guard = guard
        guard.attach(provider)
        self._channels = channels if channels is not None else default_notification_channels()
        self._name_factory = name_factory

    async def run(self) -> ProvisioningOutcome:
        """Execute the chain, then the verification probe.

        Returns:
            ProvisioningOutcome in state DONE, or FAILED with the halting error.
        """
        outcome = ProvisioningOutcome()

        try:
            await self._provision(outcome)
        except (ProviderError, InvalidSpec) as e:
            outcome.halted_at = outcome.state
            outcome.state = ProvisioningState.FAILED
            outcome.error = e
            logger.error(
                f"Provisioning halted at {outcome.halted_at.value}: {e}",
                extra={
                    "halted_at": outcome.halted_at.value,
                    "error_type": type(e).__name__,
                    "created": [h.resource_id for h in outcome.handles.values()],
                },
            )

        outcome.end_time = datetime.now(UTC)
        logger.info(
            f"Provisioning finished in state {outcome.state.value}, "
            f"duration={outcome.duration_seconds:.1f}s"
        )
        return outcome

    async def _provision(self, outcome: ProvisioningOutcome) -> None:
        config = self._config
        names = self._name_factory

        group_spec = build_resource_group_spec(config.location, name_factory=names)
        logger.info(f"creating a resource group with name : {group_spec.name}...")
        group = await self._provider.create_or_update(group_spec)
        self._guard.claim(group)
        self._advance(outcome, group, ProvisioningState.GROUP_CREATED)
        logger.info(f"Created a resource group with name: {group.name}")

        storage_spec = build_storage_account_spec(
            config.location, config.access_tier, name_factory=names
        )
        logger.info("Creating a storage account...")
        storage = await self._provider.create_or_update(storage_spec, group)
        self._advance(outcome, storage, ProvisioningState.STORAGE_CREATED)
        logger.info(f"Created a storage account with name : {storage.name}")

        action_group_spec = build_action_group_spec(
            config.action_group_location, self._channels, name_factory=names
        )
        logger.info("Creating actionGroup...")
        action_group = await self._provider.create_or_update(action_group_spec, group)
        self._advance(outcome, action_group, ProvisioningState.ACTION_GROUP_CREATED)
        logger.info(f"Created actionGroup with name: {action_group.name}")

        alert_spec = build_alert_rule_spec(
            [config.subscription_scope],
            storage_key_listing_conditions(storage.resource_id),
            action_group.resource_id,
            name_factory=names,
        )
        logger.info("Creating activityLogAlert...")
        alert = await self._provider.create_or_update(alert_spec, group)
        self._advance(outcome, alert, ProvisioningState.ALERT_RULE_CREATED)
        logger.info(f"Created activityLogAlert with name : {alert.name}")

        outcome.probe = await run_verification_probe(self._provider, storage)
        outcome.state = ProvisioningState.DONE

    @staticmethod
    def _advance(
        outcome: ProvisioningOutcome,
        handle: ResourceHandle,
        state: ProvisioningState,
    ) -> None:
        outcome.handles[handle.kind] = handle
        outcome.state = state
        logger.debug(
            "Provisioning state advanced",
            extra={"state": state.value, "resource_id": handle.resource_id},
        )


async def run_workflow(
    load_config: Callable[[], Config],
    provider_factory: Callable[[Config], ResourceProvider],
    *,
    load_channels: Callable[[Config], NotificationChannelSet] | None = None,
    name_factory: NameFactory = create_random_name,
) -> ProvisioningOutcome:
    """Load configuration, authenticate and run the chain under a TeardownGuard.

    Everything happens inside the guard's scope, so a failure while loading
    configuration or credentials leaves it owning nothing and it deletes
    nothing.

    Args:
        load_config: Callable returning a Config.
        provider_factory: Callable building a ResourceProvider from a Config.
        load_channels: Optional callable returning the receivers for a Config.
        name_factory: Resource name generator.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    async with TeardownGuard() as guard:
        config = load_config()
        channels = load_channels(config) if load_channels is not None else None
        provider = provider_factory(config)
        orchestrator = ProvisioningOrchestrator(
            config, provider, guard, channels=channels, name_factory=name_factory
        )
        outcome = await orchestrator.run()

    outcome.cleanup_error = guard.cleanup_error
    return outcome
