"""Azure Resource Manager access for the provisioning chain.

The orchestrator only sees the ResourceProvider protocol. ArmProvider is
the Azure SDK implementation: every SDK call is blocking, so it runs in
the default executor and is awaited with a timeout. Long-running
operations are driven to a terminal state by the SDK's own LROPoller;
nothing here polls or retries.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, TypeVar

from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.core.tools import parse_resource_id
from azure.mgmt.monitor import MonitorManagementClient
from azure.mgmt.monitor import models as monitor_models
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.storage import StorageManagementClient
from azure.mgmt.storage import models as storage_models

from .config import DEFAULT_OPERATION_TIMEOUT_SECONDS, Config
from .credentials import get_client_secret_credential
from .models import (
    ActionGroupSpec,
    AlertRuleSpec,
    ResourceGroupSpec,
    ResourceKind,
    ResourceSpec,
    StorageAccountSpec,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(Exception):
    """Raised when an Azure create, delete or query call fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


@dataclass(frozen=True)
class ResourceHandle:
    """Minimal identity of a created resource."""

    kind: ResourceKind
    name: str
    resource_id: str


@dataclass(frozen=True)
class ActivityLogEntry:
    """Activity log event reduced to the fields the probe reports."""

    operation_name: str
    caller: str | None = None
    status: str | None = None
    timestamp: datetime | None = None
    resource_id: str | None = None
    category: str | None = None


class ResourceProvider(Protocol):
    """Operations the orchestrator needs from the cloud control plane.

    Every call returns only once the underlying operation is terminal.
    """

    async def create_or_update(
        self, spec: ResourceSpec, parent: ResourceHandle | None = None
    ) -> ResourceHandle: ...

    async def delete(self, resource_id: str) -> None: ...

    async def list_storage_keys(self, resource_id: str) -> list[str]: ...

    async def query_activity_log(
        self, resource_id: str, start: datetime, end: datetime
    ) -> list[ActivityLogEntry]: ...


def _localized(value: Any) -> str | None:
    """Extract the invariant value from an SDK LocalizableString."""
    if value is None:
        return None
    return getattr(value, "value", None) or getattr(value, "localized_value", None)


def _format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class ArmProvider:
    """ResourceProvider backed by the Azure management SDKs."""

    def __init__(
        self,
        resource_client: ResourceManagementClient,
        storage_client: StorageManagementClient,
        monitor_client: MonitorManagementClient,
        *,
        operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS,
    ) -> None:
        self._resource_client = resource_client
        self._storage_client = storage_client
        self._monitor_client = monitor_client
        self._timeout = operation_timeout_seconds

    @classmethod
    def from_config(cls, config: Config) -> ArmProvider:
        """Authenticate and build the management clients for one subscription."""
        credential = get_client_secret_credential(config)
        return cls(
            ResourceManagementClient(
                credential=credential, subscription_id=config.subscription_id
            ),
            StorageManagementClient(credential=credential, subscription_id=config.subscription_id),
            MonitorManagementClient(credential=credential, subscription_id=config.subscription_id),
            operation_timeout_seconds=config.operation_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _execute(self, operation: str, call: Callable[[], T]) -> T:
        """Run a blocking SDK call in the executor with a timeout.

        Raises:
            ProviderError: If the call fails or exceeds the timeout.
        """
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, call),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            logger.error(
                f"{operation} timed out",
                extra={"operation": operation, "timeout_seconds": self._timeout},
            )
            raise ProviderError(
                f"{operation} timed out after {self._timeout}s", operation=operation
            ) from e
        except HttpResponseError as e:
            error_code = e.error.code if e.error else None
            logger.error(
                f"{operation} failed with Azure API error: {e.message}",
                extra={
                    "operation": operation,
                    "status_code": e.status_code,
                    "error_code": error_code,
                },
            )
            raise ProviderError(
                f"Azure API error ({e.status_code}) during {operation}: {e.message}",
                operation=operation,
                status_code=e.status_code,
            ) from e
        except AzureError as e:
            logger.error(f"{operation} failed with Azure error: {e}")
            raise ProviderError(
                f"Azure error during {operation}: {e}", operation=operation
            ) from e

    async def _execute_lro(self, operation: str, begin: Callable[[], Any]) -> Any:
        """Start a long-running operation and wait for its terminal result."""
        poller = await self._execute(f"{operation} (start)", begin)
        return await self._execute(operation, poller.result)

    # -------------------------------------------------------------------------
    # ResourceProvider
    # -------------------------------------------------------------------------

    async def create_or_update(
        self, spec: ResourceSpec, parent: ResourceHandle | None = None
    ) -> ResourceHandle:
        """Create a resource and wait until Azure reports a terminal state.

        Args:
            spec: Descriptor of the resource.
            parent: Resource group handle; required for everything but the group itself.
        """
        if isinstance(spec, ResourceGroupSpec):
            result = await self._create_resource_group(spec)
        else:
            if parent is None or parent.kind is not ResourceKind.RESOURCE_GROUP:
                raise ProviderError(
                    f"{spec.kind.value} '{spec.name}' requires a parent resource group",
                    operation="create",
                )
            if isinstance(spec, StorageAccountSpec):
                result = await self._create_storage_account(spec, parent.name)
            elif isinstance(spec, ActionGroupSpec):
                result = await self._create_action_group(spec, parent.name)
            elif isinstance(spec, AlertRuleSpec):
                result = await self._create_activity_log_alert(spec, parent.name)
            else:
                raise TypeError(f"Unsupported resource spec: {type(spec).__name__}")

        return ResourceHandle(kind=spec.kind, name=result.name, resource_id=result.id)

    async def delete(self, resource_id: str) -> None:
        """Delete a resource group and everything in it.

        Only resource groups are deleted directly; children go with them.
        """
        parts = parse_resource_id(resource_id)
        group_name = parts.get("resource_group")
        if not group_name or parts.get("name"):
            raise ProviderError(
                f"Only resource groups can be deleted: {resource_id}",
                operation="delete",
            )

        await self._execute_lro(
            f"delete resource group '{group_name}'",
            lambda: self._resource_client.resource_groups.begin_delete(
                resource_group_name=group_name
            ),
        )

    async def list_storage_keys(self, resource_id: str) -> list[str]:
        """List storage account keys, returning key names only."""
        parts = parse_resource_id(resource_id)
        result = await self._execute(
            f"list keys of storage account '{parts['name']}'",
            lambda: self._storage_client.storage_accounts.list_keys(
                resource_group_name=parts["resource_group"],
                account_name=parts["name"],
            ),
        )
        return [key.key_name for key in (result.keys or [])]

    async def query_activity_log(
        self, resource_id: str, start: datetime, end: datetime
    ) -> list[ActivityLogEntry]:
        filter_expression = (
            f"eventTimestamp ge '{_format_timestamp(start)}' "
            f"and eventTimestamp le '{_format_timestamp(end)}' "
            f"and resourceUri eq '{resource_id}'"
        )

        def fetch() -> list[ActivityLogEntry]:
            return [
                ActivityLogEntry(
                    operation_name=_localized(event.operation_name) or "",
                    caller=event.caller,
                    status=_localized(event.status),
                    timestamp=event.event_timestamp,
                    resource_id=event.resource_id,
                    category=_localized(event.category),
                )
                for event in self._monitor_client.activity_logs.list(filter=filter_expression)
            ]

        return await self._execute("query activity log", fetch)

    # -------------------------------------------------------------------------
    # Per-kind create calls
    # -------------------------------------------------------------------------

    async def _create_resource_group(self, spec: ResourceGroupSpec) -> Any:
        return await self._execute(
            f"create resource group '{spec.name}'",
            lambda: self._resource_client.resource_groups.create_or_update(
                resource_group_name=spec.name,
                parameters=ResourceGroup(location=spec.location),
            ),
        )

    async def _create_storage_account(self, spec: StorageAccountSpec, group_name: str) -> Any:
        parameters = storage_models.StorageAccountCreateParameters(
            sku=storage_models.Sku(name=spec.sku_name.value),
            kind=spec.account_kind,
            location=spec.location,
            access_tier=spec.access_tier,
        )
        return await self._execute_lro(
            f"create storage account '{spec.name}'",
            lambda: self._storage_client.storage_accounts.begin_create(
                resource_group_name=group_name,
                account_name=spec.name,
                parameters=parameters,
            ),
        )

    async def _create_action_group(self, spec: ActionGroupSpec, group_name: str) -> Any:
        channels = spec.channels
        action_group = monitor_models.ActionGroupResource(
            location=spec.location,
            group_short_name=spec.short_name,
            enabled=spec.enabled,
            azure_app_push_receivers=[
                monitor_models.AzureAppPushReceiver(name=r.name, email_address=r.email_address)
                for r in channels.push
            ],
            email_receivers=[
                monitor_models.EmailReceiver(name=r.name, email_address=r.email_address)
                for r in channels.email
            ],
            sms_receivers=[
                monitor_models.SmsReceiver(
                    name=r.name, country_code=r.country_code, phone_number=r.phone_number
                )
                for r in channels.sms
            ],
            voice_receivers=[
                monitor_models.VoiceReceiver(
                    name=r.name, country_code=r.country_code, phone_number=r.phone_number
                )
                for r in channels.voice
            ],
            webhook_receivers=[
                monitor_models.WebhookReceiver(name=r.name, service_uri=r.service_uri)
                for r in channels.webhook
            ],
        )
        return await self._execute(
            f"create action group '{spec.name}'",
            lambda: self._monitor_client.action_groups.create_or_update(
                group_name, spec.name, action_group
            ),
        )

    async def _create_activity_log_alert(self, spec: AlertRuleSpec, group_name: str) -> Any:
        alert = monitor_models.ActivityLogAlertResource(
            location=spec.location,
            scopes=list(spec.scopes),
            condition=monitor_models.AlertRuleAllOfCondition(
                all_of=[
                    monitor_models.AlertRuleAnyOfOrLeafCondition(field=c.field, equals=c.equals)
                    for c in spec.conditions
                ]
            ),
            actions=monitor_models.ActionList(
                action_groups=[monitor_models.ActionGroup(action_group_id=spec.action_group_id)]
            ),
            enabled=spec.enabled,
            description=spec.description,
        )
        return await self._execute(
            f"create activity log alert '{spec.name}'",
            lambda: self._monitor_client.activity_log_alerts.create_or_update(
                group_name, spec.name, alert
            ),
        )
