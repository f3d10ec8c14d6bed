"""Verification probe for the storage key listing alert.

After the alert rule exists, the probe performs the operation the rule
watches (listing storage account keys) and then reads the activity log
to show the event. Activity log ingestion lags by minutes, so an empty
result is reported as a warning and never as a failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from .credentials import log_security_audit_event
from .models import LIST_KEYS_OPERATION
from .provider import ActivityLogEntry, ProviderError, ResourceHandle, ResourceProvider

logger = logging.getLogger(__name__)

PROBE_LOOKBACK = timedelta(days=7)


@dataclass
class ProbeResult:
    """Diagnostic result of the verification probe."""

    keys_listed: list[str] = field(default_factory=list)
    matching_entries: list[ActivityLogEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def observed(self) -> bool:
        return bool(self.matching_entries)


async def run_verification_probe(
    provider: ResourceProvider,
    storage_account: ResourceHandle,
    *,
    now: datetime | None = None,
) -> ProbeResult:
    """Trigger the watched operation and look for it in the activity log.

    Failures are logged and recorded on the result, not raised.
    Cancellation still propagates.
    """
    result = ProbeResult()
    resource_id = storage_account.resource_id

    try:
        result.keys_listed = await provider.list_storage_keys(resource_id)
    except Exception as e:
        logger.warning(
            "Listing storage account keys failed",
            extra={"resource_id": resource_id, "error": str(e), "error_type": type(e).__name__},
            exc_info=not isinstance(e, ProviderError),
        )
        result.error = str(e)
        return result

    log_security_audit_event(
        "key_access",
        target_resource=resource_id,
        action=LIST_KEYS_OPERATION,
        result="success",
    )
    logger.info(
        f"Listed {len(result.keys_listed)} keys of storage account {storage_account.name}",
        extra={"key_names": result.keys_listed},
    )

    end = now or datetime.now(UTC)
    start = end - PROBE_LOOKBACK
    try:
        entries = await provider.query_activity_log(resource_id, start, end)
    except Exception as e:
        logger.warning(
            "Querying the activity log failed",
            extra={"resource_id": resource_id, "error": str(e), "error_type": type(e).__name__},
            exc_info=not isinstance(e, ProviderError),
        )
        result.error = str(e)
        return result

    result.matching_entries = [
        entry for entry in entries if entry.operation_name.lower() == LIST_KEYS_OPERATION.lower()
    ]

    for entry in result.matching_entries:
        logger.info(
            "Activity log entry",
            extra={
                "operation_name": entry.operation_name,
                "caller": entry.caller,
                "status": entry.status,
                "event_timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
            },
        )

    if not result.observed:
        logger.warning(
            "No key listing events in the activity log yet; ingestion may still be pending",
            extra={
                "resource_id": resource_id,
                "lookback_days": PROBE_LOOKBACK.days,
                "entries_scanned": len(entries),
            },
        )

    return result
