"""Tests for the key listing verification probe."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

import pytest

from alertchain.models import LIST_KEYS_OPERATION, ResourceKind
from alertchain.provider import ActivityLogEntry, ProviderError, ResourceHandle
from alertchain.verification import PROBE_LOOKBACK, run_verification_probe
from azure_mock import MOCK_SUBSCRIPTION_ID, MockResourceProvider

STORAGE_ID = (
    f"/subscriptions/{MOCK_SUBSCRIPTION_ID}/resourceGroups/rgmonitor1"
    "/providers/Microsoft.Storage/storageAccounts/samonitor2"
)
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def storage_handle() -> ResourceHandle:
    return ResourceHandle(
        kind=ResourceKind.STORAGE_ACCOUNT, name="samonitor2", resource_id=STORAGE_ID
    )


def entry(operation_name: str, timestamp: datetime) -> ActivityLogEntry:
    return ActivityLogEntry(
        operation_name=operation_name,
        caller="secops@example.com",
        status="Succeeded",
        timestamp=timestamp,
        resource_id=STORAGE_ID,
    )


class TestVerificationProbe:
    """Tests for run_verification_probe."""

    @pytest.mark.asyncio
    async def test_lookback_window(self) -> None:
        """Test that the activity log is read over the last seven days."""
        provider = MockResourceProvider(record_key_listing=False)

        await run_verification_probe(provider, storage_handle(), now=NOW)

        (query,) = [c for c in provider.calls if c.operation == "query_activity_log"]
        assert query.target == STORAGE_ID
        assert query.details["end"] == NOW
        assert query.details["start"] == NOW - PROBE_LOOKBACK
        assert PROBE_LOOKBACK == timedelta(days=7)

    @pytest.mark.asyncio
    async def test_only_key_listing_entries_match(self) -> None:
        provider = MockResourceProvider(
            record_key_listing=False,
            activity_log=[
                entry(LIST_KEYS_OPERATION.upper(), NOW - timedelta(hours=1)),
                entry("Microsoft.Storage/storageAccounts/write", NOW - timedelta(hours=2)),
                entry(LIST_KEYS_OPERATION, NOW - timedelta(days=8)),
            ],
        )

        result = await run_verification_probe(provider, storage_handle(), now=NOW)

        assert result.observed is True
        assert len(result.matching_entries) == 1
        assert result.matching_entries[0].timestamp == NOW - timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_no_entries_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that an empty activity log is a warning, not an error."""
        provider = MockResourceProvider(record_key_listing=False)

        with caplog.at_level(logging.WARNING, logger="alertchain.verification"):
            result = await run_verification_probe(provider, storage_handle(), now=NOW)

        assert result.observed is False
        assert result.error is None
        assert result.keys_listed == ["key1", "key2"]
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    @pytest.mark.asyncio
    async def test_list_keys_failure_skips_query(self) -> None:
        provider = MockResourceProvider(
            fail_list_keys=ProviderError("Forbidden", operation="list keys", status_code=403)
        )

        result = await run_verification_probe(provider, storage_handle(), now=NOW)

        assert result.error is not None
        assert "Forbidden" in result.error
        assert [c.operation for c in provider.calls] == ["list_keys"]

    @pytest.mark.asyncio
    async def test_query_failure_recorded(self) -> None:
        provider = MockResourceProvider(
            fail_query=ProviderError("Throttled", operation="query activity log", status_code=429)
        )

        result = await run_verification_probe(provider, storage_handle())

        assert result.keys_listed == ["key1", "key2"]
        assert result.observed is False
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_key_access_audited(self, caplog: pytest.LogCaptureFixture) -> None:
        provider = MockResourceProvider()

        with caplog.at_level(logging.INFO, logger="alertchain.credentials"):
            await run_verification_probe(provider, storage_handle())

        audits = [r for r in caplog.records if getattr(r, "security_audit", False)]
        assert len(audits) == 1
        assert audits[0].event_type == "key_access"
        assert audits[0].target_resource == STORAGE_ID

    @pytest.mark.asyncio
    async def test_unexpected_list_keys_error_recorded(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that errors outside ProviderError do not escape the probe."""
        provider = MockResourceProvider(fail_list_keys=RuntimeError("socket closed"))

        with caplog.at_level(logging.WARNING, logger="alertchain.verification"):
            result = await run_verification_probe(provider, storage_handle(), now=NOW)

        assert result.error == "socket closed"
        assert result.keys_listed == []
        (record,) = [r for r in caplog.records if r.name == "alertchain.verification"]
        assert record.error_type == "RuntimeError"
        assert record.exc_info is not None

    @pytest.mark.asyncio
    async def test_unexpected_query_error_recorded(self) -> None:
        provider = MockResourceProvider(fail_query=ValueError("malformed response"))

        result = await run_verification_probe(provider, storage_handle(), now=NOW)

        assert result.keys_listed == ["key1", "key2"]
        assert result.observed is False
        assert result.error == "malformed response"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        provider = MockResourceProvider(fail_query=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await run_verification_probe(provider, storage_handle(), now=NOW)
