"""Azure provider mock for orchestration testing.

This module provides an in-memory ResourceProvider that enables testing
the provisioning chain without Azure connectivity.

Key Features:
- In-memory resource state with cascade delete of resource groups
- Ordered call recording for assertions (create, delete, list keys, query)
- Error injection per resource kind, for deletes and for the probe calls
- Simulated activity log that records key listings

Usage:
    from azure_mock import MockResourceProvider

    provider = MockResourceProvider(fail_on={ResourceKind.ACTION_GROUP: error})
    outcome = await run_workflow(lambda: config, lambda _: provider)

    assert len(provider.delete_calls) == 1
"""

from .provider import MOCK_SUBSCRIPTION_ID, MockCall, MockResourceProvider

__all__ = [
    "MOCK_SUBSCRIPTION_ID",
    "MockCall",
    "MockResourceProvider",
]
