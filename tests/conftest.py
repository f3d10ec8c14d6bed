"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Add src to path so alertchain imports without an editable install
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

import itertools  # noqa: E402
from collections.abc import Callable  # noqa: E402

import pytest  # noqa: E402

from alertchain.config import Config  # noqa: E402

TEST_SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"
TEST_TENANT_ID = "11111111-1111-1111-1111-111111111111"


@pytest.fixture
def config() -> Config:
    """Fully credentialed configuration for the mock subscription."""
    return Config(
        subscription_id=TEST_SUBSCRIPTION_ID,
        client_id="test-client-id",
        client_secret="test-client-secret",
        tenant_id=TEST_TENANT_ID,
    )


@pytest.fixture
def name_factory() -> Callable[[str], str]:
    """Deterministic names: prefix, lowercased, plus a running counter."""
    counter = itertools.count(1)
    return lambda prefix: f"{prefix.lower()}{next(counter)}"
