"""Tests for random resource name generation."""

import re

import pytest

from alertchain.naming import SUFFIX_LENGTH, create_random_name


class TestCreateRandomName:
    """Tests for create_random_name."""

    def test_keeps_prefix(self) -> None:
        name = create_random_name("samonitor")

        assert name.startswith("samonitor")
        assert re.fullmatch(r"samonitor[0-9a-f]{8}", name)

    def test_truncates_long_prefix(self) -> None:
        """Test that long prefixes are cut so the suffix always fits."""
        name = create_random_name("securityBreachActionGroup", max_length=24)

        assert len(name) == 24
        assert name.startswith("securityBreachAc")

    def test_same_prefix_does_not_collide(self) -> None:
        """Test that repeated calls with one prefix give distinct names."""
        names = {create_random_name("rgMonitor") for _ in range(1000)}

        assert len(names) == 1000

    def test_max_length_must_leave_room_for_suffix(self) -> None:
        with pytest.raises(ValueError):
            create_random_name("rg", max_length=SUFFIX_LENGTH)
