"""Random resource name generation."""

from __future__ import annotations

import secrets
from collections.abc import Callable

NameFactory = Callable[[str], str]

SUFFIX_LENGTH = 8
DEFAULT_MAX_NAME_LENGTH = 24  # storage account limit, the tightest in the chain


def create_random_name(prefix: str, max_length: int = DEFAULT_MAX_NAME_LENGTH) -> str:
    """Return ``prefix`` followed by a random lowercase hex suffix.

    The prefix is truncated so the full name never exceeds ``max_length``.

    Raises:
        ValueError: If ``max_length`` leaves no room for the suffix.
    """
    if max_length <= SUFFIX_LENGTH:
        raise ValueError(f"max_length must exceed {SUFFIX_LENGTH}: {max_length}")
    suffix = secrets.token_hex(SUFFIX_LENGTH // 2)
    return prefix[: max_length - SUFFIX_LENGTH] + suffix
