"""Notification receiver loading with validation.

File reads enforce a size limit, and the content is validated by the
NotificationChannelSet model before it reaches an action group descriptor.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_RECEIVERS_FILE_SIZE_BYTES
from .descriptors import default_notification_channels
from .models import NotificationChannelSet

logger = logging.getLogger(__name__)


class ReceiversLoadError(Exception):
    """Raised when a receivers file cannot be loaded or fails validation."""

    pass


def load_notification_channels(path: Path) -> NotificationChannelSet:
    """Load notification receivers from YAML.

    The file is a mapping keyed by channel kind::

        email:
          - name: MERtierOne
            emailAddress: security_guards@example.com
        sms:
          - name: MSRtierOne
            countryCode: "1"
            phoneNumber: "4255655665"

    Args:
        path: Receivers file.

    Returns:
        Validated channel set.

    Raises:
        ReceiversLoadError: If the file cannot be loaded or fails validation.
    """
    if not path.exists():
        raise ReceiversLoadError(f"Receivers file not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ReceiversLoadError(f"Failed to stat receivers file {path}: {e}") from e

    if file_size > MAX_RECEIVERS_FILE_SIZE_BYTES:
        raise ReceiversLoadError(
            f"Receivers file exceeds maximum size of {MAX_RECEIVERS_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReceiversLoadError(f"Failed to read receivers file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ReceiversLoadError(f"Invalid YAML in {path}: {e}") from e

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ReceiversLoadError(f"Receivers file must contain a YAML mapping: {path}")

    try:
        channels = NotificationChannelSet.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")

        error_list = "\n".join(errors)
        raise ReceiversLoadError(f"Validation failed for {path}:\n{error_list}") from e

    logger.info(
        "Loaded %d notification receivers from %s",
        channels.total_receivers,
        path,
    )
    return channels


def resolve_notification_channels(path: Path | None) -> NotificationChannelSet:
    """Receivers from ``path`` when given, otherwise the built-in set."""
    if path is None:
        return default_notification_channels()
    return load_notification_channels(path)
