"""Credential acquisition and security audit logging.

The workflow authenticates as a service principal. The client secret is
read once from configuration, handed to azure-identity and never logged.
"""

from __future__ import annotations

import logging

from azure.identity import ClientSecretCredential

from .config import Config, ConfigurationError

logger = logging.getLogger(__name__)


def mask_identifier(value: str) -> str:
    """Shorten an identifier for logging, keeping only a recognizable prefix."""
    return value[:8] + "..." if len(value) > 8 else value


def get_client_secret_credential(config: Config) -> ClientSecretCredential:
    """Build a ClientSecretCredential from validated configuration.

    Args:
        config: Configuration that was loaded with credentials required.

    Returns:
        ClientSecretCredential for the configured service principal.

    Raises:
        ConfigurationError: If the configuration was loaded without credentials.
    """
    if not (config.client_id and config.client_secret and config.tenant_id):
        raise ConfigurationError(
            "CLIENT_ID, CLIENT_SECRET and TENANT_ID are required to authenticate"
        )

    logger.info(
        "Using service principal credential",
        extra={
            "client_id": mask_identifier(config.client_id),
            "tenant_id": mask_identifier(config.tenant_id),
        },
    )
    return ClientSecretCredential(
        tenant_id=config.tenant_id,
        client_id=config.client_id,
        client_secret=config.client_secret,
    )


def log_security_audit_event(
    event_type: str,
    target_resource: str | None = None,
    action: str | None = None,
    result: str | None = None,
) -> None:
    """Log a security-relevant audit event.

    All security events are logged with structured data for SIEM ingestion.

    Args:
        event_type: Type of security event (key_access, cleanup, etc.)
        target_resource: Azure resource being accessed.
        action: ARM operation being performed.
        result: Result of the action (success, failure).
    """
    logger.info(
        f"Security audit: {event_type}",
        extra={
            "security_audit": True,
            "event_type": event_type,
            "target_resource": target_resource,
            "action": action,
            "result": result,
        },
    )
