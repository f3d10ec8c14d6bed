"""Scoped cleanup of the anchor resource group.

TeardownGuard owns the resource group from the moment it is created. On
every exit from its ``async with`` block (normal return, exception or
cancellation) it issues at most one delete for that group. Deleting the
group removes every resource created inside it.
"""

from __future__ import annotations

import logging
from types import TracebackType

from .credentials import log_security_audit_event
from .models import ResourceKind
from .provider import ResourceHandle, ResourceProvider

logger = logging.getLogger(__name__)


class CleanupError(Exception):
    """Raised internally when deleting the anchor resource fails.

    Never propagated: the guard logs it and keeps it on ``cleanup_error``.
    """

    pass


class TeardownGuard:
    """Async context manager that deletes the anchor resource on exit.

    Usage:
        async with TeardownGuard() as guard:
            guard.attach(provider)
            handle = await provider.create_or_update(group_spec)
            guard.claim(handle)
            ...
    """

    def __init__(self, provider: ResourceProvider | None = None) -> None:
        self._provider = provider
        self._anchor: ResourceHandle | None = None
        self._released = False
        self.delete_attempts = 0
        self.cleanup_error: CleanupError | None = None

    @property
    def owns_anchor(self) -> bool:
        return self._anchor is not None

    @property
    def anchor(self) -> ResourceHandle | None:
        return self._anchor

    def attach(self, provider: ResourceProvider) -> None:
        """Bind the provider used to delete the anchor."""
        self._provider = provider

    def claim(self, anchor: ResourceHandle) -> None:
        """Take ownership of a freshly created anchor resource.

        Raises:
            RuntimeError: If no provider is attached or an anchor is already owned.
        """
        if self._provider is None:
            raise RuntimeError("TeardownGuard has no provider to delete the anchor with")
        if self._anchor is not None:
            raise RuntimeError(f"TeardownGuard already owns {self._anchor.resource_id}")
        if anchor.kind is not ResourceKind.RESOURCE_GROUP:
            raise RuntimeError(f"Anchor must be a resource group, got {anchor.kind.value}")
        self._anchor = anchor

    async def __aenter__(self) -> TeardownGuard:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        await self.release()
        # Never suppress the exception that ended the scope
        return False

    async def release(self) -> None:
        """Delete the owned anchor once; later calls do nothing."""
        if self._released:
            return
        self._released = True

        if self._anchor is None or self._provider is None:
            logger.info("Did not create any resources in Azure. No clean up is necessary")
            return

        resource_id = self._anchor.resource_id
        logger.info(f"Deleting Resource Group: {resource_id}")
        self.delete_attempts += 1
        try:
            await self._provider.delete(resource_id)
        except Exception as e:
            self.cleanup_error = CleanupError(f"Failed to delete {resource_id}: {e}")
            logger.exception(
                "Cleanup failed; resource group must be deleted manually",
                extra={"resource_id": resource_id, "error_type": type(e).__name__},
            )
            log_security_audit_event(
                "cleanup", target_resource=resource_id, action="delete", result="failure"
            )
            return

        logger.info(f"Deleted Resource Group: {resource_id}")
        log_security_audit_event(
            "cleanup", target_resource=resource_id, action="delete", result="success"
        )
