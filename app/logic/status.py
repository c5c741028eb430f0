"""System-status gate for the storefront and toggle for the admin surface."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Protocol

from app.errors import GatewayError, Notifier, StatusUpdateTimeout, log_notice

logger = logging.getLogger(__name__)

STATUS_UPDATE_TIMEOUT = float(os.environ.get("STATUS_UPDATE_TIMEOUT", 10))


class StatusBackend(Protocol):
    async def get_system_status(self) -> bool: ...

    async def set_system_status(self, is_active: bool) -> bool: ...


async def check_system_status(backend: StatusBackend) -> bool:
    """Read the flag, failing open: an unreadable flag counts as active."""
    try:
        return await backend.get_system_status()
    except GatewayError as exc:
        logger.warning("System status check failed, assuming active: %s", exc)
        return True


class SystemStatusToggle:
    """Write-through toggle that reverts when the update fails or times out.

    A toggle request while another update is in flight is ignored.
    """

    def __init__(
        self,
        backend: StatusBackend,
        *,
        timeout: float = STATUS_UPDATE_TIMEOUT,
        notify: Notifier = log_notice,
    ) -> None:
        self.backend = backend
        self.timeout = timeout
        self.notify = notify
        self.is_active = True
        self.in_flight = False

    async def load(self) -> bool:
        try:
            self.is_active = await self.backend.get_system_status()
        except GatewayError as exc:
            logger.error("Error loading system status: %s", exc)
            self.notify("Could not load system status")
        return self.is_active

    async def set(self, requested: bool) -> bool:
        """Apply ``requested``; returns whether the backend accepted it."""
        if self.in_flight:
            logger.info("System status update already in progress; ignoring toggle")
            return False
        previous = self.is_active
        self.is_active = requested
        self.in_flight = True
        try:
            await self._send(requested)
        except StatusUpdateTimeout:
            self.is_active = previous
            self.notify("Timed out updating system status; please try again")
            return False
        except GatewayError as exc:
            self.is_active = previous
            self.notify(f"Error updating system status: {exc}")
            return False
        finally:
            self.in_flight = False
        logger.info("System status updated to %s", "active" if requested else "maintenance")
        return True

    async def _send(self, requested: bool) -> None:
        try:
            await asyncio.wait_for(self.backend.set_system_status(requested), self.timeout)
        except asyncio.TimeoutError as exc:
            raise StatusUpdateTimeout(f"System status update exceeded {self.timeout:g}s") from exc
