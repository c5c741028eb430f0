"""Error types shared by the gateways and sessions."""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """An upstream or backend call failed (unreachable, non-OK, or error payload)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StatusUpdateTimeout(GatewayError):
    """The system-status update did not complete before its deadline."""


class ValidationFailure(ValueError):
    """Rejected before any network call, e.g. no time slot selected."""


Notifier = Callable[[str], None]


def log_notice(message: str) -> None:
    """Default notifier when no UI is attached."""
    logger.warning("Notice: %s", message)
