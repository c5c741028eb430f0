"""Drop persisted time slots the upstream registry no longer offers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from app.errors import GatewayError
from app.gateways.backend import MappingStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileReport:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False


def orphaned_slots(offered: Iterable[str], persisted: Iterable[str]) -> list[str]:
    """Slots present in storage but not offered upstream, in storage order."""
    offered_set = set(offered)
    return [slot for slot in persisted if slot not in offered_set]


async def reconcile_time_slots(store: MappingStore, offered: Iterable[str]) -> ReconcileReport:
    """Delete every persisted slot missing from ``offered``.

    An empty ``offered`` set means the registry gave us nothing usable, so no
    deletion happens. Individual delete failures are logged and skipped; the
    next pass retries them.
    """
    offered = list(offered)
    report = ReconcileReport()
    if not offered:
        logger.warning("Registry returned no time slots; skipping reconciliation")
        report.skipped = True
        return report
    try:
        persisted = await store.list_time_slots()
    except GatewayError as exc:
        logger.warning("Could not list persisted time slots: %s", exc)
        persisted = []
    to_delete = orphaned_slots(offered, persisted)
    if not to_delete:
        return report
    logger.info("Cleaning up %s time slots no longer offered: %s", len(to_delete), to_delete)
    for slot in to_delete:
        try:
            await store.delete(slot)
        except GatewayError as exc:
            logger.error("Error deleting time slot %s: %s", slot, exc)
            report.failed.append(slot)
            continue
        report.deleted.append(slot)
    logger.info("Cleanup completed: %s removed, %s failed", len(report.deleted), len(report.failed))
    return report
