"""Ordered link-resolution strategies for opening a storefront product.

Priority is operator mapping, then same-day affiliate link, then the original
link (tagged with ``aff_id`` when the storefront was launched with one).
Operator mappings must never be shadowed by auto-converted links.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Protocol

from app.errors import GatewayError
from app.gateways.backend import MappingStore
from app.logic.affiliate_cache import AffiliateLinkCache
from app.logic.records import TimeSlotRecord
from app.utils.urls import with_query_param

logger = logging.getLogger(__name__)

RECORDS_TTL_SECONDS = 60.0


class LinkResolver(Protocol):
    async def try_resolve(self, original_link: str) -> str | None: ...


class RecordSnapshot:
    """All persisted records, re-read from the store at most once per TTL."""

    def __init__(
        self,
        store: MappingStore,
        *,
        ttl: float = RECORDS_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self._clock = clock
        self._records: dict[str, TimeSlotRecord] | None = None
        self._loaded_at = 0.0

    async def get(self, *, force: bool = False) -> dict[str, TimeSlotRecord] | None:
        now = self._clock()
        if not force and self._records is not None and now - self._loaded_at < self.ttl:
            return self._records
        try:
            records = await self.store.read_all()
        except GatewayError as exc:
            logger.warning("Could not load mapping records: %s", exc)
            return None
        self._records = records
        self._loaded_at = now
        return records

    def invalidate(self) -> None:
        self._records = None


class OperatorMappingResolver:
    def __init__(self, snapshot: RecordSnapshot, time_slot: str) -> None:
        self.snapshot = snapshot
        self.time_slot = time_slot

    async def try_resolve(self, original_link: str) -> str | None:
        if not self.time_slot:
            return None
        records = await self.snapshot.get()
        record = (records or {}).get(self.time_slot)
        if record is None:
            return None
        return record.link_mapping.get(original_link) or None


class AffiliateCacheResolver:
    def __init__(self, cache: AffiliateLinkCache) -> None:
        self.cache = cache

    async def try_resolve(self, original_link: str) -> str | None:
        return self.cache.get(original_link)


class OriginalLinkResolver:
    """Last resort: the original link, with ``aff_id`` set when one was given."""

    def __init__(self, aff_id: str = "") -> None:
        self.aff_id = aff_id

    async def try_resolve(self, original_link: str) -> str | None:
        if not self.aff_id:
            return original_link
        return with_query_param(original_link, "aff_id", self.aff_id)


def resolver_chain(
    snapshot: RecordSnapshot, time_slot: str, cache: AffiliateLinkCache, aff_id: str = ""
) -> list[LinkResolver]:
    return [
        OperatorMappingResolver(snapshot, time_slot),
        AffiliateCacheResolver(cache),
        OriginalLinkResolver(aff_id),
    ]


async def resolve_link(original_link: str, resolvers: Iterable[LinkResolver]) -> str:
    for resolver in resolvers:
        try:
            link = await resolver.try_resolve(original_link)
        except GatewayError as exc:
            logger.warning("%s failed for %s: %s", type(resolver).__name__, original_link, exc)
            continue
        if link:
            return link
    return original_link
