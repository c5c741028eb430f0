"""Batch conversion of catalog product links into affiliate links."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Protocol, Sequence

from app.errors import GatewayError
from app.gateways.models import AffiliateLink, ItemRef, Product
from app.logic.affiliate_cache import AffiliateLinkCache
from app.utils.urls import extract_product_ids, is_product_link

logger = logging.getLogger(__name__)

BATCH_SIZE = int(os.environ.get("CONVERT_BATCH_SIZE", 50))
BATCH_DELAY_SECONDS = float(os.environ.get("CONVERT_BATCH_DELAY", 0.5))


class AffiliateGateway(Protocol):
    @property
    def has_session(self) -> bool: ...

    async def batch_custom_link(self, refs: Sequence[ItemRef]) -> list[AffiliateLink]: ...


@dataclass(slots=True)
class ConversionReport:
    eligible: int = 0
    converted: int = 0
    batches: int = 0
    failed_batches: int = 0
    skipped: bool = False


def pending_refs(products: Iterable[Product], cache: AffiliateLinkCache) -> list[ItemRef]:
    """Item refs for product links not yet converted today."""
    refs: list[ItemRef] = []
    seen: set[str] = set()
    for product in products:
        link = product.link
        if not is_product_link(link) or link in seen or cache.has(link):
            continue
        seen.add(link)
        ids = extract_product_ids(link)
        if ids is None:
            logger.warning("Skipping link without shop/item ids: %s", link)
            continue
        refs.append(ItemRef(shop_id=int(ids[0]), item_id=int(ids[1]), original_link=link))
    return refs


class BatchConverter:
    def __init__(
        self,
        gateway: AffiliateGateway,
        cache: AffiliateLinkCache,
        *,
        batch_size: int = BATCH_SIZE,
        delay: float = BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.batch_size = batch_size
        self.delay = delay
        self._sleep = sleep

    async def convert(
        self,
        products: Iterable[Product],
        *,
        on_progress: Callable[[], None] | None = None,
    ) -> ConversionReport:
        """Convert uncached product links batch by batch.

        Batches run one at a time with a fixed delay between them. A failed
        batch is logged and skipped; the cache is saved and ``on_progress``
        fires after every successful batch.
        """
        report = ConversionReport()
        if not self.gateway.has_session:
            logger.warning("No affiliate session cookies; skipping conversion")
            report.skipped = True
            return report
        refs = pending_refs(products, self.cache)
        report.eligible = len(refs)
        if not refs:
            logger.info("All products already have affiliate links cached")
            return report

        logger.info("Converting %s products to affiliate links", len(refs))
        for start in range(0, len(refs), self.batch_size):
            batch = refs[start : start + self.batch_size]
            number = start // self.batch_size + 1
            report.batches += 1
            try:
                results = await self.gateway.batch_custom_link(batch)
            except GatewayError as exc:
                logger.error("Error converting batch %s: %s", number, exc)
                report.failed_batches += 1
            else:
                for ref, result in zip(batch, results):
                    if result.long_link:
                        self.cache.put(ref.original_link, result.long_link, result.short_link)
                        report.converted += 1
                self.cache.save()
                if on_progress is not None:
                    on_progress()
                logger.info("Converted batch %s: %s/%s products", number, report.converted, len(refs))
            if start + self.batch_size < len(refs):
                await self._sleep(self.delay)

        logger.info("Conversion complete: %s/%s products converted", report.converted, len(refs))
        return report
