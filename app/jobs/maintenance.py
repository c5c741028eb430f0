"""Server-side maintenance: registry reconciliation and affiliate cache warm-up."""

from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

from app.errors import GatewayError
from app.gateways.affiliate import AffiliateClient, load_session_cookies
from app.gateways.backend import BackendClient
from app.gateways.catalog import CatalogClient
from app.gateways.models import Product
from app.gateways.registry import TimeSlotRegistryClient
from app.logic.affiliate_cache import AffiliateLinkCache
from app.logic.conversion import BatchConverter, ConversionReport
from app.logic.reconcile import ReconcileReport, reconcile_time_slots

logger = logging.getLogger(__name__)


async def run_reconcile(
    *,
    backend: BackendClient | None = None,
    registry: TimeSlotRegistryClient | None = None,
) -> ReconcileReport:
    load_dotenv()
    backend = backend or BackendClient()
    registry = registry or TimeSlotRegistryClient()
    try:
        try:
            slots = await registry.fetch_time_slots()
        except GatewayError as exc:
            logger.warning("Registry unavailable: %s", exc)
            slots = []
        return await reconcile_time_slots(backend, [slot.time for slot in slots])
    finally:
        await backend.close()
        await registry.close()


async def run_affiliate_scan(
    *,
    registry: TimeSlotRegistryClient | None = None,
    catalog: CatalogClient | None = None,
    converter: BatchConverter | None = None,
) -> ConversionReport:
    """Convert every offered product not yet in today's affiliate cache."""
    load_dotenv()
    registry = registry or TimeSlotRegistryClient()
    catalog = catalog or CatalogClient()
    affiliate = None
    if converter is None:
        affiliate = AffiliateClient(load_session_cookies())
        converter = BatchConverter(affiliate, AffiliateLinkCache())
    try:
        products = await _collect_products(registry, catalog)
        return await converter.convert(products)
    finally:
        await registry.close()
        await catalog.close()
        if affiliate is not None:
            await affiliate.close()


async def _collect_products(registry: TimeSlotRegistryClient, catalog: CatalogClient) -> list[Product]:
    try:
        slots = [slot.time for slot in await registry.fetch_time_slots()]
    except GatewayError as exc:
        logger.warning("Registry unavailable, scanning the full catalog: %s", exc)
        slots = []
    products: list[Product] = []
    for slot in slots or [None]:
        try:
            page = await catalog.fetch_products(slot)
        except GatewayError as exc:
            logger.warning("Skipping catalog for %s: %s", slot or "all slots", exc)
            continue
        products.extend(page.products)
    logger.info("Collected %s products across %s slots", len(products), len(slots))
    return products


if __name__ == "__main__":
    asyncio.run(run_reconcile())
