"""Flash-sale catalog gateway."""

from __future__ import annotations

import logging
import os

import httpx

from app.gateways.http import request_json
from app.gateways.models import CatalogPage, Product, to_int

logger = logging.getLogger(__name__)

CATALOG_URL = os.environ.get("CATALOG_URL", "https://linhkaadz.com/api/aff-shopee/products")
DEFAULT_LIMIT = 10000


class CatalogClient:
    def __init__(self, url: str = CATALOG_URL, *, session: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.session = session or httpx.AsyncClient(timeout=30.0)

    async def close(self) -> None:
        await self.session.aclose()

    async def fetch_products(self, time_slot: str | None = None, *, page: int = 1, limit: int = DEFAULT_LIMIT) -> CatalogPage:
        params: dict[str, str | int] = {"page": page, "limit": limit}
        if time_slot:
            params["time"] = time_slot
        data = await request_json(self.session, "GET", self.url, params=params)
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or not data.get("success"):
            logger.warning("Catalog returned no products for %s", time_slot or "all slots")
            return CatalogPage(products=[], total=0)
        products = [Product.from_payload(item) for item in items if isinstance(item, dict)]
        logger.info("Loaded %s products for %s", len(products), time_slot or "all slots")
        return CatalogPage(products=products, total=to_int(data.get("total")) or len(products))
