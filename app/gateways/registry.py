"""Time-slot registry gateway."""

from __future__ import annotations

import logging
import os

import httpx

from app.gateways.http import request_json
from app.gateways.models import TimeSlot

logger = logging.getLogger(__name__)

REGISTRY_URL = os.environ.get("REGISTRY_URL", "https://linhkaadz.com/api/time-buttons")


class TimeSlotRegistryClient:
    def __init__(self, url: str = REGISTRY_URL, *, session: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.session = session or httpx.AsyncClient(timeout=30.0)

    async def close(self) -> None:
        await self.session.aclose()

    async def fetch_time_slots(self) -> list[TimeSlot]:
        """Return the offered time slots sorted by their ``order`` field."""
        data = await request_json(self.session, "GET", self.url)
        if not isinstance(data, dict) or not data.get("success"):
            logger.warning("Registry responded without success flag")
            return []
        items = data.get("data")
        if not isinstance(items, list):
            logger.warning("Registry responded without a slot list")
            return []
        slots = [TimeSlot.from_payload(item) for item in items if isinstance(item, dict)]
        slots = [slot for slot in slots if slot.time]
        slots.sort(key=lambda slot: slot.order)
        return slots
