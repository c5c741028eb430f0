"""Client for the mapping backend's HTTP API."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Protocol
from urllib.parse import quote

import httpx

from app.errors import GatewayError
from app.gateways.http import request_json
from app.logic.records import TimeSlotRecord

logger = logging.getLogger(__name__)

BACKEND_URL = os.environ.get("BACKEND_URL", "http://localhost:3000/api")


class MappingStore(Protocol):
    """The store operations the admin editor and storefront depend on."""

    async def read_all(self) -> dict[str, TimeSlotRecord]: ...

    async def read_one(self, time_slot: str) -> TimeSlotRecord: ...

    async def upsert(self, time_slot: str, record: TimeSlotRecord) -> None: ...

    async def delete(self, time_slot: str) -> None: ...

    async def delete_all(self) -> None: ...

    async def list_time_slots(self) -> list[str]: ...


class BackendClient:
    def __init__(self, base_url: str = BACKEND_URL, *, session: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or httpx.AsyncClient(timeout=30.0)

    async def close(self) -> None:
        await self.session.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _slot_url(self, time_slot: str) -> str:
        return self._url(f"/data/{quote(time_slot, safe='')}")

    async def read_all(self) -> dict[str, TimeSlotRecord]:
        data = await request_json(self.session, "GET", self._url("/data"))
        if data is None:
            return {}
        return {slot: TimeSlotRecord.from_dict(value) for slot, value in _require_object(data, "read data").items()}

    async def read_one(self, time_slot: str) -> TimeSlotRecord:
        data = await request_json(self.session, "GET", self._slot_url(time_slot))
        if data is None:
            return TimeSlotRecord()
        return TimeSlotRecord.from_dict(_require_object(data, f"read {time_slot}"))

    async def upsert(self, time_slot: str, record: TimeSlotRecord) -> None:
        payload = {"timeSlot": time_slot, "data": record.to_dict()}
        data = await request_json(self.session, "POST", self._url("/data"), json=payload, retry=False)
        _require_success(data, f"save {time_slot}")

    async def upsert_many(self, records: Mapping[str, TimeSlotRecord]) -> None:
        payload = {slot: record.to_dict() for slot, record in records.items()}
        data = await request_json(self.session, "POST", self._url("/data/batch"), json=payload, retry=False)
        _require_success(data, "batch save")

    async def delete(self, time_slot: str) -> None:
        data = await request_json(self.session, "DELETE", self._slot_url(time_slot))
        _require_success(data, f"delete {time_slot}")

    async def delete_all(self) -> None:
        data = await request_json(self.session, "DELETE", self._url("/data"))
        _require_success(data, "delete all")

    async def list_time_slots(self) -> list[str]:
        data = _require_object(await request_json(self.session, "GET", self._url("/time-slots")), "list time slots")
        slots = data.get("data")
        if not data.get("success") or not isinstance(slots, list):
            return []
        return [str(slot) for slot in slots]

    async def get_system_status(self) -> bool:
        data = await request_json(self.session, "GET", self._url("/system-status"))
        _require_success(data, "read system status")
        return bool(data.get("isActive", True))

    async def set_system_status(self, is_active: bool) -> bool:
        data = await request_json(
            self.session, "POST", self._url("/system-status"), json={"isActive": is_active}, retry=False
        )
        _require_success(data, "update system status")
        return bool(data.get("isActive", is_active))


def _require_success(data: object, action: str) -> None:
    if not isinstance(data, dict) or not data.get("success"):
        raise GatewayError(f"Backend could not {action}")


def _require_object(data: object, action: str) -> dict:
    if not isinstance(data, dict):
        raise GatewayError(f"Backend could not {action}: expected a JSON object")
    return data
