"""Admin mapping editor: per-slot operator mappings over the live catalog."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from app.errors import GatewayError, Notifier, ValidationFailure, log_notice
from app.gateways.backend import MappingStore
from app.gateways.catalog import CatalogClient
from app.gateways.models import Product, TimeSlot
from app.gateways.registry import TimeSlotRegistryClient
from app.logic import spreadsheet
from app.logic.reconcile import reconcile_time_slots
from app.logic.records import (
    EditOutcome,
    MappingRow,
    TimeSlotRecord,
    mapping_rows,
    merge_products,
    set_conversion_link,
    set_reason,
    set_sub_id,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AdminSession:
    time_slots: list[TimeSlot] = field(default_factory=list)
    current_slot: str = ""
    record: TimeSlotRecord | None = None
    products: list[Product] = field(default_factory=list)
    all_records: dict[str, TimeSlotRecord] = field(default_factory=dict)


class AdminMappingEditor:
    """Command handlers for the admin surface.

    Every edit persists the whole record of the current slot. When a store or
    gateway call fails the operator is notified and the session keeps the
    state it had before the command.
    """

    def __init__(
        self,
        store: MappingStore,
        registry: TimeSlotRegistryClient,
        catalog: CatalogClient,
        *,
        notify: Notifier = log_notice,
        session: AdminSession | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.catalog = catalog
        self.notify = notify
        self.session = session or AdminSession()

    async def start(self) -> list[TimeSlot]:
        await self.load_all_records()
        return await self.load_time_slots()

    async def load_all_records(self) -> dict[str, TimeSlotRecord]:
        try:
            self.session.all_records = await self.store.read_all()
        except GatewayError as exc:
            logger.info("Backend not available, starting with empty data: %s", exc)
            self.session.all_records = {}
        return self.session.all_records

    async def load_time_slots(self) -> list[TimeSlot]:
        """Fetch offered slots and reconcile storage before they are shown."""
        try:
            slots = await self.registry.fetch_time_slots()
        except GatewayError as exc:
            logger.error("Error loading time slots: %s", exc)
            self.notify(f"Error loading time slots: {exc}")
            return self.session.time_slots
        if not slots:
            return self.session.time_slots
        report = await reconcile_time_slots(self.store, [slot.time for slot in slots])
        for slot in report.deleted:
            self.session.all_records.pop(slot, None)
        if report.deleted:
            self.notify(f"Removed {len(report.deleted)} time slots that no longer exist upstream")
        self.session.time_slots = slots
        return slots

    async def select_time_slot(self, time_slot: str) -> list[MappingRow]:
        if not time_slot:
            self.session.current_slot = ""
            self.session.record = None
            self.session.products = []
            return []
        self.session.current_slot = time_slot
        self.session.record = await self._load_record(time_slot)
        await self._load_products(time_slot)
        return self.rows()

    def rows(self) -> list[MappingRow]:
        return mapping_rows(self.session.record or TimeSlotRecord(), self.session.products)

    def summary(self) -> str:
        if self.session.products and self.session.current_slot:
            return f"Time slot: {self.session.current_slot} - total products: {len(self.session.products)}"
        return "No data"

    async def edit_conversion_link(self, original_link: str, value: str) -> bool:
        return await self._apply(lambda record: set_conversion_link(record, original_link, value))

    async def edit_sub_id(self, original_link: str, index: int, value: str) -> bool:
        return await self._apply(lambda record: set_sub_id(record, original_link, index, value))

    async def edit_reason(self, original_link: str, reason: str) -> bool:
        return await self._apply(lambda record: set_reason(record, original_link, reason))

    async def clear_time_slot(self) -> bool:
        """Drop operator edits for the slot but keep browsing its catalog."""
        try:
            slot = self._require_slot("Select a time slot before clearing")
        except ValidationFailure as exc:
            self.notify(str(exc))
            return False
        try:
            await self.store.delete(slot)
        except GatewayError as exc:
            logger.error("Error clearing time slot %s: %s", slot, exc)
            self.notify(f"Error deleting data: {exc}")
            return False
        self._commit(TimeSlotRecord())
        await self._load_products(slot)
        logger.info("Cleared mapped data for %s", slot)
        return True

    async def clear_all(self) -> bool:
        try:
            await self.store.delete_all()
        except GatewayError as exc:
            logger.error("Error clearing all data: %s", exc)
            self.notify(f"Error deleting data: {exc}")
            return False
        self.session.all_records = {}
        self.session.current_slot = ""
        self.session.record = None
        self.session.products = []
        logger.info("Cleared all mapped data")
        return True

    async def import_rows(self, rows: Iterable[spreadsheet.ImportRow]) -> bool:
        try:
            slot = self._require_slot("Select a time slot before importing")
        except ValidationFailure as exc:
            self.notify(str(exc))
            return False
        rows = list(rows)
        if not rows:
            self.notify("The spreadsheet has no data")
            return False
        previous = self.session.record or TimeSlotRecord()
        self._commit(spreadsheet.apply_import(previous, rows).record)
        await self._load_products(slot)
        try:
            await self.store.upsert(slot, self.session.record or TimeSlotRecord())
        except GatewayError as exc:
            logger.error("Error saving imported data for %s: %s", slot, exc)
            self._commit(previous)
            self.notify(f"Could not save imported data: {exc}")
            return False
        logger.info("Imported %s rows into %s", len(rows), slot)
        return True

    async def import_file(self, path: Path) -> bool:
        try:
            rows = spreadsheet.read_import(path)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            logger.error("Error reading spreadsheet %s: %s", path, exc)
            self.notify(f"Could not read the spreadsheet: {exc}")
            return False
        return await self.import_rows(rows)

    def export_rows(self) -> list[dict[str, str]]:
        self._require_slot("Select a time slot before exporting")
        if not self.session.products:
            raise ValidationFailure("No data to export")
        return spreadsheet.export_rows(self.session.record or TimeSlotRecord(), self.session.products)

    def export_file(self, directory: Path = spreadsheet.OUTPUT_DIR) -> Path:
        rows = self.export_rows()
        path = directory / spreadsheet.export_filename(self.session.current_slot)
        return spreadsheet.write_export(rows, path)

    async def _apply(self, command: Callable[[TimeSlotRecord], EditOutcome]) -> bool:
        try:
            slot = self._require_slot("Select a time slot first")
            previous = self.session.record or TimeSlotRecord()
            outcome = command(previous)
        except ValidationFailure as exc:
            self.notify(str(exc))
            return False
        self._commit(outcome.record)
        if not outcome.persist:
            return True
        try:
            await self.store.upsert(slot, outcome.record)
        except GatewayError as exc:
            logger.error("Error saving data for %s: %s", slot, exc)
            self._commit(previous)
            self.notify(f"Could not save changes for {slot}: {exc}")
            return False
        return True

    def _require_slot(self, message: str) -> str:
        if not self.session.current_slot:
            raise ValidationFailure(message)
        return self.session.current_slot

    def _commit(self, record: TimeSlotRecord) -> None:
        self.session.record = record
        if self.session.current_slot:
            self.session.all_records[self.session.current_slot] = record

    async def _load_record(self, time_slot: str) -> TimeSlotRecord:
        try:
            record = await self.store.read_one(time_slot)
        except GatewayError as exc:
            logger.info("Could not load %s from backend, using local data: %s", time_slot, exc)
            record = self.session.all_records.get(time_slot, TimeSlotRecord())
        self.session.all_records[time_slot] = record
        return record

    async def _load_products(self, time_slot: str) -> bool:
        try:
            page = await self.catalog.fetch_products(time_slot)
        except GatewayError as exc:
            logger.error("Error loading products for %s: %s", time_slot, exc)
            self.notify(f"Error loading products: {exc}")
            self.session.products = []
            return False
        self.session.products = page.products
        if not page.products:
            self.notify("No product data for this time slot")
            return False
        self._commit(merge_products(self.session.record or TimeSlotRecord(), page.products).record)
        return True
