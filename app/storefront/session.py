"""Storefront session: status gate, slot listing, filters and link opening."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, Sequence

from app.errors import GatewayError, Notifier, ValidationFailure, log_notice
from app.gateways.backend import MappingStore
from app.gateways.catalog import CatalogClient
from app.gateways.models import Product, TimeSlot
from app.gateways.registry import TimeSlotRegistryClient
from app.jobs.periodic import SCAN_INTERVAL_SECONDS, PeriodicTask
from app.logic.affiliate_cache import AffiliateLinkCache
from app.logic.conversion import BatchConverter, ConversionReport
from app.logic.filters import PageView, PricePreset, apply_filters, load_presets, paginate, total_pages
from app.logic.reconcile import reconcile_time_slots
from app.logic.records import TimeSlotRecord
from app.logic.resolve import RecordSnapshot, resolve_link, resolver_chain
from app.logic.status import StatusBackend, check_system_status

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SlotOption:
    time: str
    label: str
    is_active: bool
    has_data: bool = False


@dataclass(slots=True)
class StorefrontSession:
    maintenance: bool = False
    time_slots: list[SlotOption] = field(default_factory=list)
    current_slot: str = ""
    products: list[Product] = field(default_factory=list)
    search: str = ""
    preset: str | None = None
    page: int = 1


def choose_time_slot(slots: Sequence[TimeSlot], previous: str = "") -> str:
    """Keep ``previous`` if still offered, else first active, else first, else all."""
    if previous and any(slot.time == previous for slot in slots):
        return previous
    for slot in slots:
        if slot.is_active:
            return slot.time
    return slots[0].time if slots else ""


def slot_options(slots: Sequence[TimeSlot], records: Mapping[str, TimeSlotRecord]) -> list[SlotOption]:
    return [
        SlotOption(time=slot.time, label=slot.label, is_active=slot.is_active, has_data=slot.time in records)
        for slot in sorted(slots, key=lambda item: item.order)
    ]


class Storefront:
    """Customer-facing listing over one time slot.

    Opening the storefront reads the system-status flag first; when the
    system is in maintenance nothing else is loaded. Otherwise slots and
    products are listed, uncached product links are converted in batches and
    a periodic rescan keeps converting new products until :meth:`close`.
    """

    def __init__(
        self,
        store: MappingStore,
        status: StatusBackend,
        registry: TimeSlotRegistryClient,
        catalog: CatalogClient,
        converter: BatchConverter,
        *,
        aff_id: str = "",
        presets: Mapping[str, PricePreset] | None = None,
        snapshot: RecordSnapshot | None = None,
        scan_interval: float = SCAN_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        notify: Notifier = log_notice,
        on_render: Callable[[], None] | None = None,
    ) -> None:
        self.store = store
        self.status = status
        self.registry = registry
        self.catalog = catalog
        self.converter = converter
        self.aff_id = aff_id
        self.presets = dict(presets) if presets is not None else load_presets()
        self.snapshot = snapshot or RecordSnapshot(store)
        self.notify = notify
        self.on_render = on_render
        self.session = StorefrontSession()
        self.scan_task: asyncio.Task | None = None
        self._scan_lock = asyncio.Lock()
        self._scanner = PeriodicTask(
            "affiliate-scan", self.scan, scan_interval, run_immediately=False, sleep=sleep
        )

    @property
    def cache(self) -> AffiliateLinkCache:
        return self.converter.cache

    async def open(self) -> bool:
        """Returns ``False`` when the storefront is in maintenance mode."""
        if not await check_system_status(self.status):
            logger.info("System is inactive; showing maintenance page")
            self.session.maintenance = True
            self._render()
            return False
        self.session.maintenance = False
        self.cache.load()
        await self.load_time_slots()
        await self.load_products()
        self._scanner.start()
        return True

    async def close(self) -> None:
        await self._scanner.stop()
        if self.scan_task is not None and not self.scan_task.done():
            self.scan_task.cancel()
            try:
                await self.scan_task
            except asyncio.CancelledError:
                pass
        self.scan_task = None

    async def load_time_slots(self) -> list[SlotOption]:
        try:
            slots = await self.registry.fetch_time_slots()
        except GatewayError as exc:
            logger.error("Error loading time slots: %s", exc)
            slots = []
        if slots:
            await reconcile_time_slots(self.store, [slot.time for slot in slots])
        records = await self.snapshot.get(force=True) or {}
        self.session.time_slots = slot_options(slots, records)
        self.session.current_slot = choose_time_slot(slots, self.session.current_slot)
        return self.session.time_slots

    async def select_time_slot(self, time_slot: str) -> list[Product]:
        self.session.current_slot = time_slot
        return await self.load_products()

    async def load_products(self) -> list[Product]:
        """List persisted snapshots for the slot, else the live catalog."""
        slot = self.session.current_slot
        records = await self.snapshot.get() or {}
        record = records.get(slot) if slot else None
        if record is not None and record.product_cache:
            logger.info("Listing %s cached products for %s", len(record.product_cache), slot)
            self.session.products = [Product.from_payload(item) for item in record.product_cache.values()]
        else:
            self.session.products = await self._fetch_catalog(slot)
        self.session.page = 1
        self._render()
        self.scan_task = asyncio.create_task(self._background_scan(), name="affiliate-scan-now")
        return self.session.products

    def set_search(self, text: str) -> PageView:
        self.session.search = text
        self.session.page = 1
        return self.view()

    def toggle_preset(self, name: str) -> PageView:
        """Activate ``name``; selecting the active preset again clears it."""
        if name not in self.presets:
            raise ValidationFailure(f"Unknown price filter: {name}")
        self.session.preset = None if self.session.preset == name else name
        self.session.page = 1
        return self.view()

    def go_to_page(self, page: int) -> bool:
        pages = total_pages(len(self.filtered()))
        if page < 1 or page > pages:
            return False
        self.session.page = page
        self._render()
        return True

    def filtered(self) -> list[Product]:
        preset = self.presets.get(self.session.preset) if self.session.preset else None
        return apply_filters(self.session.products, search=self.session.search, preset=preset)

    def view(self) -> PageView:
        return paginate(self.filtered(), self.session.page)

    async def open_product(self, original_link: str) -> str:
        resolvers = resolver_chain(self.snapshot, self.session.current_slot, self.cache, self.aff_id)
        link = await resolve_link(original_link, resolvers)
        logger.info("Opening %s via %s", original_link, link)
        return link

    async def scan(self) -> ConversionReport:
        """Convert uncached links of the listed products, one scan at a time."""
        async with self._scan_lock:
            return await self.converter.convert(self.session.products, on_progress=self._render)

    async def _background_scan(self) -> None:
        try:
            await self.scan()
        except Exception:
            logger.exception("Affiliate scan failed")

    async def _fetch_catalog(self, slot: str) -> list[Product]:
        try:
            page = await self.catalog.fetch_products(slot or None)
        except GatewayError as exc:
            logger.error("Error loading products: %s", exc)
            self.notify("Could not load products")
            return []
        return page.products

    def _render(self) -> None:
        if self.on_render is not None:
            self.on_render()
