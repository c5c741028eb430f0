"""Spreadsheet (CSV) export and import of operator mappings."""

from __future__ import annotations

import csv
import json
import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.gateways.models import Product
from app.logic.records import FAILURE_REASONS, SUB_ID_COUNT, EditOutcome, SubIds, TimeSlotRecord
from app.utils.dates import now_in_tz

logger = logging.getLogger(__name__)

OUTPUT_DIR = Path(os.environ.get("CSV_OUTPUT_DIR", "artifacts/csv"))

ORIGINAL_LINK_COLUMN = "Liên kết gốc"
CONVERSION_LINK_COLUMN = "Liên kết chuyển đổi"
REASON_COLUMN = "Lí do thất bại"
SNAPSHOT_COLUMN = "_productData"
SUB_ID_COLUMNS = [f"Sub id{idx}" for idx in range(1, SUB_ID_COUNT + 1)]
LEGACY_SUB_ID_COLUMNS = [f"Sub_id{idx}" for idx in range(1, SUB_ID_COUNT + 1)]

EXPORT_COLUMNS = [ORIGINAL_LINK_COLUMN, *SUB_ID_COLUMNS, SNAPSHOT_COLUMN]


@dataclass(slots=True)
class ImportRow:
    original_link: str
    conversion_link: str = ""
    sub_ids: SubIds = field(default_factory=SubIds)
    reason: str = ""
    product: dict[str, Any] | None = None


def export_rows(record: TimeSlotRecord, products: Iterable[Product]) -> list[dict[str, str]]:
    rows = []
    for product in products:
        link = product.link
        sub_ids = record.sub_id_mapping.get(link, SubIds())
        row = {ORIGINAL_LINK_COLUMN: link}
        row.update(zip(SUB_ID_COLUMNS, sub_ids.values()))
        row[SNAPSHOT_COLUMN] = json.dumps(record.product_cache.get(link) or {}, ensure_ascii=False)
        rows.append(row)
    return rows


def export_filename(time_slot: str) -> str:
    slug = re.sub(r"[^0-9A-Za-z_-]+", "-", time_slot).strip("-") or "all"
    return f"mappings-{slug}-{now_in_tz().format('YYYYMMDD-HHmmss')}.csv"


def write_export(rows: Iterable[Mapping[str, str]], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8-sig") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    return path


def parse_import_row(row: Mapping[str, Any]) -> ImportRow | None:
    """Read one spreadsheet row; ``None`` for rows without an original link."""
    original_link = _cell(row, ORIGINAL_LINK_COLUMN)
    if not original_link:
        return None
    sub_ids = SubIds(
        *(
            _cell(row, current) or _cell(row, legacy)
            for current, legacy in zip(SUB_ID_COLUMNS, LEGACY_SUB_ID_COLUMNS)
        )
    )
    reason = _cell(row, REASON_COLUMN)
    if reason and reason not in FAILURE_REASONS:
        logger.warning("Ignoring unknown failure reason %r for %s", reason, original_link)
        reason = ""
    return ImportRow(
        original_link=original_link,
        conversion_link=_cell(row, CONVERSION_LINK_COLUMN),
        sub_ids=sub_ids,
        reason=reason,
        product=_parse_snapshot(row.get(SNAPSHOT_COLUMN), original_link),
    )


def read_import(path: Path) -> list[ImportRow]:
    with path.open(newline="", encoding="utf-8-sig") as csvfile:
        parsed = (parse_import_row(row) for row in csv.DictReader(csvfile))
        return [row for row in parsed if row is not None]


def apply_import(record: TimeSlotRecord, rows: Iterable[ImportRow]) -> EditOutcome:
    """Overwrite each mapping only where the imported row carries a value."""
    link_mapping = dict(record.link_mapping)
    sub_id_mapping = dict(record.sub_id_mapping)
    reason_mapping = dict(record.reason_mapping)
    product_cache = dict(record.product_cache)
    for row in rows:
        link = row.original_link
        if row.product:
            product_cache[link] = row.product
        if row.conversion_link:
            link_mapping[link] = row.conversion_link
        if row.sub_ids.any():
            sub_id_mapping[link] = row.sub_ids
        if row.reason:
            reason_mapping[link] = row.reason
    updated = replace(
        record,
        link_mapping=link_mapping,
        sub_id_mapping=sub_id_mapping,
        reason_mapping=reason_mapping,
        product_cache=product_cache,
    )
    return EditOutcome(updated, persist=True)


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value).strip()


def _parse_snapshot(value: Any, original_link: str) -> dict[str, Any] | None:
    if not value:
        return None
    try:
        snapshot = json.loads(value)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Could not parse product data for %s", original_link)
        return None
    if not isinstance(snapshot, dict) or not snapshot:
        return None
    return snapshot
