"""Relational persistence for per-time-slot mapping records."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text

from app.logic.records import TimeSlotRecord

logger = logging.getLogger(__name__)

UPSERT_SQL = text(
    """
    INSERT INTO time_slot_data (time_slot, link_mapping, sub_id_mapping, reason_mapping, product_cache, updated_at)
    VALUES (:time_slot, :link_mapping, :sub_id_mapping, :reason_mapping, :product_cache, CURRENT_TIMESTAMP)
    ON CONFLICT (time_slot) DO UPDATE SET
      link_mapping = EXCLUDED.link_mapping,
      sub_id_mapping = EXCLUDED.sub_id_mapping,
      reason_mapping = EXCLUDED.reason_mapping,
      product_cache = EXCLUDED.product_cache,
      updated_at = CURRENT_TIMESTAMP
    """
)
SELECT_COLUMNS = "time_slot, link_mapping, sub_id_mapping, reason_mapping, product_cache"


class TimeSlotStore:
    """Upsert-by-key store; a save replaces the whole record, never merges."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def read_all(self) -> dict[str, TimeSlotRecord]:
        with self.engine.connect() as conn:
            rows = conn.execute(text(f"SELECT {SELECT_COLUMNS} FROM time_slot_data")).mappings().all()
        return {row["time_slot"]: _row_to_record(row) for row in rows}

    def read_one(self, time_slot: str) -> TimeSlotRecord:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(f"SELECT {SELECT_COLUMNS} FROM time_slot_data WHERE time_slot = :time_slot"),
                {"time_slot": time_slot},
            ).mappings().first()
        if row is None:
            return TimeSlotRecord()
        return _row_to_record(row)

    def upsert(self, time_slot: str, record: TimeSlotRecord) -> None:
        with self.engine.begin() as conn:
            self._upsert(conn, time_slot, record)

    def upsert_many(self, records: Mapping[str, TimeSlotRecord]) -> list[dict[str, str]]:
        """Save each record independently; returns the per-key failures."""
        errors: list[dict[str, str]] = []
        for time_slot, record in records.items():
            try:
                with self.engine.begin() as conn:
                    self._upsert(conn, time_slot, record)
            except SQLAlchemyError as exc:
                logger.error("Error saving data for %s: %s", time_slot, exc)
                errors.append({"timeSlot": time_slot, "error": str(exc)})
        return errors

    def delete(self, time_slot: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("DELETE FROM time_slot_data WHERE time_slot = :time_slot"),
                {"time_slot": time_slot},
            )

    def delete_all(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("DELETE FROM time_slot_data"))

    def list_time_slots(self) -> list[str]:
        with self.engine.connect() as conn:
            return [row[0] for row in conn.execute(text("SELECT time_slot FROM time_slot_data ORDER BY time_slot"))]

    @staticmethod
    def _upsert(conn: Connection, time_slot: str, record: TimeSlotRecord) -> None:
        payload = record.to_dict()
        conn.execute(
            UPSERT_SQL,
            {
                "time_slot": time_slot,
                "link_mapping": json.dumps(payload["linkMapping"]),
                "sub_id_mapping": json.dumps(payload["subIdMapping"]),
                "reason_mapping": json.dumps(payload["reasonMapping"]),
                "product_cache": json.dumps(payload["productCache"]),
            },
        )


def _row_to_record(row: Mapping[str, Any]) -> TimeSlotRecord:
    return TimeSlotRecord.from_dict(
        {
            "linkMapping": _load_json(row["link_mapping"]),
            "subIdMapping": _load_json(row["sub_id_mapping"]),
            "reasonMapping": _load_json(row["reason_mapping"]),
            "productCache": _load_json(row["product_cache"]),
        }
    )


def _load_json(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed mapping column")
        return {}
    return data if isinstance(data, dict) else {}
