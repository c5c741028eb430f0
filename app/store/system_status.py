"""Singleton system-active / maintenance flag."""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

STATUS_ROW_ID = 1


class SystemStatusStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def is_active(self) -> bool:
        with self.engine.connect() as conn:
            value = conn.execute(
                text("SELECT is_active FROM system_status WHERE id = :id"), {"id": STATUS_ROW_ID}
            ).scalar_one_or_none()
        # a missing row reads as active
        return True if value is None else bool(value)

    def set_active(self, is_active: bool) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO system_status (id, is_active, updated_at)
                    VALUES (:id, :is_active, CURRENT_TIMESTAMP)
                    ON CONFLICT (id) DO UPDATE SET
                      is_active = EXCLUDED.is_active,
                      updated_at = CURRENT_TIMESTAMP
                    """
                ),
                {"id": STATUS_ROW_ID, "is_active": is_active},
            )
