"""FastAPI application persisting time-slot mappings and the system-status flag."""

from __future__ import annotations

import functools
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db.migrate import run_migrations
from app.db.session import create_engine_from_env
from app.logic.records import TimeSlotRecord
from app.store.system_status import SystemStatusStore
from app.store.time_slots import TimeSlotStore

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine_from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine_factory = app.dependency_overrides.get(get_engine, get_engine)
    # A database that cannot be opened or migrated must stop the server.
    run_migrations(engine_factory())
    logger.info("Database initialized")
    yield


app = FastAPI(title="Flash Sale Link Manager API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class SaveRequest(BaseModel):
    timeSlot: str | None = None
    data: dict[str, Any] | None = None


class SystemStatusRequest(BaseModel):
    isActive: Any = None


def get_store(engine: Engine = Depends(get_engine)) -> TimeSlotStore:
    return TimeSlotStore(engine)


def get_status_store(engine: Engine = Depends(get_engine)) -> SystemStatusStore:
    return SystemStatusStore(engine)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=400)


@app.get("/api/data")
def read_all(store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    records = store.read_all()
    return JSONResponse({slot: record.to_dict() for slot, record in records.items()})


@app.get("/api/data/{time_slot}")
def read_one(time_slot: str, store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    return JSONResponse(store.read_one(time_slot).to_dict())


@app.post("/api/data")
def save(payload: SaveRequest, store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    if not payload.timeSlot:
        return _bad_request("timeSlot is required")
    store.upsert(payload.timeSlot, TimeSlotRecord.from_dict(payload.data))
    return JSONResponse({"success": True, "message": "Data saved successfully"})


@app.post("/api/data/batch")
def save_batch(payload: Any = Body(None), store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    if not isinstance(payload, dict):
        return _bad_request("Invalid data format")
    if not payload:
        return JSONResponse({"success": True, "message": "No data to save"})
    records = {
        slot: TimeSlotRecord.from_dict(data if isinstance(data, dict) else None)
        for slot, data in payload.items()
    }
    errors = store.upsert_many(records)
    if errors:
        return JSONResponse({"success": False, "errors": errors}, status_code=500)
    return JSONResponse({"success": True, "message": "All data saved successfully"})


@app.delete("/api/data/{time_slot}")
def delete_one(time_slot: str, store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    store.delete(time_slot)
    return JSONResponse({"success": True, "message": "Data deleted successfully"})


@app.delete("/api/data")
def delete_all(store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    store.delete_all()
    return JSONResponse({"success": True, "message": "All data deleted successfully"})


@app.get("/api/time-slots")
def time_slots(store: TimeSlotStore = Depends(get_store)) -> JSONResponse:
    return JSONResponse({"success": True, "data": store.list_time_slots()})


@app.get("/api/system-status")
def get_system_status(status: SystemStatusStore = Depends(get_status_store)) -> JSONResponse:
    return JSONResponse({"success": True, "isActive": status.is_active()})


@app.post("/api/system-status")
def set_system_status(
    payload: SystemStatusRequest, status: SystemStatusStore = Depends(get_status_store)
) -> JSONResponse:
    if not isinstance(payload.isActive, bool):
        return _bad_request("isActive must be a boolean")
    status.set_active(payload.isActive)
    logger.info("System status set to %s", "active" if payload.isActive else "maintenance")
    return JSONResponse({"success": True, "message": "System status updated", "isActive": payload.isActive})
