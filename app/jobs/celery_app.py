"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery

from app.jobs.periodic import SCAN_INTERVAL_SECONDS
from app.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery("flashsale", broker=broker_url, backend=backend_url, include=["app.jobs.maintenance"])
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "reconcile-time-slots": {
        "task": "app.jobs.maintenance.run_reconcile",
        "schedule": SCAN_INTERVAL_SECONDS,
    },
    "affiliate-scan": {
        "task": "app.jobs.maintenance.run_affiliate_scan",
        "schedule": SCAN_INTERVAL_SECONDS,
    },
}


@celery_app.task(name="app.jobs.maintenance.run_reconcile")
def run_reconcile_task():  # pragma: no cover - executed by worker
    import asyncio

    from app.jobs.maintenance import run_reconcile

    asyncio.run(run_reconcile())


@celery_app.task(name="app.jobs.maintenance.run_affiliate_scan")
def run_affiliate_scan_task():  # pragma: no cover - executed by worker
    import asyncio

    from app.jobs.maintenance import run_affiliate_scan

    asyncio.run(run_affiliate_scan())
