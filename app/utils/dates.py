"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date

import pendulum

DEFAULT_TZ = "Asia/Ho_Chi_Minh"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz() -> date:
    return now_in_tz().date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def iso_timestamp() -> str:
    return now_in_tz().isoformat()
