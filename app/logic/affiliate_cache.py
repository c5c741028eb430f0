"""Same-day cache of converted affiliate links, persisted as one JSON file."""

from __future__ import annotations

import json
import logging
import os
import pathlib
from dataclasses import asdict, dataclass
from datetime import date
from typing import Callable

from app.utils.dates import format_date, iso_timestamp, today_in_tz

logger = logging.getLogger(__name__)

CACHE_PATH = pathlib.Path(os.environ.get("AFFILIATE_CACHE_PATH", ".cache/affiliate_links.json"))


@dataclass(slots=True)
class AffiliateLinkCacheEntry:
    longLink: str
    shortLink: str | None
    timestamp: str
    date: str


class AffiliateLinkCache:
    """Advisory cache; losing it only forces re-conversion.

    Entries are valid for the calendar day stored in ``date``. Older entries
    are dropped on load and never returned by :meth:`get`.
    """

    def __init__(self, path: pathlib.Path | None = CACHE_PATH, *, today: Callable[[], date] = today_in_tz) -> None:
        self.path = path
        self._today = today
        self._data: dict[str, AffiliateLinkCacheEntry] = {}
        self.load()

    def _today_key(self) -> str:
        return format_date(self._today())

    def load(self) -> None:
        self._data = {}
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Invalid affiliate link cache; resetting: %s", exc)
            raw = {}
        today = self._today_key()
        for link, value in (raw.items() if isinstance(raw, dict) else []):
            try:
                entry = AffiliateLinkCacheEntry(**value)
            except TypeError:
                logger.warning("Dropping malformed cache entry for %s", link)
                continue
            if entry.date == today and entry.longLink:
                self._data[link] = entry
        self.save()

    def save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({link: asdict(entry) for link, entry in self._data.items()}))
        except OSError as exc:
            logger.error("Error saving affiliate link cache: %s", exc)

    def get(self, original_link: str) -> str | None:
        entry = self._data.get(original_link)
        if entry is None or entry.date != self._today_key():
            return None
        return entry.longLink

    def has(self, original_link: str) -> bool:
        return self.get(original_link) is not None

    def put(self, original_link: str, long_link: str, short_link: str | None = None) -> None:
        self._data[original_link] = AffiliateLinkCacheEntry(
            longLink=long_link,
            shortLink=short_link,
            timestamp=iso_timestamp(),
            date=self._today_key(),
        )

    def __len__(self) -> int:
        return len(self._data)
