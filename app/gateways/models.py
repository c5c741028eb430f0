"""Gateway data models."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(slots=True)
class TimeSlot:
    time: str
    label: str
    order: int = 0
    is_active: bool = False

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "TimeSlot":
        time = str(data.get("time") or "")
        return cls(
            time=time,
            label=str(data.get("label") or data.get("name") or time),
            order=to_int(data.get("order")),
            is_active=bool(data.get("isActive", False)),
        )


@dataclass(slots=True)
class Product:
    link: str
    title: str = ""
    price: float = 0.0
    original_price: float = 0.0
    percent: float = 0.0
    amount: int = 0
    img: str = ""

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Product":
        return cls(
            link=str(data.get("link") or ""),
            title=str(data.get("title") or ""),
            price=_to_float(data.get("price")),
            original_price=_to_float(data.get("original_price")),
            percent=_to_float(data.get("percent")),
            amount=to_int(data.get("amount")),
            img=str(data.get("img") or ""),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "link": self.link,
            "title": self.title,
            "price": self.price,
            "original_price": self.original_price,
            "percent": self.percent,
            "amount": self.amount,
            "img": self.img,
        }


@dataclass(slots=True)
class CatalogPage:
    products: list[Product]
    total: int


@dataclass(slots=True)
class ItemRef:
    """Shop/item identifier pair parsed from a catalog product link."""

    shop_id: int
    item_id: int
    original_link: str


@dataclass(slots=True)
class AffiliateLink:
    short_link: str | None
    long_link: str | None
    fail_code: int | None = None


def _to_float(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_int(value: Any) -> int:
    number = _to_float(value)
    return int(number) if math.isfinite(number) else 0
