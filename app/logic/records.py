"""Per-time-slot mapping records and the pure edit commands over them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from app.errors import ValidationFailure
from app.gateways.models import Product

logger = logging.getLogger(__name__)

FAILURE_REASONS = (
    "Thành công",
    "Link không hợp lệ",
    "Sản phẩm hết hàng",
    "Link bị lỗi",
    "Khác",
)
SUB_ID_COUNT = 5


@dataclass(frozen=True, slots=True)
class SubIds:
    sub1: str = ""
    sub2: str = ""
    sub3: str = ""
    sub4: str = ""
    sub5: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "SubIds":
        data = _mapping(data)
        return cls(*(str(data.get(f"sub{idx}") or "") for idx in range(1, SUB_ID_COUNT + 1)))

    def to_dict(self) -> dict[str, str]:
        return {f"sub{idx}": value for idx, value in enumerate(self.values(), start=1)}

    def values(self) -> tuple[str, str, str, str, str]:
        return (self.sub1, self.sub2, self.sub3, self.sub4, self.sub5)

    def any(self) -> bool:
        return any(self.values())

    def with_value(self, index: int, value: str) -> "SubIds":
        if not 1 <= index <= SUB_ID_COUNT:
            raise ValidationFailure(f"Sub-id index must be 1..{SUB_ID_COUNT}, got {index}")
        return replace(self, **{f"sub{index}": value})


@dataclass(frozen=True, slots=True)
class TimeSlotRecord:
    """Operator state for one time slot.

    All four mappings are keyed by original product link. Records are treated
    as values: the commands below always build new dicts instead of mutating.
    """

    link_mapping: Mapping[str, str] = field(default_factory=dict)
    sub_id_mapping: Mapping[str, SubIds] = field(default_factory=dict)
    reason_mapping: Mapping[str, str] = field(default_factory=dict)
    product_cache: Mapping[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TimeSlotRecord":
        data = _mapping(data)
        return cls(
            link_mapping=_mapping(data.get("linkMapping")),
            sub_id_mapping={
                link: SubIds.from_dict(value)
                for link, value in _mapping(data.get("subIdMapping")).items()
            },
            reason_mapping=_mapping(data.get("reasonMapping")),
            product_cache={
                link: value for link, value in _mapping(data.get("productCache")).items() if isinstance(value, dict)
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "linkMapping": dict(self.link_mapping),
            "subIdMapping": {link: subs.to_dict() for link, subs in self.sub_id_mapping.items()},
            "reasonMapping": dict(self.reason_mapping),
            "productCache": dict(self.product_cache),
        }

    def is_empty(self) -> bool:
        return not (self.link_mapping or self.sub_id_mapping or self.reason_mapping or self.product_cache)


@dataclass(frozen=True, slots=True)
class EditOutcome:
    """A new record plus the side effects the caller should carry out."""

    record: TimeSlotRecord
    persist: bool
    render: bool = True


@dataclass(frozen=True, slots=True)
class MappingRow:
    """One editable row as shown to the operator."""

    original_link: str
    conversion_link: str
    sub_ids: SubIds
    reason: str
    product: dict[str, Any]


def set_conversion_link(record: TimeSlotRecord, original_link: str, value: str) -> EditOutcome:
    value = (value or "").strip()
    mapping = dict(record.link_mapping)
    if value:
        mapping[original_link] = value
    else:
        mapping.pop(original_link, None)
    return EditOutcome(replace(record, link_mapping=mapping), persist=True)


def set_sub_id(record: TimeSlotRecord, original_link: str, index: int, value: str) -> EditOutcome:
    current = record.sub_id_mapping.get(original_link, SubIds())
    mapping = dict(record.sub_id_mapping)
    mapping[original_link] = current.with_value(index, (value or "").strip())
    return EditOutcome(replace(record, sub_id_mapping=mapping), persist=True)


def set_reason(record: TimeSlotRecord, original_link: str, reason: str) -> EditOutcome:
    reason = (reason or "").strip()
    if reason and reason not in FAILURE_REASONS:
        raise ValidationFailure(f"Unknown failure reason: {reason!r}")
    mapping = dict(record.reason_mapping)
    if reason:
        mapping[original_link] = reason
    else:
        mapping.pop(original_link, None)
    return EditOutcome(replace(record, reason_mapping=mapping), persist=True)


def merge_products(record: TimeSlotRecord, products: Iterable[Product]) -> EditOutcome:
    """Refresh the product cache from a catalog fetch; newest snapshot wins."""
    cache = dict(record.product_cache)
    for product in products:
        if product.link:
            cache[product.link] = product.to_payload()
    return EditOutcome(replace(record, product_cache=cache), persist=False)


def mapping_rows(record: TimeSlotRecord, products: Iterable[Product]) -> list[MappingRow]:
    rows = []
    for product in products:
        link = product.link or ""
        rows.append(
            MappingRow(
                original_link=link,
                conversion_link=record.link_mapping.get(link, ""),
                sub_ids=record.sub_id_mapping.get(link, SubIds()),
                reason=record.reason_mapping.get(link, ""),
                product=dict(record.product_cache.get(link) or product.to_payload()),
            )
        )
    return rows


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}
