"""Storefront search, price presets and pagination."""

from __future__ import annotations

import math
import pathlib
from dataclasses import dataclass
from typing import Sequence

import yaml

from app.gateways.models import Product

PRESETS_PATH = pathlib.Path(__file__).with_name("filters.yml")
PAGE_SIZE = 100
VISIBLE_PAGES = 5
ELLIPSIS = None


@dataclass(slots=True)
class PricePreset:
    name: str
    field: str
    min: float | None = None
    max: float | None = None

    def matches(self, product: Product) -> bool:
        value = getattr(product, self.field, 0) or 0
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass(slots=True)
class PageView:
    items: list[Product]
    page: int
    total_pages: int
    total_items: int
    # page numbers to show; None marks a gap
    links: list[int | None]
    page_size: int = PAGE_SIZE

    @property
    def first_index(self) -> int:
        return 0 if not self.items else (self.page - 1) * self.page_size + 1

    @property
    def last_index(self) -> int:
        return 0 if not self.items else self.first_index + len(self.items) - 1


def load_presets(path: pathlib.Path = PRESETS_PATH) -> dict[str, PricePreset]:
    data = yaml.safe_load(path.read_text()) or []
    presets = [PricePreset(**item) for item in data]
    return {preset.name: preset for preset in presets}


def apply_filters(
    products: Sequence[Product],
    *,
    search: str = "",
    preset: PricePreset | None = None,
) -> list[Product]:
    filtered = list(products)
    needle = search.strip().lower()
    if needle:
        filtered = [product for product in filtered if needle in product.title.lower()]
    if preset is not None:
        filtered = [product for product in filtered if preset.matches(product)]
    return filtered


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(count / page_size) if count else 0


def page_links(page: int, pages: int, visible: int = VISIBLE_PAGES) -> list[int | None]:
    """Window of ``visible`` pages around ``page``, with first/last and gaps."""
    if pages <= 1:
        return []
    start = max(1, page - visible // 2)
    end = min(pages, start + visible - 1)
    if end - start < visible - 1:
        start = max(1, end - visible + 1)
    links: list[int | None] = []
    if start > 1:
        links.append(1)
        if start > 2:
            links.append(ELLIPSIS)
    links.extend(range(start, end + 1))
    if end < pages:
        if end < pages - 1:
            links.append(ELLIPSIS)
        links.append(pages)
    return links


def paginate(products: Sequence[Product], page: int, page_size: int = PAGE_SIZE) -> PageView:
    pages = total_pages(len(products), page_size)
    page = min(max(page, 1), max(pages, 1))
    start = (page - 1) * page_size
    return PageView(
        items=list(products[start : start + page_size]),
        page=page,
        total_pages=pages,
        total_items=len(products),
        links=page_links(page, pages),
        page_size=page_size,
    )
