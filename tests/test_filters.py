from app.gateways.models import Product
from app.logic import filters


def _product(title="Áo thun", **fields):
    return Product(link=f"https://shopee.vn/product/1/{len(title)}", title=title, **fields)


def test_presets_load_from_yaml():
    presets = filters.load_presets()

    assert set(presets) == {"price_1k", "price_9k", "price_29k", "discount_90", "stock_100"}
    assert presets["price_9k"].matches(_product(price=9000))
    assert presets["price_9k"].matches(_product(price=9999))
    assert not presets["price_9k"].matches(_product(price=10000))
    assert presets["price_1k"].matches(_product(price=1000))
    assert presets["discount_90"].matches(_product(percent=90))
    assert not presets["stock_100"].matches(_product(amount=99))


def test_search_is_case_insensitive_and_combines_with_preset():
    presets = filters.load_presets()
    products = [_product("Son MAC", price=900), _product("son dưỡng", price=20000), _product("Kem chống nắng", price=500)]

    assert len(filters.apply_filters(products, search="SON")) == 2
    assert [p.title for p in filters.apply_filters(products, search="son", preset=presets["price_1k"])] == ["Son MAC"]


def test_page_links_window():
    assert filters.page_links(1, 1) == []
    assert filters.page_links(1, 3) == [1, 2, 3]
    assert filters.page_links(1, 10) == [1, 2, 3, 4, 5, None, 10]
    assert filters.page_links(6, 10) == [1, None, 4, 5, 6, 7, 8, None, 10]
    assert filters.page_links(10, 10) == [1, None, 6, 7, 8, 9, 10]


def test_paginate_clamps_and_counts():
    products = [_product(f"item {idx}") for idx in range(250)]

    view = filters.paginate(products, 3)
    assert view.total_pages == 3
    assert len(view.items) == 50
    assert (view.first_index, view.last_index) == (201, 250)

    assert filters.paginate(products, 9).page == 3
    assert filters.paginate([], 1).total_pages == 0
