"""URL helpers for affiliate-aware product links."""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

PRODUCT_LINK_MARKER = "shopee.vn/product/"
PRODUCT_IDS_RE = re.compile(r"product/(\d+)/(\d+)")


def is_product_link(link: str | None) -> bool:
    return bool(link) and PRODUCT_LINK_MARKER in link


def extract_product_ids(link: str) -> tuple[str, str] | None:
    """Return ``(shop_id, item_id)`` from a catalog product link."""
    match = PRODUCT_IDS_RE.search(link or "")
    if not match:
        return None
    return match.group(1), match.group(2)


def with_query_param(link: str, name: str, value: str) -> str:
    """Set ``name=value`` on ``link``, replacing any existing value.

    Absolute URLs are rebuilt from their parsed parts; anything without a
    scheme and host is treated as relative and gets the parameter appended.
    """
    try:
        parts = urlsplit(link)
    except ValueError:
        parts = None
    if parts is None or not parts.scheme or not parts.netloc:
        separator = "&" if "?" in link else "?"
        return f"{link}{separator}{name}={quote(value, safe='')}"
    query = [(key, val) for key, val in parse_qsl(parts.query, keep_blank_values=True) if key != name]
    query.append((name, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
