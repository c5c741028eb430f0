"""Affiliate link conversion gateway (GraphQL ``batchCustomLink``)."""

from __future__ import annotations

import json
import logging
import os
import pathlib
from typing import Any, Mapping, Sequence

import httpx

from app.errors import GatewayError
from app.gateways.http import request_json
from app.gateways.models import AffiliateLink, ItemRef

logger = logging.getLogger(__name__)

AFFILIATE_URL = os.environ.get("AFFILIATE_URL", "https://affiliate.shopee.vn/api/v3/gql?q=batchCustomLink")
COOKIES_PATH = pathlib.Path(os.environ.get("AFFILIATE_COOKIES_PATH", ".cache/affiliate_cookies.json"))
AFFILIATE_ORIGIN = "https://affiliate.shopee.vn"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BATCH_CUSTOM_LINK_MUTATION = (
    "mutation batchCustomLink($input: BatchCustomLinkInput!) "
    "{ batchCustomLink(input: $input) { shortLink longLink failCode } }"
)


def load_session_cookies(path: pathlib.Path = COOKIES_PATH) -> dict[str, str]:
    """Read the saved affiliate session cookies, or ``{}`` when unusable."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Invalid cookie file %s; ignoring: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Cookie file %s does not hold an object; ignoring", path)
        return {}
    return {str(key): str(value) for key, value in data.items()}


def save_session_cookies(cookies: Mapping[str, str], path: pathlib.Path = COOKIES_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dict(cookies)))


class AffiliateClient:
    def __init__(
        self,
        cookies: Mapping[str, str],
        *,
        url: str = AFFILIATE_URL,
        session: httpx.AsyncClient | None = None,
    ) -> None:
        self.cookies = dict(cookies)
        self.url = url
        self.session = session or httpx.AsyncClient(timeout=30.0)

    async def close(self) -> None:
        await self.session.aclose()

    @property
    def has_session(self) -> bool:
        return bool(self.cookies)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json; charset=UTF-8",
            "Cookie": "; ".join(f"{key}={value}" for key, value in self.cookies.items()),
            "Csrf-Token": self.cookies.get("csrftoken", ""),
            "Origin": AFFILIATE_ORIGIN,
            "Referer": f"{AFFILIATE_ORIGIN}/offer/custom_link",
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }

    async def batch_custom_link(self, refs: Sequence[ItemRef]) -> list[AffiliateLink]:
        """Convert one batch; results are positionally aligned with ``refs``."""
        body = {
            "query": BATCH_CUSTOM_LINK_MUTATION,
            "variables": {
                "input": {"links": [{"shopId": ref.shop_id, "itemId": ref.item_id} for ref in refs]},
            },
        }
        data = await request_json(
            self.session, "POST", self.url, json=body, headers=self._headers(), retry=False
        )
        if not isinstance(data, dict):
            raise GatewayError("Invalid affiliate response: not an object")
        results = (data.get("data") or {}).get("batchCustomLink")
        if isinstance(results, list):
            return [_to_link(item) for item in results]
        if data.get("errors"):
            raise GatewayError("Affiliate API error: " + json.dumps(data["errors"])[:200])
        raise GatewayError("Invalid affiliate response: " + json.dumps(data)[:200])


def _to_link(item: Any) -> AffiliateLink:
    if not isinstance(item, dict):
        return AffiliateLink(short_link=None, long_link=None)
    return AffiliateLink(
        short_link=item.get("shortLink") or None,
        long_link=item.get("longLink") or None,
        fail_code=item.get("failCode"),
    )
