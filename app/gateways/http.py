"""Shared request helper for the JSON gateways."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.errors import GatewayError
from app.utils.retry import retry_async

logger = logging.getLogger(__name__)


async def request_json(session: httpx.AsyncClient, method: str, url: str, *, retry: bool = True, **kwargs: Any) -> Any:
    """Send a request and decode its JSON body.

    Transport failures, non-2xx statuses and undecodable bodies all surface
    as :class:`GatewayError`.
    """
    send = retry_async(session.request) if retry else session.request
    try:
        response = await send(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.warning("%s %s failed: %s", method, url, exc)
        raise GatewayError(f"{method} {url} failed: {exc}") from exc
    if response.is_error:
        logger.warning("%s %s returned %s", method, url, response.status_code)
        raise GatewayError(
            f"{method} {url} returned {response.status_code}: {response.text[:100]}",
            status_code=response.status_code,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise GatewayError(f"{method} {url} returned invalid JSON") from exc
