"""
nanoedit/http_client.py

Shared outbound HTTP client. Proxy and timeouts are configured on the
client instance and handed to each provider adapter.
"""

import logging
from typing import Optional

import httpx

from nanoedit.config import settings

logger = logging.getLogger(__name__)

_client: Optional[httpx.AsyncClient] = None


def build_http_client(
    proxy: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient for provider calls"""
    kwargs = {
        "timeout": httpx.Timeout(timeout or settings.PROVIDER_TIMEOUT),
        "follow_redirects": True,
    }
    if transport is not None:
        kwargs["transport"] = transport
    elif proxy:
        logger.info(f"Provider requests routed through proxy {proxy}")
        kwargs["proxy"] = proxy
    return httpx.AsyncClient(**kwargs)


def get_http_client() -> httpx.AsyncClient:
    """Process-wide client, created on first use"""
    global _client
    if _client is None or _client.is_closed:
        _client = build_http_client(proxy=settings.OUTBOUND_PROXY)
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None
