"""
Zerodha Kite Connect request_token → access_token exchange.

Handles:
- Checksum generation for the exchange request
- The single ``POST /session/token`` round trip
- Mapping broker rejections to :class:`BrokerRejectedError`
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from kiteauth.broker.checksum import generate_checksum
from kiteauth.config import settings
from kiteauth.errors import BrokerRejectedError

logger = logging.getLogger(__name__)


class KiteTokenExchange:
    """Calls the broker's token endpoint on behalf of the proxy.

    Usage::

        exchange = KiteTokenExchange()
        body = await exchange.exchange(api_key, request_token, api_secret)
        await exchange.close()

    The broker's JSON body is returned as-is. Nothing is retried; a
    request token is single-use, so a failed attempt needs a fresh login.
    """

    def __init__(
        self,
        base_url: str | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.kite_api_base_url).rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/session/token"

    async def exchange(
        self,
        api_key: str,
        request_token: str,
        api_secret: str,
    ) -> dict[str, Any]:
        """Exchange ``request_token`` for an access token.

        Raises:
            BrokerRejectedError: The broker answered with a non-2xx status.
            httpx.HTTPError: The request could not be completed.
        """
        payload = {
            "api_key": api_key,
            "request_token": request_token,
            "checksum": generate_checksum(api_key, request_token, api_secret),
        }

        resp = await self._http.post(
            self.token_url,
            data=payload,
            headers={"X-Kite-Version": settings.kite_api_version},
        )

        if not resp.is_success:
            logger.error("Kite API error: %s %s", resp.status_code, resp.text)
            raise BrokerRejectedError(resp.status_code, resp.text)

        data = resp.json()
        logger.info(
            "Kite token exchange successful for user=%s",
            (data.get("data") or {}).get("user_id", ""),
        )
        return data

    async def close(self) -> None:
        await self._http.aclose()
