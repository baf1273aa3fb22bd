"""
Best-effort relay of a completed Kite login to an external webhook.

Delivery never affects authentication: ``dispatch`` schedules a detached
task whose failure is logged and discarded, and ``send`` (the manual
re-trigger) reports success as a bool instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from kiteauth.broker.types import AccessTokenResponse
from kiteauth.config import settings

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    """UTC time as ``2024-01-01T10:00:00.123Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_payload(token_data: AccessTokenResponse, source: str) -> dict[str, Any]:
    """Subset of the session forwarded to the webhook."""
    session = token_data.data
    return {
        "access_token": session.access_token,
        "user_id": session.user_id,
        "user_name": session.user_name,
        "email": session.email,
        "broker": session.broker,
        "login_time": session.login_time,
        "api_key": session.api_key,
        "public_token": session.public_token,
        "exchanges": session.exchanges,
        "products": session.products,
        "order_types": session.order_types,
        "timestamp": _utc_timestamp(),
        "source": source,
    }


class WebhookNotifier:
    """Posts session payloads to ``webhook_url``.

    Usage::

        notifier = WebhookNotifier()
        notifier.dispatch(token_data)       # fire-and-forget
        ok = await notifier.send(token_data)  # awaited, for manual resend
        await notifier.drain()
    """

    def __init__(
        self,
        url: str | None = None,
        source: str | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = settings.webhook_url if url is None else url
        self.source = source or settings.webhook_source
        self._http = http or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(self, token_data: AccessTokenResponse) -> bool:
        """Deliver the payload and return whether the webhook accepted it."""
        if not self.enabled:
            logger.info("No webhook URL configured, skipping notification")
            return False

        try:
            logger.info("Sending access token to webhook: %s", self.url)
            resp = await self._http.post(
                self.url,
                json=build_payload(token_data, self.source),
            )
        except Exception as e:
            logger.error("Failed to send access token to webhook: %s", e)
            return False

        if resp.is_success:
            logger.info("Access token successfully sent to webhook")
            return True

        logger.warning(
            "Webhook request failed: %s %s", resp.status_code, resp.reason_phrase
        )
        return False

    def dispatch(self, token_data: AccessTokenResponse) -> asyncio.Task | None:
        """Schedule ``send`` without waiting for it.

        Must be called from a running event loop. Returns ``None`` when no
        webhook is configured.
        """
        if not self.enabled:
            return None
        task = asyncio.get_running_loop().create_task(self.send(token_data))
        self._pending.add(task)
        task.add_done_callback(self._discard)
        return task

    def _discard(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Webhook notification task failed: %s", exc)

    async def drain(self) -> None:
        """Wait for every in-flight notification to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._http.aclose()
