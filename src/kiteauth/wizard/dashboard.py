"""Read-only view of an authenticated Kite session."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from kiteauth.broker.types import AccessTokenResponse, session_expiry
from kiteauth.client.webhook import WebhookNotifier
from kiteauth.wizard.session import SessionCache

logger = logging.getLogger(__name__)


class WebhookStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    SUCCESS = "success"
    ERROR = "error"


def mask_token(token: str, visible: int = 4) -> str:
    if len(token) <= visible:
        return "*" * len(token)
    return token[:visible] + "*" * (len(token) - visible)


class Dashboard:
    def __init__(
        self,
        token_data: AccessTokenResponse,
        notifier: WebhookNotifier,
        sessions: SessionCache | None = None,
    ) -> None:
        self.token_data = token_data
        self.notifier = notifier
        self.sessions = sessions
        self.webhook_status = WebhookStatus.IDLE

    @property
    def access_token(self) -> str:
        return self.token_data.data.access_token or ""

    def summary(self) -> dict[str, Any]:
        session = self.token_data.data
        return {
            "user_name": session.user_name,
            "user_id": session.user_id,
            "email": session.email,
            "broker": session.broker,
            "user_type": session.user_type,
            "exchanges": list(session.exchanges or []),
            "products": list(session.products or []),
            "order_types": list(session.order_types or []),
            "login_time": session.login_time,
            "expires_at": session_expiry(session.login_time).isoformat(),
            "access_token": mask_token(session.access_token or ""),
            "public_token": session.public_token,
        }

    async def resend_webhook(self) -> WebhookStatus:
        """Manually push the session to the webhook again."""
        if self.webhook_status == WebhookStatus.SENDING:
            return self.webhook_status

        self.webhook_status = WebhookStatus.SENDING
        logger.info("Manually sending access token to webhook")
        ok = await self.notifier.send(self.token_data)
        self.webhook_status = WebhookStatus.SUCCESS if ok else WebhookStatus.ERROR
        return self.webhook_status

    def logout(self) -> None:
        if self.sessions is not None:
            self.sessions.clear()
        logger.info("Logged out user=%s", self.token_data.data.user_id)
