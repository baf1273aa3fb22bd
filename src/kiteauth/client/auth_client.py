"""
Kite Connect auth client: the caller's side of the login handshake.

Handles:
- API key / secret held per client instance
- Login URL generation
- request_token extraction from the redirect URL
- Token exchange through the proxy, then a detached webhook relay
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from kiteauth.broker.types import AccessTokenResponse, KiteCredentials
from kiteauth.client.webhook import WebhookNotifier
from kiteauth.config import settings
from kiteauth.errors import AuthValidationError, ConfigurationError, TokenExchangeError

logger = logging.getLogger(__name__)


def _presence(value: str) -> str:
    return "present" if value else "missing"


class KiteAuthClient:
    """Drives the login → request_token → access_token flow.

    Each instance owns its credentials; nothing is shared between clients.

    Usage::

        client = KiteAuthClient(KiteCredentials(api_key, api_secret))
        url = client.generate_login_url()
        # User logs in, broker redirects back with ?request_token=...
        token = client.extract_request_token(redirected_url)
        session = await client.authenticate(token)
        await client.aclose()
    """

    def __init__(
        self,
        credentials: KiteCredentials | None = None,
        proxy_url: str | None = None,
        http: httpx.AsyncClient | None = None,
        notifier: WebhookNotifier | None = None,
    ) -> None:
        self._config = credentials or KiteCredentials(
            redirect_url=settings.kite_redirect_url
        )
        self.proxy_url = proxy_url or settings.proxy_url
        self._http = http or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self.notifier = notifier or WebhookNotifier()

    @property
    def config(self) -> KiteCredentials:
        return self._config

    # ── Credentials ───────────────────────────────────────────────────────

    def update_api_key(self, api_key: str) -> None:
        self._config.api_key = api_key
        logger.debug(
            "API key updated: %s (length=%d)", _presence(api_key), len(api_key or "")
        )

    def update_api_secret(self, api_secret: str) -> None:
        self._config.api_secret = api_secret
        logger.debug(
            "API secret updated: %s (length=%d)",
            _presence(api_secret),
            len(api_secret or ""),
        )

    # ── Login URL ─────────────────────────────────────────────────────────

    def generate_login_url(self) -> str:
        """Build the broker's hosted login URL.

        Raises:
            ConfigurationError: If the API key or secret is not set.
        """
        if not self._config.api_key:
            raise ConfigurationError("API Key is required to generate login URL")
        if not self._config.api_secret:
            raise ConfigurationError("API Secret is required to generate login URL")

        query = urlencode({"v": settings.kite_api_version, "api_key": self._config.api_key})
        return f"{settings.kite_login_url}?{query}"

    @staticmethod
    def extract_request_token(url: str) -> str | None:
        """Return the ``request_token`` query parameter of ``url``, if any.

        Malformed or relative URLs yield ``None``.
        """
        try:
            parts = urlsplit(url)
        except (TypeError, ValueError) as e:
            logger.error("Error extracting request token: %s", e)
            return None

        if not parts.scheme or not parts.netloc:
            return None

        values = parse_qs(parts.query).get("request_token")
        return values[0] if values else None

    # ── Token exchange ────────────────────────────────────────────────────

    async def exchange_token(self, request_token: str) -> AccessTokenResponse:
        """Exchange ``request_token`` via the proxy.

        Raises:
            TokenExchangeError: The proxy rejected the exchange or was
                unreachable.
        """
        body = {
            "request_token": request_token,
            "api_secret": self._config.api_secret,
            "api_key": self._config.api_key,
        }

        logger.info(
            "Sending request to backend: request_token=%s api_secret=%s "
            "(length=%d)",
            _presence(request_token),
            _presence(self._config.api_secret),
            len(self._config.api_secret or ""),
        )

        try:
            resp = await self._http.post(self.proxy_url, json=body)
        except httpx.HTTPError as e:
            logger.error("Token exchange request failed: %s", e)
            raise TokenExchangeError(f"Token exchange failed: {e}") from e

        if not resp.is_success:
            try:
                error_data = resp.json()
            except ValueError:
                error_data = None
            if not isinstance(error_data, dict):
                error_data = {"details": resp.text}
            reason = error_data.get("details") or error_data.get("error") or ""
            raise TokenExchangeError(
                f"Token exchange failed: {resp.status_code} {reason}".rstrip()
            )

        try:
            return AccessTokenResponse.model_validate(resp.json())
        except ValueError as e:
            raise TokenExchangeError(f"Token exchange returned an invalid body: {e}") from e

    async def authenticate(self, request_token: str) -> AccessTokenResponse:
        """Complete authentication and relay the session to the webhook.

        The webhook runs detached; its outcome never reaches the caller.

        Raises:
            AuthValidationError: If ``request_token`` is empty.
            TokenExchangeError: If the exchange fails.
        """
        if not request_token:
            raise AuthValidationError("Request token is required")

        token_data = await self.exchange_token(request_token)
        self.notifier.dispatch(token_data)
        return token_data

    @staticmethod
    def is_token_valid(access_token: str | None) -> bool:
        """Basic presence check; the broker is not consulted."""
        return bool(access_token)

    async def aclose(self) -> None:
        await self.notifier.aclose()
        await self._http.aclose()
