"""
Four-step Kite login wizard: config → login → callback → success.

The step graph is linear. ``RESET`` returns to ``config`` from any step,
and a URL that already carries a ``request_token`` enters directly at
``callback``. Rendering is left to the front end; the wizard only holds
state and talks to the auth client and the key-value store.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable
from urllib.parse import urlsplit, urlunsplit

from kiteauth.broker.types import AccessTokenResponse
from kiteauth.client.auth_client import KiteAuthClient
from kiteauth.errors import ConfigurationError, InvalidTransitionError, KiteAuthError
from kiteauth.storage import API_KEY_KEY, API_SECRET_KEY, KeyValueStore
from kiteauth.wizard.session import SessionCache

logger = logging.getLogger(__name__)


class AuthStep(str, Enum):
    CONFIG = "config"
    LOGIN = "login"
    CALLBACK = "callback"
    SUCCESS = "success"


class WizardEvent(str, Enum):
    CONFIG_SAVED = "CONFIG_SAVED"
    CALLBACK_RECEIVED = "CALLBACK_RECEIVED"
    TOKEN_EXCHANGED = "TOKEN_EXCHANGED"
    RESET = "RESET"


_TRANSITIONS: dict[tuple[AuthStep, WizardEvent], AuthStep] = {
    (AuthStep.CONFIG, WizardEvent.CONFIG_SAVED): AuthStep.LOGIN,
    (AuthStep.LOGIN, WizardEvent.CALLBACK_RECEIVED): AuthStep.CALLBACK,
    (AuthStep.CALLBACK, WizardEvent.TOKEN_EXCHANGED): AuthStep.SUCCESS,
}


def next_step(step: AuthStep, event: WizardEvent) -> AuthStep:
    """Return the step reached from ``step`` on ``event``."""
    if event == WizardEvent.RESET:
        return AuthStep.CONFIG
    try:
        return _TRANSITIONS[(step, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"{event.value} is not allowed in step '{step.value}'"
        ) from None


def initial_step(current_url: str) -> AuthStep:
    if KiteAuthClient.extract_request_token(current_url):
        return AuthStep.CALLBACK
    return AuthStep.CONFIG


def strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class AuthWizard:
    """Holds wizard state and performs each step's side effects.

    Args:
        client: Auth client whose credentials the wizard manages.
        store: Local key-value store for credentials and session data.
        navigate: Performs the full-page redirect to the login URL.
        replace_url: Replaces the current URL without navigating (used to
            strip query parameters on reset).
        on_success: Called with the token response once authenticated.
    """

    def __init__(
        self,
        client: KiteAuthClient,
        store: KeyValueStore,
        navigate: Callable[[str], None],
        replace_url: Callable[[str], None] | None = None,
        on_success: Callable[[AccessTokenResponse], None] | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.sessions = SessionCache(store)
        self._navigate = navigate
        self._replace_url = replace_url
        self._on_success = on_success

        self.step = AuthStep.CONFIG
        self.api_key = ""
        self.api_secret = ""
        self.request_token = ""
        self.loading = False
        self.error: str | None = None
        self.token_data: AccessTokenResponse | None = None
        self.current_url = ""

    def _apply(self, event: WizardEvent) -> None:
        self.step = next_step(self.step, event)

    # ── Entry ─────────────────────────────────────────────────────────────

    def start(self, current_url: str = "") -> AuthStep:
        """Restore cached credentials and pick the entry step."""
        self.current_url = current_url
        self.step = initial_step(current_url)
        if self.step == AuthStep.CALLBACK:
            self.request_token = self.client.extract_request_token(current_url) or ""

        saved_key = self.store.get(API_KEY_KEY)
        saved_secret = self.store.get(API_SECRET_KEY)
        if saved_key:
            self.api_key = saved_key
            self.client.update_api_key(saved_key)
            logger.info("Restored API key from storage")
        if saved_secret:
            self.api_secret = saved_secret
            self.client.update_api_secret(saved_secret)
            logger.info("Restored API secret from storage")

        return self.step

    # ── config ────────────────────────────────────────────────────────────

    def submit_config(self, api_key: str, api_secret: str) -> bool:
        """Validate and persist credentials; advance to ``login`` on success."""
        self.api_key = api_key
        self.api_secret = api_secret
        if not api_key.strip():
            self.error = "API Key is required"
            return False
        if not api_secret.strip():
            self.error = "API Secret is required"
            return False

        self.error = None
        self.client.update_api_key(api_key)
        self.client.update_api_secret(api_secret)
        self.store.set(API_KEY_KEY, api_key)
        self.store.set(API_SECRET_KEY, api_secret)
        self._apply(WizardEvent.CONFIG_SAVED)
        return True

    # ── login ─────────────────────────────────────────────────────────────

    def login(self) -> str | None:
        """Redirect to the broker's login page; returns the URL used."""
        try:
            login_url = self.client.generate_login_url()
        except ConfigurationError as e:
            logger.error("Login URL generation failed: %s", e)
            self.error = "Failed to generate login URL"
            return None

        logger.info("Redirecting to Kite login page")
        self._navigate(login_url)
        return login_url

    def receive_callback(self, url: str) -> bool:
        """Accept the broker's redirect URL and move to ``callback``."""
        token = self.client.extract_request_token(url)
        if not token:
            self.error = "No request token found"
            return False

        self._apply(WizardEvent.CALLBACK_RECEIVED)
        self.current_url = url
        self.request_token = token
        self.error = None
        return True

    # ── callback ──────────────────────────────────────────────────────────

    async def exchange(self) -> AccessTokenResponse | None:
        """Exchange the held request token.

        A second call while one is pending is ignored. On failure the
        message is kept in ``error`` and the wizard stays in ``callback``.
        """
        if self.loading:
            return None
        if self.step != AuthStep.CALLBACK:
            raise InvalidTransitionError(
                f"Token exchange is not allowed in step '{self.step.value}'"
            )
        if not self.request_token:
            self.error = "No request token found"
            return None

        logger.info(
            "Starting token exchange: request_token=present api_secret=%s",
            "present" if self.client.config.api_secret else "missing",
        )

        self.loading = True
        self.error = None
        try:
            token_data = await self.client.authenticate(self.request_token)
        except KiteAuthError as e:
            self.error = str(e) or "Token exchange failed"
            return None
        finally:
            self.loading = False

        self.token_data = token_data
        self.sessions.save(token_data)
        self._apply(WizardEvent.TOKEN_EXCHANGED)
        if self._on_success is not None:
            self._on_success(token_data)
        return token_data

    # ── reset ─────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget everything and return to ``config``."""
        self._apply(WizardEvent.RESET)
        self.api_key = ""
        self.api_secret = ""
        self.request_token = ""
        self.error = None
        self.token_data = None
        self.client.update_api_key("")
        self.client.update_api_secret("")

        self.store.clear(API_KEY_KEY)
        self.store.clear(API_SECRET_KEY)
        self.sessions.clear()

        if self.current_url:
            self.current_url = strip_query(self.current_url)
            if self._replace_url is not None:
                self._replace_url(self.current_url)
