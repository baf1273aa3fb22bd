"""Exceptions raised across the auth client, proxy and wizard."""

from __future__ import annotations


class KiteAuthError(Exception):
    """Base class for Kite authentication failures."""


class ConfigurationError(KiteAuthError):
    """Raised when API credentials needed for a step are not set."""


class AuthValidationError(KiteAuthError):
    """Raised when a required input (e.g. the request token) is empty."""


class TokenExchangeError(KiteAuthError):
    """Raised when exchanging a request token for an access token fails."""


class BrokerRejectedError(TokenExchangeError):
    """The broker answered the token exchange with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Token exchange failed (HTTP {status_code}): {body}")
        self.status_code = status_code
        self.body = body


class InvalidTransitionError(KiteAuthError):
    """Raised when the auth wizard is asked for a transition it does not allow."""
