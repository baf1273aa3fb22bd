"""Broker package: Kite Connect checksum, session types and token exchange."""

from kiteauth.broker.checksum import generate_checksum  # noqa: F401
from kiteauth.broker.token_exchange import KiteTokenExchange  # noqa: F401
from kiteauth.broker.types import (  # noqa: F401
    AccessTokenResponse,
    KiteCredentials,
    KiteSession,
    session_expiry,
)
