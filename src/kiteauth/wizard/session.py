"""Cached authenticated session: restored on startup, dropped on logout."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from kiteauth.broker.types import AccessTokenResponse
from kiteauth.storage import TOKEN_DATA_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class SessionCache:
    """Reads and writes the token response under ``kite_token_data``."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> AccessTokenResponse | None:
        """Return the cached session, or ``None``.

        A corrupt entry is removed so the next start begins clean.
        """
        raw = self._store.get(TOKEN_DATA_KEY)
        if not raw:
            return None
        try:
            return AccessTokenResponse.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Error parsing saved token data: %s", e)
            self._store.clear(TOKEN_DATA_KEY)
            return None

    def save(self, token_data: AccessTokenResponse) -> None:
        self._store.set(TOKEN_DATA_KEY, token_data.model_dump_json())

    def clear(self) -> None:
        self._store.clear(TOKEN_DATA_KEY)
