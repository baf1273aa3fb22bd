"""Kite Connect request checksum."""

from __future__ import annotations

import hashlib


def generate_checksum(api_key: str, request_token: str, api_secret: str) -> str:
    """Generate SHA-256 checksum for token exchange.

    Checksum = SHA256(api_key + request_token + api_secret)
    """
    data = f"{api_key}{request_token}{api_secret}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
