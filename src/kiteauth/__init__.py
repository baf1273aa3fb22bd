"""Kite Connect login handshake: auth client, token exchange proxy and wizard."""

__version__ = "0.1.0"
