"""
Central configuration for the Kite Connect auth proxy and client.

All settings are loaded from environment variables with sensible defaults.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class ApiKeySource(str, Enum):
    """Where the proxy takes the ``api_key`` for a token exchange from."""

    SERVER = "server"    # KITE_API_KEY, caller value ignored
    REQUEST = "request"  # caller must send api_key


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Logging ---
    log_level: str = "INFO"

    # --- Zerodha Kite Connect ---
    kite_api_key: str = ""
    kite_api_secret: str = ""
    kite_redirect_url: str = "http://localhost:5173/auth/callback"
    kite_login_url: str = "https://kite.zerodha.com/connect/login"
    kite_api_base_url: str = "https://api.kite.trade"
    kite_api_version: str = "3"

    # --- Token exchange proxy ---
    api_key_source: ApiKeySource = ApiKeySource.SERVER
    host: str = "0.0.0.0"
    port: int = 3001
    http_timeout_seconds: float = 30.0

    # --- Auth client ---
    proxy_url: str = "http://localhost:3001/api/exchange-token"

    # --- Webhook relay (empty = disabled) ---
    webhook_url: str = ""
    webhook_source: str = "zerodha-algo-app"

    # --- Local session storage ---
    storage_path: Path = Field(
        default_factory=lambda: Path.home() / ".kiteauth" / "storage.json"
    )
    redis_url: str = ""  # set to use Redis instead of the JSON file

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Singleton settings instance
settings = Settings()
