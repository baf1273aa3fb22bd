"""
Token Exchange Proxy: keeps the API secret out of the broker call path.

Handles:
- ``POST /api/exchange-token`` (JSON or form body) → Kite ``/session/token``
- Field validation before any network call
- Transparent passthrough of broker status codes and error bodies
- CORS preflight for browser callers
- Health check
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import uvicorn
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kiteauth.broker.token_exchange import KiteTokenExchange
from kiteauth.config import ApiKeySource, settings
from kiteauth.errors import BrokerRejectedError

logger = logging.getLogger(__name__)

EXCHANGE_PATH = "/api/exchange-token"

app = FastAPI(title="Kite Connect Proxy Server", version="0.1.0")

# ── CORS ──────────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ── Startup ───────────────────────────────────────────────────────────────────


@app.on_event("startup")
async def _log_startup():
    """Announce the endpoint; a missing server key is only warned about."""
    logger.info(
        "Kite Connect Proxy Server running on port %d (api_key_source=%s)",
        settings.port,
        settings.api_key_source.value,
    )
    logger.info("API endpoint: http://localhost:%d%s", settings.port, EXCHANGE_PATH)
    if settings.api_key_source == ApiKeySource.SERVER and not settings.kite_api_key:
        logger.warning("KITE_API_KEY is not set; every exchange will be rejected")


# ── Dependencies ──────────────────────────────────────────────────────────────


async def get_token_exchange() -> AsyncIterator[KiteTokenExchange]:
    """One broker client per request; the proxy keeps no shared state."""
    exchange = KiteTokenExchange()
    try:
        yield exchange
    finally:
        await exchange.close()


# ── Helpers ───────────────────────────────────────────────────────────────────

# Checked in this order; the first missing field is reported.
_REQUIRED_FIELDS = (
    ("request_token", "Request token"),
    ("api_secret", "API secret"),
    ("api_key", "API key"),
)


async def _read_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        return dict(form)
    raw = await request.body()
    if not raw:
        return {}
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def _describe(value: Any) -> dict[str, Any]:
    return {
        "present": bool(value),
        "length": len(value) if isinstance(value, str) else 0,
    }


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


# ── Health ────────────────────────────────────────────────────────────────────


@app.get("/api/health")
async def health():
    return {"status": "OK", "message": "Kite Connect Proxy Server is running"}


# ── Token Exchange ────────────────────────────────────────────────────────────


@app.options(EXCHANGE_PATH)
async def exchange_token_preflight():
    return Response(status_code=status.HTTP_200_OK)


@app.api_route(EXCHANGE_PATH, methods=["GET", "PUT", "PATCH", "DELETE"])
async def exchange_token_method_not_allowed():
    return _error(status.HTTP_405_METHOD_NOT_ALLOWED, "Method not allowed")


@app.post(EXCHANGE_PATH)
async def exchange_token(
    request: Request,
    exchange: KiteTokenExchange = Depends(get_token_exchange),
):
    """Exchange a request token for an access token.

    The broker's JSON body is returned unchanged on success. A broker
    rejection keeps its status code, with the raw body in ``details``.
    """
    try:
        body = await _read_body(request)

        fields = {
            "request_token": body.get("request_token"),
            "api_secret": body.get("api_secret"),
        }
        if settings.api_key_source == ApiKeySource.SERVER:
            fields["api_key"] = settings.kite_api_key
        else:
            fields["api_key"] = body.get("api_key")

        logger.info(
            "Received request: %s",
            {name: _describe(value) for name, value in fields.items()},
        )

        for name, label in _REQUIRED_FIELDS:
            if not fields[name]:
                return _error(status.HTTP_400_BAD_REQUEST, f"{label} is required")

        data = await exchange.exchange(
            api_key=fields["api_key"],
            request_token=fields["request_token"],
            api_secret=fields["api_secret"],
        )
        return JSONResponse(content=data)

    except BrokerRejectedError as e:
        return _error(
            e.status_code,
            f"Token exchange failed: {e.status_code}",
            details=e.body,
        )
    except Exception as e:
        logger.exception("Server error during token exchange")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            details=str(e) or type(e).__name__,
        )


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
