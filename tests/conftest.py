"""Shared fixtures: a sample Kite session and a fake broker endpoint."""

from __future__ import annotations

import copy
from urllib.parse import parse_qs

import httpx
import pytest

from kiteauth.broker.token_exchange import KiteTokenExchange
from kiteauth.config import ApiKeySource, settings
from kiteauth.services.proxy.main import app, get_token_exchange

SESSION_BODY = {
    "status": "success",
    "data": {
        "user_type": "individual",
        "email": "xxxyyy@gmail.com",
        "user_name": "Kite Connect",
        "user_shortname": "Connect",
        "broker": "ZERODHA",
        "exchanges": ["NSE", "NFO", "BSE"],
        "products": ["CNC", "NRML", "MIS"],
        "order_types": ["MARKET", "LIMIT", "SL", "SL-M"],
        "avatar_url": None,
        "user_id": "XX0000",
        "api_key": "key1",
        "access_token": "XXXXXX",
        "public_token": "pub_tok",
        "enctoken": "enc_tok",
        "refresh_token": "",
        "login_time": "2021-01-01 16:15:14",
        "meta": {"demat_consent": "physical"},
    },
}


class FakeBroker:
    """Stands in for ``api.kite.trade``; records every request it receives."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict | str = copy.deepcopy(SESSION_BODY)
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, str):
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(self.status_code, json=self.body)

    def form(self, index: int = -1) -> dict[str, str]:
        raw = parse_qs(self.calls[index].content.decode())
        return {k: v[0] for k, v in raw.items()}

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def session_body():
    return copy.deepcopy(SESSION_BODY)


@pytest.fixture
def fake_broker():
    return FakeBroker()


@pytest.fixture
def wired(fake_broker, monkeypatch):
    """Proxy app runs in-process with the broker faked; callers send api_key."""

    async def _override():
        exchange = KiteTokenExchange(http=fake_broker.client())
        try:
            yield exchange
        finally:
            await exchange.close()

    monkeypatch.setattr(settings, "api_key_source", ApiKeySource.REQUEST)
    app.dependency_overrides[get_token_exchange] = _override
    yield fake_broker
    app.dependency_overrides.clear()
