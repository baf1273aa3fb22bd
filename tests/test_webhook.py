"""
Unit tests for the WebhookNotifier.
"""

from __future__ import annotations

import json
import re
from datetime import datetime

import httpx
import pytest

from kiteauth.broker.types import AccessTokenResponse
from kiteauth.client.webhook import WebhookNotifier, build_payload


@pytest.fixture
def token_data(session_body):
    return AccessTokenResponse.model_validate(session_body)


def make_notifier(handler, url="http://hooks.test/webhook"):
    return WebhookNotifier(
        url=url,
        source="test-source",
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestPayload:
    def test_payload_fields(self, token_data):
        payload = build_payload(token_data, "zerodha-algo-app")

        assert set(payload) == {
            "access_token", "user_id", "user_name", "email", "broker",
            "login_time", "api_key", "public_token", "exchanges", "products",
            "order_types", "timestamp", "source",
        }
        assert payload["source"] == "zerodha-algo-app"
        assert payload["order_types"] == ["MARKET", "LIMIT", "SL", "SL-M"]

    def test_payload_excludes_enctoken(self, token_data):
        payload = build_payload(token_data, "x")
        assert "enctoken" not in payload
        assert "refresh_token" not in payload

    def test_timestamp_is_iso_utc_with_millis(self, token_data):
        raw = build_payload(token_data, "x")["timestamp"]
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", raw)
        ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        assert ts.utcoffset().total_seconds() == 0


class TestSend:
    @pytest.mark.asyncio
    async def test_success(self, token_data):
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(200)

        notifier = make_notifier(handler)
        assert await notifier.send(token_data) is True
        assert received[0].method == "POST"
        assert json.loads(received[0].content)["source"] == "test-source"

    @pytest.mark.asyncio
    async def test_non_2xx_returns_false(self, token_data):
        notifier = make_notifier(lambda request: httpx.Response(500))
        assert await notifier.send(token_data) is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self, token_data):
        def handler(request):
            raise httpx.ConnectError("down")

        notifier = make_notifier(handler)
        assert await notifier.send(token_data) is False

    @pytest.mark.asyncio
    async def test_disabled_without_url(self, token_data):
        calls = []
        notifier = make_notifier(lambda request: calls.append(request), url="")
        assert notifier.enabled is False
        assert await notifier.send(token_data) is False
        assert calls == []


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_runs_detached(self, token_data):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        notifier = make_notifier(handler)
        task = notifier.dispatch(token_data)

        assert task is not None
        await notifier.drain()
        assert task.result() is True
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_dispatch_without_url_returns_none(self, token_data):
        notifier = make_notifier(lambda request: httpx.Response(200), url="")
        assert notifier.dispatch(token_data) is None

    @pytest.mark.asyncio
    async def test_failed_task_is_logged_not_raised(self, token_data, caplog):
        notifier = make_notifier(lambda request: httpx.Response(200))

        async def boom(_):
            raise RuntimeError("exploded")

        notifier.send = boom
        notifier.dispatch(token_data)
        await notifier.drain()

        assert "exploded" in caplog.text
        assert not notifier._pending

    @pytest.mark.asyncio
    async def test_aclose_drains_pending(self, token_data):
        calls = []
        notifier = make_notifier(lambda request: calls.append(request) or httpx.Response(200))
        notifier.dispatch(token_data)
        await notifier.aclose()
        assert len(calls) == 1
