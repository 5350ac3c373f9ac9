"""Tests for the Telegram API client against a fake Bot API server."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tapibot.api import ApiResponse, TelegramApi
from tapibot.errors import ApiError

_TOKEN = "123456:ABC-secret"


class FakeTelegram:
    """Records requests and replies with canned envelopes per method."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.replies: dict[str, tuple[int, Any]] = {}

    async def handle(self, request: web.Request) -> web.StreamResponse:
        prefix = request.match_info["prefix"]
        method = request.match_info["method"]
        body = await request.json()
        self.requests.append((prefix, method, body))
        status, reply = self.replies.get(method, (200, {"ok": True, "result": True}))
        if isinstance(reply, str):
            return web.Response(status=status, text=reply, content_type="text/html")
        return web.json_response(reply, status=status)


@pytest.fixture
async def fake() -> AsyncIterator[tuple[FakeTelegram, TelegramApi]]:
    telegram = FakeTelegram()
    app = web.Application()
    app.router.add_post("/{prefix}/{method}", telegram.handle)
    server = TestServer(app)
    await server.start_server()
    api = TelegramApi(_TOKEN, base_url=str(server.make_url("/")), timeout=5)
    yield telegram, api
    await api.close()
    await server.close()


class TestCall:
    async def test_posts_json_to_method_url(self, fake: tuple[FakeTelegram, TelegramApi]) -> None:
        telegram, api = fake
        telegram.replies["sendMessage"] = (200, {"ok": True, "result": {"message_id": 5}})

        result = await api.call("sendMessage", {"chat_id": 1, "text": "hi"})

        assert result == {"message_id": 5}
        assert telegram.requests == [(f"bot{_TOKEN}", "sendMessage", {"chat_id": 1, "text": "hi"})]

    async def test_no_payload_sends_empty_object(
        self, fake: tuple[FakeTelegram, TelegramApi]
    ) -> None:
        telegram, api = fake
        await api.call("getMe")
        assert telegram.requests[0][2] == {}

    async def test_not_ok_raises_api_error(self, fake: tuple[FakeTelegram, TelegramApi]) -> None:
        telegram, api = fake
        telegram.replies["setWebhook"] = (
            400,
            {"ok": False, "error_code": 400, "description": "Bad Request: bad webhook"},
        )
        with pytest.raises(ApiError, match="bad webhook") as exc_info:
            await api.call("setWebhook", {"url": "https://example.com/x"})
        assert exc_info.value.method == "setWebhook"
        assert exc_info.value.error_code == 400

    async def test_retry_after_exposed(self, fake: tuple[FakeTelegram, TelegramApi]) -> None:
        telegram, api = fake
        telegram.replies["sendMessage"] = (
            429,
            {
                "ok": False,
                "error_code": 429,
                "description": "Too Many Requests: retry after 7",
                "parameters": {"retry_after": 7},
            },
        )
        with pytest.raises(ApiError) as exc_info:
            await api.call("sendMessage", {"chat_id": 1, "text": "x"})
        assert exc_info.value.retry_after == 7

    async def test_non_json_reply_raises(self, fake: tuple[FakeTelegram, TelegramApi]) -> None:
        telegram, api = fake
        telegram.replies["getMe"] = (502, "<html>Bad Gateway</html>")
        with pytest.raises(ApiError, match="not valid JSON"):
            await api.call("getMe")

    async def test_unexpected_shape_raises(self, fake: tuple[FakeTelegram, TelegramApi]) -> None:
        telegram, api = fake
        telegram.replies["getMe"] = (200, {"result": "no ok field"})
        with pytest.raises(ApiError, match="unexpected response shape"):
            await api.call("getMe")


class TestTransport:
    async def test_connection_error_raises_without_token(self) -> None:
        api = TelegramApi(_TOKEN, base_url="http://127.0.0.1:1", timeout=2)
        try:
            with pytest.raises(ApiError) as exc_info:
                await api.call("getMe")
        finally:
            await api.close()
        assert _TOKEN not in str(exc_info.value)
        assert exc_info.value.error_code is None

    async def test_close_is_idempotent(self) -> None:
        api = TelegramApi(_TOKEN)
        await api.close()
        await api.close()

    def test_token_property(self) -> None:
        assert TelegramApi(_TOKEN).token == _TOKEN


def test_api_response_model() -> None:
    resp = ApiResponse.model_validate(
        {"ok": False, "error_code": 429, "description": "x", "parameters": {"retry_after": 3}}
    )
    assert resp.parameters is not None
    assert resp.parameters.retry_after == 3
