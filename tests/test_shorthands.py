"""Tests for the shorthand registry and built-in shorthands."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from tapibot.context import UpdateContext
from tapibot.errors import DuplicateKeyError
from tapibot.shorthands import DEFAULT_SHORTHANDS, ShorthandRegistry


async def _ping(ctx: UpdateContext) -> str:
    return "pong"


async def _echo(ctx: UpdateContext, value: Any) -> Any:
    return value


def _make_ctx(update: dict[str, Any], registry: ShorthandRegistry | None = None) -> UpdateContext:
    api = AsyncMock()
    api.call = AsyncMock(return_value={"message_id": 1})
    if registry is None:
        registry = ShorthandRegistry()
        registry.register_plugin(DEFAULT_SHORTHANDS)
    return UpdateContext(api=api, update=update, shorthands=registry)


class TestShorthandRegistry:
    def test_register_and_get(self) -> None:
        reg = ShorthandRegistry()
        reg.register("ping", _ping)
        assert reg.get("ping") is _ping
        assert "ping" in reg
        assert len(reg) == 1

    def test_duplicate_name_raises(self) -> None:
        reg = ShorthandRegistry()
        reg.register("ping", _ping)
        with pytest.raises(DuplicateKeyError, match="ping"):
            reg.register("ping", _echo)
        assert reg.get("ping") is _ping

    def test_plugin_registered_atomically(self) -> None:
        reg = ShorthandRegistry()
        reg.register("ping", _ping)
        with pytest.raises(DuplicateKeyError, match="ping"):
            reg.register_plugin({"echo": _echo, "ping": _echo})
        assert "echo" not in reg
        assert reg.names() == ["ping"]

    def test_plugins_with_distinct_names_merge(self) -> None:
        reg = ShorthandRegistry()
        reg.register_plugin({"ping": _ping})
        reg.register_plugin({"echo": _echo})
        assert reg.names() == ["echo", "ping"]
        assert sorted(reg) == ["echo", "ping"]

    def test_unknown_name_raises_key_error(self) -> None:
        with pytest.raises(KeyError, match="nope"):
            ShorthandRegistry().get("nope")


class TestBuiltinShorthands:
    async def test_reply_sends_to_update_chat(self) -> None:
        ctx = _make_ctx({"update_id": 1, "message": {"chat": {"id": 42}, "text": "hi"}})
        await ctx.invoke("reply", "hello", parse_mode="HTML")
        ctx.api.call.assert_awaited_once_with(
            "sendMessage", {"chat_id": 42, "text": "hello", "parse_mode": "HTML"}
        )

    async def test_reply_without_chat_raises(self) -> None:
        ctx = _make_ctx({"update_id": 1, "poll": {"id": "p"}})
        with pytest.raises(ValueError, match="no chat"):
            await ctx.invoke("reply", "hello")
        ctx.api.call.assert_not_awaited()

    async def test_answer_callback(self) -> None:
        ctx = _make_ctx(
            {
                "update_id": 2,
                "callback_query": {"id": "cb1", "message": {"chat": {"id": 7}}},
            }
        )
        await ctx.invoke("answer_callback", "done")
        ctx.api.call.assert_awaited_once_with(
            "answerCallbackQuery", {"callback_query_id": "cb1", "text": "done"}
        )

    async def test_answer_callback_requires_query(self) -> None:
        ctx = _make_ctx({"update_id": 3, "message": {"chat": {"id": 7}}})
        with pytest.raises(ValueError, match="callback query"):
            await ctx.invoke("answer_callback")

    async def test_answer_callback_without_id_raises_value_error(self) -> None:
        ctx = _make_ctx({"update_id": 1, "callback_query": {"data": "x"}})
        with pytest.raises(ValueError, match="no id"):
            await ctx.invoke("answer_callback")
        ctx.api.call.assert_not_awaited()

    async def test_custom_shorthand_gets_context(self) -> None:
        reg = ShorthandRegistry()
        reg.register("echo", _echo)
        ctx = _make_ctx({"update_id": 4}, reg)
        assert await ctx.invoke("echo", 99) == 99
