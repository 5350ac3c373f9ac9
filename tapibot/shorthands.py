"""Shorthand registry: named helper methods available to update handlers.

A plugin is a mapping of shorthand name to provider. Providers are async
callables taking the :class:`~tapibot.context.UpdateContext` first, so
``await ctx.invoke("reply", "hi")`` calls ``reply(ctx, "hi")``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from tapibot.errors import DuplicateKeyError

if TYPE_CHECKING:
    from tapibot.context import UpdateContext

logger = logging.getLogger(__name__)

Shorthand = Callable[..., Awaitable[Any]]


class ShorthandRegistry:
    """Name -> provider table. A name can be claimed only once."""

    def __init__(self) -> None:
        self._providers: dict[str, Shorthand] = {}

    def register(self, name: str, provider: Shorthand) -> None:
        """Register one shorthand. Raises DuplicateKeyError if *name* is taken."""
        if name in self._providers:
            msg = f"Shorthand '{name}' is already registered"
            raise DuplicateKeyError(msg)
        self._providers[name] = provider
        logger.debug("Shorthand registered: %s", name)

    def register_plugin(self, plugin: Mapping[str, Shorthand]) -> None:
        """Register every shorthand of *plugin*, or none of them.

        All names are checked before the first insert, so a collision never
        leaves the registry half-updated.
        """
        clashes = sorted(name for name in plugin if name in self._providers)
        if clashes:
            msg = f"Shorthands already registered: {', '.join(clashes)}"
            raise DuplicateKeyError(msg)
        for name, provider in plugin.items():
            self.register(name, provider)

    def get(self, name: str) -> Shorthand:
        """Return the provider for *name*. Raises KeyError if unknown."""
        try:
            return self._providers[name]
        except KeyError:
            msg = f"Unknown shorthand '{name}'"
            raise KeyError(msg) from None

    def names(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)


# -- Built-in shorthands --


async def reply(ctx: UpdateContext, text: str, **extra: Any) -> Any:
    """Send *text* to the chat the current update came from."""
    chat_id = ctx.chat_id
    if chat_id is None:
        msg = "Update has no chat to reply to"
        raise ValueError(msg)
    return await ctx.tapi("sendMessage", {"chat_id": chat_id, "text": text, **extra})


async def answer_callback(ctx: UpdateContext, text: str | None = None, **extra: Any) -> Any:
    """Acknowledge the callback query carried by the current update."""
    query = ctx.update.get("callback_query")
    if not isinstance(query, dict):
        msg = "Update is not a callback query"
        raise ValueError(msg)
    query_id = query.get("id")
    if not isinstance(query_id, str) or not query_id:
        msg = "Callback query has no id"
        raise ValueError(msg)
    payload: dict[str, Any] = {"callback_query_id": query_id, **extra}
    if text is not None:
        payload["text"] = text
    return await ctx.tapi("answerCallbackQuery", payload)


DEFAULT_SHORTHANDS: dict[str, Shorthand] = {
    "reply": reply,
    "answer_callback": answer_callback,
}
