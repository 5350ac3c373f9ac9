"""Update dispatch: run the handler chain for one update."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from tapibot.context import UpdateContext
from tapibot.log_context import bind_update

if TYPE_CHECKING:
    from tapibot.api import TelegramApi
    from tapibot.shorthands import ShorthandRegistry

logger = logging.getLogger(__name__)

STOP = object()
"""Return this from a handler to skip the rest of the chain."""

UpdateHandler = Callable[[UpdateContext], Awaitable[Any]]

# (context, exception) -> None
ErrorHandler = Callable[[UpdateContext, Exception], Awaitable[None]]


class UpdateDispatcher:
    """Ordered chain of update handlers.

    Each handler receives the same :class:`UpdateContext`. A failing handler
    is logged and reported to the error handler; the exception never leaves
    :meth:`dispatch`, so one bad update cannot take down the listener.
    """

    def __init__(self, api: TelegramApi, shorthands: ShorthandRegistry) -> None:
        self._api = api
        self._shorthands = shorthands
        self._handlers: list[UpdateHandler] = []
        self._on_error: ErrorHandler | None = None

    @property
    def handlers(self) -> list[UpdateHandler]:
        return list(self._handlers)

    def add_handler(self, handler: UpdateHandler) -> UpdateHandler:
        """Append *handler* to the chain. Returns it, for decorator use."""
        self._handlers.append(handler)
        return handler

    def set_error_handler(self, handler: ErrorHandler) -> None:
        """Set the callback invoked when a handler raises."""
        self._on_error = handler

    async def dispatch(self, update: dict[str, Any]) -> UpdateContext:
        """Run all handlers for *update* in registration order."""
        ctx = UpdateContext(api=self._api, update=update, shorthands=self._shorthands)
        bind_update(ctx.update_id, ctx.chat_id)

        if not self._handlers:
            logger.debug("No update handlers registered, update dropped")
            return ctx

        for handler in self._handlers:
            try:
                result = await handler(ctx)
            except Exception as exc:
                logger.exception("Update handler %s failed", _handler_name(handler))
                await self._report(ctx, exc)
                break
            if result is STOP:
                break
        return ctx

    async def _report(self, ctx: UpdateContext, exc: Exception) -> None:
        if self._on_error is None:
            return
        try:
            await self._on_error(ctx, exc)
        except Exception:
            logger.exception("Update error handler failed")


def _handler_name(handler: UpdateHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
