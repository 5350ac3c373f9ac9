"""Logging context: ContextVar-based log enrichment for update handling.

Every log record is enriched with a ``[op:chat:update]`` prefix via a
`ContextFilter` attached to the root logger handlers.

Operation codes: ``wh`` (webhook delivery), ``poll`` (long polling).
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

ctx_operation: ContextVar[str | None] = ContextVar("ctx_operation", default=None)
ctx_chat_id: ContextVar[int | None] = ContextVar("ctx_chat_id", default=None)
ctx_update_id: ContextVar[int | None] = ContextVar("ctx_update_id", default=None)


class ContextFilter(logging.Filter):
    """Inject ContextVar values into every LogRecord as ``record.ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        op = ctx_operation.get(None)
        chat = ctx_chat_id.get(None)
        update = ctx_update_id.get(None)
        parts: list[str] = []
        if op:
            parts.append(op)
        if chat is not None:
            parts.append(str(chat))
        if update is not None:
            parts.append(f"u{update}")
        record.ctx = f"[{':'.join(parts)}] " if parts else ""
        return True


def set_log_context(
    *,
    operation: str | None = None,
    chat_id: int | None = None,
    update_id: int | None = None,
) -> None:
    """Set logging context for the current asyncio task.

    aiohttp runs every request handler in its own task, so values set while
    handling one delivery never leak into another.
    """
    if operation is not None:
        ctx_operation.set(operation)
    if chat_id is not None:
        ctx_chat_id.set(chat_id)
    if update_id is not None:
        ctx_update_id.set(update_id)


def bind_update(update_id: int | None, chat_id: int | None) -> None:
    """Point the update and chat fields at the update being handled.

    Unlike :func:`set_log_context`, ``None`` clears a field. Long polling
    dispatches many updates in one task, and an update without a chat must not
    inherit the previous update's chat id.
    """
    ctx_update_id.set(update_id)
    ctx_chat_id.set(chat_id)
