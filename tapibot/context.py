"""Per-update handler context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tapibot.api import TelegramApi
    from tapibot.shorthands import ShorthandRegistry

# Update fields that carry a message-like object with a ``chat``.
_MESSAGE_KEYS = (
    "message",
    "edited_message",
    "channel_post",
    "edited_channel_post",
    "business_message",
)


@dataclass
class UpdateContext:
    """Everything a handler gets for one update.

    ``data`` is a scratch mapping shared by all handlers of the same update:
    an earlier handler stores values there for later ones to read.
    """

    api: TelegramApi
    update: dict[str, Any]
    shorthands: ShorthandRegistry
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def update_id(self) -> int | None:
        value = self.update.get("update_id")
        return value if isinstance(value, int) else None

    @property
    def message(self) -> dict[str, Any] | None:
        """The message-like object of this update, if any."""
        for key in _MESSAGE_KEYS:
            value = self.update.get(key)
            if isinstance(value, dict):
                return value
        query = self.update.get("callback_query")
        if isinstance(query, dict) and isinstance(query.get("message"), dict):
            return query["message"]
        return None

    @property
    def chat_id(self) -> int | None:
        message = self.message
        if message is None:
            return None
        chat = message.get("chat")
        if isinstance(chat, dict) and isinstance(chat.get("id"), int):
            return chat["id"]
        return None

    async def tapi(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Call any Bot API method."""
        return await self.api.call(method, payload)

    async def invoke(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Call the shorthand registered as *name* with this context."""
        provider = self.shorthands.get(name)
        return await provider(self, *args, **kwargs)
