"""tapibot: minimal Telegram Bot API client with an optional webhook receiver."""

from tapibot.api import TelegramApi
from tapibot.bot import Bot
from tapibot.config import BotConfig, WebhookSettings, load_config
from tapibot.context import UpdateContext
from tapibot.dispatcher import STOP, UpdateDispatcher
from tapibot.errors import (
    ApiError,
    ConfigError,
    DuplicateKeyError,
    LifecycleError,
    ServerCloseError,
    TapiBotError,
)
from tapibot.shorthands import ShorthandRegistry
from tapibot.webhook import RegistrationState, WebhookLifecycle

__all__ = [
    "STOP",
    "ApiError",
    "Bot",
    "BotConfig",
    "ConfigError",
    "DuplicateKeyError",
    "LifecycleError",
    "RegistrationState",
    "ServerCloseError",
    "ShorthandRegistry",
    "TapiBotError",
    "TelegramApi",
    "UpdateContext",
    "UpdateDispatcher",
    "WebhookLifecycle",
    "WebhookSettings",
    "load_config",
]
