"""Bot: API client, update dispatch, shorthands and optional webhook receiver."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tapibot.api import TelegramApi
from tapibot.dispatcher import ErrorHandler, UpdateDispatcher, UpdateHandler
from tapibot.errors import ApiError, ConfigError, LifecycleError
from tapibot.log_context import set_log_context
from tapibot.shorthands import DEFAULT_SHORTHANDS, Shorthand, ShorthandRegistry
from tapibot.webhook.lifecycle import WebhookLifecycle
from tapibot.webhook.models import RegistrationState
from tapibot.webhook.server import AiohttpListenerFactory

if TYPE_CHECKING:
    from tapibot.config import BotConfig, WebhookSettings
    from tapibot.webhook.lifecycle import ListenerFactory

logger = logging.getLogger(__name__)

MIN_BACKOFF = 1.0
MAX_BACKOFF = 30.0

_IDLE_STATES = frozenset({RegistrationState.UNREGISTERED, RegistrationState.CLOSED})


class Bot:
    """Telegram bot client.

    The webhook receiver is attached only when ``config.webhook`` is set;
    without it the bot can still call the API and long-poll for updates.
    """

    def __init__(
        self,
        config: BotConfig,
        *,
        api: TelegramApi | None = None,
        listener_factory: ListenerFactory | None = None,
    ) -> None:
        if not config.telegram_token:
            msg = "telegram_token is not configured"
            raise ConfigError(msg)
        self._config = config
        self.api = api or TelegramApi(
            config.telegram_token,
            base_url=config.api_base_url,
            timeout=config.request_timeout,
        )
        self.shorthands = ShorthandRegistry()
        self.shorthands.register_plugin(DEFAULT_SHORTHANDS)
        self.dispatcher = UpdateDispatcher(self.api, self.shorthands)

        self.webhook: WebhookLifecycle | None = None
        if config.webhook is not None:
            factory = listener_factory or AiohttpListenerFactory(
                host=config.webhook.host,
                max_body_bytes=config.webhook.max_body_bytes,
                drain_timeout=config.webhook.drain_timeout,
            )
            self.webhook = WebhookLifecycle(
                self.api,
                factory,
                self.dispatcher.dispatch,
                bot_token=config.telegram_token,
            )

        self._polling = False

    @property
    def config(self) -> BotConfig:
        return self._config

    @property
    def is_polling(self) -> bool:
        return self._polling

    # -- API --

    async def tapi(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Call any Bot API method by name."""
        return await self.api.call(method, payload)

    # -- Handlers & plugins --

    def on_update(self, handler: UpdateHandler) -> UpdateHandler:
        """Decorator: append *handler* to the update chain."""
        return self.dispatcher.add_handler(handler)

    def on_error(self, handler: ErrorHandler) -> ErrorHandler:
        """Decorator: set the callback for handler failures."""
        self.dispatcher.set_error_handler(handler)
        return handler

    def use(self, plugin: Mapping[str, Shorthand]) -> None:
        """Register a shorthand plugin. Raises DuplicateKeyError on name clashes."""
        self.shorthands.register_plugin(plugin)

    # -- Webhook --

    def _webhook(self) -> tuple[WebhookLifecycle, WebhookSettings]:
        if self.webhook is None or self._config.webhook is None:
            msg = "Webhook is not configured"
            raise ConfigError(msg)
        return self.webhook, self._config.webhook

    async def start_webhook(self) -> None:
        """Start the listener and register it with Telegram, in that order."""
        lifecycle, settings = self._webhook()
        if self._polling:
            msg = "Cannot start webhook while long polling is running"
            raise LifecycleError(msg)
        await lifecycle.start_and_register(
            settings.port,
            settings.url,
            settings.registration_options(),
        )

    async def stop_webhook(self) -> None:
        """Deregister the webhook, then drain and close the listener."""
        lifecycle, _ = self._webhook()
        await lifecycle.teardown()

    # -- Long polling --

    async def run_polling(self, *, allowed_updates: list[str] | None = None) -> None:
        """Fetch updates with ``getUpdates`` until :meth:`stop_polling` is called.

        Updates are dispatched one at a time, in order. API failures back off
        exponentially (honoring ``retry_after``) and never end the loop.
        """
        if self.webhook is not None and self.webhook.state not in _IDLE_STATES:
            msg = "Cannot long-poll while the webhook is active"
            raise LifecycleError(msg)

        self._polling = True
        offset: int | None = None
        backoff = MIN_BACKOFF
        logger.info("Long polling started")
        try:
            while self._polling:
                payload: dict[str, Any] = {"timeout": self._config.polling_timeout}
                if offset is not None:
                    payload["offset"] = offset
                if allowed_updates is not None:
                    payload["allowed_updates"] = allowed_updates

                try:
                    updates = await self.api.call("getUpdates", payload)
                except ApiError as exc:
                    delay = float(exc.retry_after) if exc.retry_after else backoff
                    logger.warning("getUpdates failed (%s), retrying in %.0fs", exc, delay)
                    await asyncio.sleep(delay)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                    continue
                backoff = MIN_BACKOFF

                for update in updates or []:
                    update_id = update.get("update_id")
                    if isinstance(update_id, int):
                        offset = update_id + 1
                    set_log_context(operation="poll")
                    await self.dispatcher.dispatch(update)
                    if not self._polling:
                        break
        finally:
            self._polling = False
            logger.info("Long polling stopped")

    def stop_polling(self) -> None:
        """Ask :meth:`run_polling` to return after the current update."""
        self._polling = False

    # -- Shutdown --

    async def shutdown(self) -> None:
        """Tear down an active webhook and close the HTTP session.

        Teardown errors propagate; the HTTP session is closed regardless.
        """
        self.stop_polling()
        try:
            if self.webhook is not None and self.webhook.state not in _IDLE_STATES:
                await self.webhook.teardown()
        finally:
            await self.api.close()
