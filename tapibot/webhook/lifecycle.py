"""Webhook lifecycle: listener startup, Telegram registration, ordered teardown.

Startup order is listener first, then ``setWebhook``; Telegram must never
deliver to an address with nothing listening. Teardown is the reverse:
``deleteWebhook`` first, and only once that succeeded is the listener
drained and closed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol
from urllib.parse import urlsplit

from tapibot.errors import ConfigError, LifecycleError
from tapibot.webhook.models import RegistrationState, WebhookInfo, WebhookRegistration
from tapibot.webhook.server import RequestHandler

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000

_INVALID_URL_MSG = (
    "Invalid webhook URL, an https URL is required. "
    "See https://core.telegram.org/bots/api#setwebhook"
)


class ApiClient(Protocol):
    async def call(self, method: str, payload: dict[str, Any] | None = None) -> Any: ...


class ServerHandle(Protocol):
    async def close_gracefully(self) -> None: ...


class ListenerFactory(Protocol):
    async def create_listener(
        self,
        port: int,
        on_request: RequestHandler,
        *,
        path: str,
        secret_token: str = "",
    ) -> ServerHandle: ...


def validate_webhook_url(url: str) -> None:
    """Raise ConfigError unless *url* is a well-formed https URL."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
        _ = parts.port  # raises ValueError when out of range
    except ValueError as exc:
        raise ConfigError(_INVALID_URL_MSG) from exc
    if parts.scheme != "https" or not host:
        raise ConfigError(_INVALID_URL_MSG)


async def fetch_webhook_info(api: ApiClient) -> WebhookInfo:
    result = await api.call("getWebhookInfo", {})
    return WebhookInfo.model_validate(result or {})


def build_registration(
    url: str,
    options: Mapping[str, Any] | None,
    bot_token: str,
) -> WebhookRegistration:
    """Compute the effective webhook URL and the ``setWebhook`` options.

    The path is ``options["path"]`` when given, else the bot token, and is
    appended to *url* as is. ``path`` is dropped from the returned options;
    *options* itself is left untouched.
    """
    remaining = dict(options or {})
    path = remaining.pop("path", None) or bot_token
    return WebhookRegistration(url=url + path, path=path, options=remaining)


class WebhookLifecycle:
    """Owns one webhook listener and its registration with Telegram.

    Lifecycle operations are administrative and meant to be called in
    sequence by the owning process; a lock serializes them anyway.
    """

    def __init__(
        self,
        api: ApiClient,
        listener_factory: ListenerFactory,
        on_update: RequestHandler,
        *,
        bot_token: str,
    ) -> None:
        self._api = api
        self._listener_factory = listener_factory
        self._on_update = on_update
        self._bot_token = bot_token
        self._state = RegistrationState.UNREGISTERED
        self._server: ServerHandle | None = None
        self._registration: WebhookRegistration | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def registration(self) -> WebhookRegistration | None:
        return self._registration

    @property
    def server(self) -> ServerHandle | None:
        return self._server

    async def start(
        self,
        port: int,
        url: str,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Validate *url* and start the listener on *port*.

        Raises ConfigError before any I/O when *url* is not https.
        """
        async with self._lock:
            self._require(RegistrationState.UNREGISTERED, "start")
            validate_webhook_url(url)
            registration = build_registration(url, options, self._bot_token)
            secret = str(registration.options.get("secret_token") or "")

            self._server = await self._listener_factory.create_listener(
                port,
                self._on_update,
                path=registration.listen_path,
                secret_token=secret,
            )
            self._registration = registration
            self._state = RegistrationState.LISTENER_ACTIVE
            logger.info("Webhook listener active on port %d", port)

    async def register(self) -> None:
        """Register the webhook URL with Telegram via ``setWebhook``.

        On ApiError the listener keeps running and the state stays
        LISTENER_ACTIVE, so the call can be retried.
        """
        async with self._lock:
            self._require(RegistrationState.LISTENER_ACTIVE, "register")
            registration = self._registration
            assert registration is not None  # noqa: S101

            await self._api.call("setWebhook", registration.payload())
            self._state = RegistrationState.REGISTERED
            logger.info("Webhook registered with Telegram")

    async def start_and_register(
        self,
        port: int,
        url: str,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Start the listener, then register it. No rollback on registration failure."""
        await self.start(port, url, options)
        await self.register()

    async def teardown(self) -> None:
        """Deregister from Telegram, then drain and close the listener.

        Raises:
            ApiError: ``deleteWebhook`` failed; the listener is still open and
                the state is back to REGISTERED.
            ServerCloseError: deregistered, but the listener did not shut down
                cleanly; the state is CLOSED and the port must be treated as
                possibly still held.
        """
        async with self._lock:
            if self._state is RegistrationState.CLOSED:
                logger.debug("Webhook teardown skipped: already closed")
                return
            if self._state is RegistrationState.UNREGISTERED:
                msg = "Cannot tear down webhook: listener was never started"
                raise LifecycleError(msg)

            if self._state is RegistrationState.REGISTERED:
                await self._deregister()

            await self._close_listener()

    async def webhook_info(self) -> WebhookInfo:
        """Fetch the current registration from Telegram (``getWebhookInfo``)."""
        return await fetch_webhook_info(self._api)

    # -- Internals --

    async def _deregister(self) -> None:
        registration = self._registration
        assert registration is not None  # noqa: S101
        self._state = RegistrationState.UNREGISTERING
        try:
            await self._api.call("deleteWebhook", registration.payload())
        except BaseException:
            self._state = RegistrationState.REGISTERED
            logger.warning("Webhook deregistration failed, listener left open")
            raise
        logger.info("Webhook deregistered from Telegram")

    async def _close_listener(self) -> None:
        server, self._server = self._server, None
        self._state = RegistrationState.CLOSED
        if server is None:
            return
        await server.close_gracefully()
        logger.info("Webhook listener closed")

    def _require(self, expected: RegistrationState, operation: str) -> None:
        if self._state is not expected:
            msg = f"Cannot {operation} webhook in state {self._state.value}"
            raise LifecycleError(msg)
