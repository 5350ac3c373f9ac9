"""Webhook HTTP server: aiohttp-based receiver for Telegram updates."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from tapibot.errors import ServerCloseError
from tapibot.log_context import set_log_context
from tapibot.webhook.auth import SECRET_TOKEN_HEADER, validate_secret_token

logger = logging.getLogger(__name__)

# Called with each decoded update; the result is not inspected.
RequestHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class WebhookServer:
    """HTTP listener accepting Telegram webhook deliveries.

    Routes:
    - ``GET  /health`` -- Health check for tunnel/proxy monitoring.
    - ``POST /<path>`` -- Update delivery. The body is decoded and awaited
      through the request handler before the response is sent, so graceful
      close drains every accepted delivery.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        host: str,
        port: int,
        path: str,
        on_request: RequestHandler,
        secret_token: str = "",
        max_body_bytes: int = 1024 * 1024,
        drain_timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._route = "/" + path.lstrip("/")
        self._on_request = on_request
        self._secret_token = secret_token
        self._max_body_bytes = max_body_bytes
        self._drain_timeout = drain_timeout
        self._runner: web.AppRunner | None = None
        self._closed = False
        self._in_flight = 0
        self._abandoned = 0

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def bound_port(self) -> int | None:
        """Actual listening port (differs from the configured one when that is 0)."""
        if self._runner is None:
            return None
        for address in self._runner.addresses:
            if isinstance(address, tuple) and len(address) >= 2:  # noqa: PLR2004
                return int(address[1])
        return None

    def build_app(self) -> web.Application:
        app = web.Application(client_max_size=self._max_body_bytes)
        app.router.add_get("/health", self._handle_health)
        app.router.add_post(self._route, self._handle_update)
        return app

    async def start(self) -> None:
        """Create the aiohttp app and start listening."""
        if self._closed:
            msg = "Webhook server was already closed"
            raise RuntimeError(msg)
        runner = web.AppRunner(
            self.build_app(),
            access_log=None,
            shutdown_timeout=self._drain_timeout,
        )
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        logger.info("Webhook server listening on %s:%s", self._host, self.bound_port)

    async def close_gracefully(self) -> None:
        """Stop accepting connections, drain in-flight deliveries, release the port.

        May be called once. Raises ServerCloseError when shutdown fails or
        deliveries are still unfinished after ``drain_timeout``.
        """
        if self._closed or self._runner is None:
            msg = "Webhook server is not running"
            raise ServerCloseError(msg)
        self._closed = True
        runner, self._runner = self._runner, None
        pending = self._in_flight
        if pending:
            logger.info("Draining %d in-flight webhook request(s)", pending)

        try:
            await runner.cleanup()
        except (OSError, RuntimeError) as exc:
            msg = f"Webhook server shutdown failed: {exc}"
            raise ServerCloseError(msg) from exc

        stuck = self._abandoned + self._in_flight
        if stuck:
            msg = (
                f"{stuck} webhook request(s) did not finish within "
                f"{self._drain_timeout:.1f}s drain timeout"
            )
            raise ServerCloseError(msg)
        logger.info("Webhook server stopped")

    # -- Handlers --

    async def _handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_update(self, request: web.Request) -> web.Response:
        set_log_context(operation="wh")

        secret = request.headers.get(SECRET_TOKEN_HEADER, "")
        if not validate_secret_token(secret, self._secret_token):
            return web.json_response({"error": "unauthorized"}, status=401)

        if request.content_type != "application/json":
            logger.warning("Webhook rejected: bad content-type %s", request.content_type)
            return web.json_response({"error": "content_type_must_be_json"}, status=415)

        raw_body = await request.read()
        try:
            update: Any = json.loads(raw_body)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Webhook rejected: invalid JSON")
            return web.json_response({"error": "invalid_json"}, status=400)

        if not isinstance(update, dict):
            logger.warning("Webhook rejected: body not object")
            return web.json_response({"error": "body_must_be_object"}, status=400)

        self._in_flight += 1
        try:
            await self._on_request(update)
        except asyncio.CancelledError:
            self._abandoned += 1
            raise
        except Exception:
            logger.exception("Webhook update handler failed")
        finally:
            self._in_flight -= 1

        return web.json_response({"ok": True})


class AiohttpListenerFactory:
    """Creates started :class:`WebhookServer` instances."""

    def __init__(
        self,
        *,
        host: str = "0.0.0.0",  # noqa: S104
        max_body_bytes: int = 1024 * 1024,
        drain_timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._max_body_bytes = max_body_bytes
        self._drain_timeout = drain_timeout

    async def create_listener(
        self,
        port: int,
        on_request: RequestHandler,
        *,
        path: str,
        secret_token: str = "",
    ) -> WebhookServer:
        """Start a listener on *port* and return it once it accepts connections."""
        server = WebhookServer(
            host=self._host,
            port=port,
            path=path,
            on_request=on_request,
            secret_token=secret_token,
            max_body_bytes=self._max_body_bytes,
            drain_timeout=self._drain_timeout,
        )
        await server.start()
        return server
