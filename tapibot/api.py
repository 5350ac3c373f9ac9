"""Telegram Bot API client: one pass-through ``call`` for every method."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
from pydantic import BaseModel, ValidationError

from tapibot.config import DEFAULT_API_BASE_URL
from tapibot.errors import ApiError

logger = logging.getLogger(__name__)


class ResponseParameters(BaseModel):
    """Extra error details Telegram attaches to some failures."""

    retry_after: int | None = None
    migrate_to_chat_id: int | None = None


class ApiResponse(BaseModel):
    """The ``{"ok": ..., "result": ...}`` envelope of every Bot API reply."""

    ok: bool
    result: Any = None
    description: str | None = None
    error_code: int | None = None
    parameters: ResponseParameters | None = None


class TelegramApi:
    """Thin async wrapper over ``POST {base}/bot{token}/{method}``.

    A single ``aiohttp.ClientSession`` is opened on first use and reused
    until :meth:`close`.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 60.0,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    @property
    def token(self) -> str:
        return self._token

    def _method_url(self, method: str) -> str:
        return f"{self._base_url}/bot{self._token}/{method}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Invoke *method* with *payload* and return the ``result`` field.

        Raises:
            ApiError: On transport failure, an undecodable reply, or ``ok: false``.
        """
        session = self._get_session()
        logger.debug("API call %s", method)
        try:
            async with session.post(self._method_url(method), json=payload or {}) as resp:
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError) as exc:
            # str(exc) may embed the request URL, which carries the token
            logger.warning("API call %s failed: %s", method, type(exc).__name__)
            raise ApiError(method, f"request failed: {type(exc).__name__}") from exc
        except ValueError as exc:
            raise ApiError(method, "response is not valid JSON") from exc

        try:
            envelope = ApiResponse.model_validate(body)
        except ValidationError as exc:
            raise ApiError(method, "unexpected response shape") from exc

        if not envelope.ok:
            retry_after = envelope.parameters.retry_after if envelope.parameters else None
            logger.warning(
                "API call %s rejected: %s (code=%s)",
                method,
                envelope.description,
                envelope.error_code,
            )
            raise ApiError(
                method,
                envelope.description or "unknown error",
                error_code=envelope.error_code,
                retry_after=retry_after,
            )
        return envelope.result

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
