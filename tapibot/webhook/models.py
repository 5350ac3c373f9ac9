"""Webhook data models: registration state and Telegram's WebhookInfo."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field


class RegistrationState(Enum):
    """Lifecycle of the webhook listener and its remote registration."""

    UNREGISTERED = "unregistered"
    LISTENER_ACTIVE = "listener_active"
    REGISTERED = "registered"
    UNREGISTERING = "unregistering"
    CLOSED = "closed"


@dataclass(frozen=True)
class WebhookRegistration:
    """Effective registration computed from a base URL and options."""

    url: str  # base url + path, as sent to Telegram
    path: str
    options: dict[str, Any] = field(default_factory=dict)  # without "path"

    @property
    def listen_path(self) -> str:
        """HTTP path Telegram posts to, i.e. the path part of ``url``."""
        return urlsplit(self.url).path or "/"

    def payload(self) -> dict[str, Any]:
        """Request body for both ``setWebhook`` and ``deleteWebhook``."""
        return {"url": self.url, **self.options}


class WebhookInfo(BaseModel):
    """Result of ``getWebhookInfo``."""

    url: str = ""
    has_custom_certificate: bool = False
    pending_update_count: int = 0
    ip_address: str | None = None
    last_error_date: int | None = None
    last_error_message: str | None = None
    last_synchronization_error_date: int | None = None
    max_connections: int | None = None
    allowed_updates: list[str] = Field(default_factory=list)
