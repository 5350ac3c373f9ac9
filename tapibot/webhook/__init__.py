"""Webhook receiver: aiohttp listener plus ordered Telegram registration."""

from tapibot.webhook.lifecycle import WebhookLifecycle, build_registration, validate_webhook_url
from tapibot.webhook.models import RegistrationState, WebhookInfo, WebhookRegistration
from tapibot.webhook.server import AiohttpListenerFactory, WebhookServer

__all__ = [
    "AiohttpListenerFactory",
    "RegistrationState",
    "WebhookInfo",
    "WebhookLifecycle",
    "WebhookRegistration",
    "WebhookServer",
    "build_registration",
    "validate_webhook_url",
]
