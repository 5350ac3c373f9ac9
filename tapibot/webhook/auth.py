"""Webhook request authentication."""

from __future__ import annotations

import hmac
import logging

logger = logging.getLogger(__name__)

SECRET_TOKEN_HEADER = "X-Telegram-Bot-Api-Secret-Token"  # noqa: S105


def validate_secret_token(header_value: str, expected_token: str) -> bool:
    """Check the ``X-Telegram-Bot-Api-Secret-Token`` header.

    Telegram sends this header on every delivery when ``secret_token`` was
    passed to ``setWebhook``. An empty *expected_token* disables the check.
    Uses constant-time comparison to prevent timing attacks.
    """
    if not expected_token:
        return True
    valid = hmac.compare_digest(header_value.encode(), expected_token.encode())
    if not valid:
        logger.warning("Auth failed: invalid secret token")
    return valid
