"""Project-level exception hierarchy."""

from __future__ import annotations


class TapiBotError(Exception):
    """Base for all tapibot exceptions."""


class ConfigError(TapiBotError):
    """Configuration is invalid (bad webhook URL, unreadable config file)."""


class ApiError(TapiBotError):
    """A Telegram Bot API call failed (transport error or ``ok: false``)."""

    def __init__(
        self,
        method: str,
        description: str,
        *,
        error_code: int | None = None,
        retry_after: int | None = None,
    ) -> None:
        self.method = method
        self.description = description
        self.error_code = error_code
        self.retry_after = retry_after
        code = f" [{error_code}]" if error_code is not None else ""
        super().__init__(f"{method}{code}: {description}")


class ServerCloseError(TapiBotError):
    """Webhook listener reported an error while shutting down."""


class LifecycleError(TapiBotError):
    """Webhook lifecycle operation called in the wrong state."""


class DuplicateKeyError(TapiBotError):
    """Two shorthand providers claimed the same name."""
