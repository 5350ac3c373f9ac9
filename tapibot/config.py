"""Bot configuration: pydantic models and JSON loading."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from tapibot.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.telegram.org"
DEFAULT_WEBHOOK_PORT = 3000
TOKEN_ENV_VAR = "TAPIBOT_TOKEN"


class WebhookSettings(BaseModel):
    """Settings for the built-in webhook receiver."""

    url: str
    path: str | None = None
    host: str = "0.0.0.0"  # noqa: S104
    port: int = DEFAULT_WEBHOOK_PORT
    options: dict[str, Any] = Field(default_factory=dict)
    drain_timeout: float = 30.0
    max_body_bytes: int = 1024 * 1024

    def registration_options(self) -> dict[str, Any]:
        """Options for ``setWebhook``, with ``path`` folded in when set."""
        options = dict(self.options)
        if self.path:
            options["path"] = self.path
        return options


class BotConfig(BaseModel):
    """Top-level configuration loaded from a JSON file."""

    telegram_token: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 60.0
    polling_timeout: int = 30
    log_level: str = "INFO"
    log_dir: str | None = None
    webhook: WebhookSettings | None = None


def load_config(config_path: Path | None = None) -> BotConfig:
    """Load the bot config.

    Resolution order:
    1. *config_path* (JSON), if given; missing keys take the model defaults
    2. ``TAPIBOT_TOKEN`` environment variable overrides ``telegram_token``

    Raises ConfigError when the file is unreadable, is not a JSON object,
    or fails validation.
    """
    data: dict[str, object] = {}
    if config_path is not None:
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            msg = f"Cannot read config at {config_path}: {exc}"
            raise ConfigError(msg) from exc
        if not isinstance(raw, dict):
            msg = f"Config at {config_path} must be a JSON object"
            raise ConfigError(msg)
        data = raw

    env_token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if env_token:
        data["telegram_token"] = env_token

    try:
        config = BotConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid config: {exc}"
        raise ConfigError(msg) from exc

    logger.info(
        "Config loaded (webhook=%s)",
        "enabled" if config.webhook is not None else "disabled",
    )
    return config
