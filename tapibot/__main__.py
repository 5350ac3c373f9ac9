"""Entry point: python -m tapibot."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tapibot.bot import Bot
from tapibot.config import BotConfig, load_config
from tapibot.errors import ApiError, ConfigError, ServerCloseError
from tapibot.logging_config import setup_logging
from tapibot.webhook.lifecycle import fetch_webhook_info

logger = logging.getLogger(__name__)

_console = Console()

CONFIG_ENV_VAR = "TAPIBOT_CONFIG"
DEFAULT_CONFIG_NAME = "tapibot.json"


# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------


def _option_value(args: list[str], name: str) -> str | None:
    """Return the value of ``--name VALUE`` or ``--name=VALUE``."""
    for i, arg in enumerate(args):
        if arg == name and i + 1 < len(args):
            return args[i + 1]
        if arg.startswith(f"{name}="):
            return arg.split("=", 1)[1]
    return None


def resolve_config_path(args: list[str]) -> Path | None:
    """``--config`` flag, then ``$TAPIBOT_CONFIG``, then ``./tapibot.json`` if present."""
    explicit = _option_value(args, "--config") or os.environ.get(CONFIG_ENV_VAR, "").strip()
    if explicit:
        return Path(explicit).expanduser()
    default = Path.cwd() / DEFAULT_CONFIG_NAME
    return default if default.is_file() else None


def _load(args: list[str]) -> BotConfig | None:
    try:
        return load_config(resolve_config_path(args))
    except ConfigError as exc:
        _console.print(f"[bold red]{exc}[/bold red]")
        return None


# ---------------------------------------------------------------------------
# Bot lifecycle
# ---------------------------------------------------------------------------


def _install_stop_signals(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is unavailable on Windows event loops
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)


async def _shutdown(bot: Bot) -> int:
    try:
        await bot.shutdown()
    except ApiError as exc:
        logger.error("Webhook deregistration failed: %s", exc)  # noqa: TRY400
        _console.print(
            "[bold red]Telegram still has the webhook registered; "
            "the listener was left open.[/bold red]"
        )
        return 1
    except ServerCloseError as exc:
        logger.error("Webhook listener did not close cleanly: %s", exc)  # noqa: TRY400
        _console.print("[bold red]Webhook removed, but the listener did not close cleanly.[/bold red]")
        return 1
    return 0


async def run_bot(config: BotConfig) -> int:
    """Run the bot until SIGINT/SIGTERM.

    Uses the webhook receiver when configured, long polling otherwise.
    Returns the process exit code.
    """
    bot = Bot(config)
    stop = asyncio.Event()
    _install_stop_signals(stop)

    if bot.webhook is not None:
        try:
            await bot.start_webhook()
        except ConfigError as exc:
            _console.print(f"[bold red]{exc}[/bold red]")
            await bot.api.close()
            return 1
        except ApiError as exc:
            logger.error("Webhook registration failed: %s", exc)  # noqa: TRY400
            await _shutdown(bot)
            return 1
        logger.info("Bot running (webhook), press Ctrl+C to stop")
        await stop.wait()
        return await _shutdown(bot)

    polling = asyncio.create_task(bot.run_polling())
    stopper = asyncio.create_task(stop.wait())
    try:
        await asyncio.wait({polling, stopper}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stopper.cancel()
        bot.stop_polling()
        polling.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await polling
    return await _shutdown(bot)


async def show_webhook_info(config: BotConfig) -> int:
    bot = Bot(config)
    try:
        info = await fetch_webhook_info(bot.api)
    except ApiError as exc:
        _console.print(f"[bold red]{exc}[/bold red]")
        return 1
    finally:
        await bot.api.close()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold green", min_width=24)
    table.add_column()
    table.add_row("URL", info.url or "[dim](none, long polling)[/dim]")
    table.add_row("Pending updates", str(info.pending_update_count))
    table.add_row("Max connections", str(info.max_connections or "-"))
    table.add_row("Allowed updates", ", ".join(info.allowed_updates) or "all")
    if info.ip_address:
        table.add_row("IP address", info.ip_address)
    if info.last_error_date:
        when = datetime.fromtimestamp(info.last_error_date, tz=UTC).isoformat()
        table.add_row("Last error", f"[red]{info.last_error_message or '?'}[/red] ({when})")
    _console.print(Panel(table, title="[bold]Webhook[/bold]", border_style="blue", padding=(1, 0)))
    return 0


async def delete_webhook(config: BotConfig, *, drop_pending: bool) -> int:
    bot = Bot(config)
    try:
        await bot.tapi("deleteWebhook", {"drop_pending_updates": drop_pending})
    except ApiError as exc:
        _console.print(f"[bold red]{exc}[/bold red]")
        return 1
    finally:
        await bot.api.close()
    _console.print("[green]Webhook deleted.[/green]")
    return 0


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _print_usage() -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold green", min_width=28)
    table.add_column()
    table.add_row("tapibot", "Run the bot (webhook if configured, else long polling)")
    table.add_row("tapibot info", "Show the webhook registered with Telegram")
    table.add_row("tapibot delete", "Remove the webhook registration")
    table.add_row("tapibot help", "Show this message")
    table.add_row("--config PATH", f"Config file (default ${CONFIG_ENV_VAR} or ./{DEFAULT_CONFIG_NAME})")
    table.add_row("--drop-pending", "With delete: drop queued updates")
    table.add_row("-v, --verbose", "Verbose logging output")
    _console.print(
        Panel(table, title="[bold]Commands[/bold]", border_style="blue", padding=(1, 0)),
    )


def _run(args: list[str], verbose: bool, command: str) -> int:
    setup_logging(verbose=verbose)
    config = _load(args)
    if config is None:
        return 1
    if not verbose:
        config_level = getattr(logging, config.log_level.upper(), logging.INFO)
        log_dir = Path(config.log_dir).expanduser() if config.log_dir else None
        if config_level != logging.INFO or log_dir is not None:
            setup_logging(level=config_level, log_dir=log_dir)
    if not config.telegram_token:
        _console.print("[bold yellow]telegram_token is not configured.[/bold yellow]")
        return 1

    if command == "info":
        return asyncio.run(show_webhook_info(config))
    if command == "delete":
        return asyncio.run(delete_webhook(config, drop_pending="--drop-pending" in args))
    return asyncio.run(run_bot(config))


_COMMANDS = ("help", "info", "delete", "run")


def main() -> None:
    """CLI entry point."""
    args = sys.argv[1:]
    config_value = _option_value(args, "--config")
    commands = [a for a in args if not a.startswith("-") and a != config_value]
    verbose = "--verbose" in args or "-v" in args

    if "--help" in args or "-h" in args:
        commands.insert(0, "help")

    action = next((c for c in commands if c in _COMMANDS), "run")
    if action == "help":
        _print_usage()
        return

    exit_code = _run(args, verbose, action)
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
