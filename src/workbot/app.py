"""Process entry point for WorkBot."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from typing import Any, Callable, Mapping

import discord
from pydantic import ValidationError

from . import __version__
from .config import WorkbotSettings, get_settings
from .discord_client import WorkBot
from .logs import configure_logging
from .roles import RoleLabelError, resolve_role_labels

logger = logging.getLogger(__name__)

BotFactory = Callable[..., WorkBot]


def _request_shutdown(bot: WorkBot, reason: str, tasks: set[asyncio.Task[Any]]) -> None:
    logger.info("Shutting down gracefully", extra={"reason": reason})
    task = asyncio.get_running_loop().create_task(bot.close())
    tasks.add(task)
    task.add_done_callback(tasks.discard)


async def run_bot(
    settings: WorkbotSettings,
    role_labels: Mapping[str, str],
    *,
    bot_factory: BotFactory = WorkBot,
) -> int:
    """Run the bot until it is closed and return the process exit code."""

    bot = bot_factory(settings, role_labels=role_labels)
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[Any]] = set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(
                signum, _request_shutdown, bot, signal.Signals(signum).name, pending
            )

    def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        error = context.get("exception")
        logger.error(
            "Unhandled error in event loop",
            extra={"error": str(error) if error else context.get("message")},
        )
        bot.exit_code = 1
        if not bot.is_closed():
            _request_shutdown(bot, "unhandled-error", pending)

    loop.set_exception_handler(_handle_loop_exception)

    logger.info("Starting WorkBot", extra={"version": __version__})
    try:
        async with bot:
            await bot.start(settings.discord_token.get_secret_value())
    except discord.PrivilegedIntentsRequired:
        logger.error(
            "Bot failed to start due to missing privileged intents",
            extra={
                "solution": (
                    "Enable 'Server Members Intent' and 'Presence Intent' in the Discord "
                    "Developer Portal under Bot -> Privileged Gateway Intents"
                )
            },
        )
        return 1
    except discord.LoginFailure as exc:
        logger.error("Failed to start bot", extra={"error": str(exc)})
        return 1

    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    logger.info("WorkBot shutdown complete")
    return bot.exit_code


def main() -> None:
    """Entry point for running WorkBot via CLI."""

    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"Configuration invalid: {exc}", file=sys.stderr)
        raise SystemExit(1)

    configure_logging(settings.log_level)

    try:
        role_labels = resolve_role_labels(settings)
    except RoleLabelError as exc:
        logger.error("Invalid role label configuration", extra={"error": str(exc)})
        raise SystemExit(1)

    try:
        exit_code = asyncio.run(run_bot(settings, role_labels))
    except Exception:
        logger.exception("Unrecoverable error, exiting")
        raise SystemExit(1)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
