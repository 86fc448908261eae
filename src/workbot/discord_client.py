"""discord.py adapter: gateway events, guild roster and channel delivery."""

from __future__ import annotations

import logging
from typing import Mapping

import discord

from .config import WorkbotSettings
from .membership import RosterCandidate
from .monitor import ShiftMonitor, create_monitor
from .quotes import GeminiQuoteBackend, QuoteBackend
from .sessions import SignalReader, is_playing

logger = logging.getLogger(__name__)


class ChannelUnavailableError(RuntimeError):
    """Raised when the configured target channel cannot be used."""


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.members = True
    intents.presences = True
    return intents


class GuildRoster:
    """Roster source backed by the guild that owns the target channel."""

    def __init__(self, channel: discord.TextChannel) -> None:
        self._channel = channel

    def _can_view(self, member: discord.Member) -> bool:
        try:
            return bool(self._channel.permissions_for(member).view_channel)
        except Exception as exc:
            logger.warning(
                "Failed to check user permissions",
                extra={"user_id": str(member.id), "error": str(exc)},
            )
            return False

    async def fetch_roster(self) -> list[RosterCandidate]:
        guild = self._channel.guild
        logger.debug("Fetching guild members", extra={"guild_id": str(guild.id)})
        candidates: list[RosterCandidate] = []
        async for member in guild.fetch_members(limit=None):
            candidates.append(
                RosterCandidate(
                    user_id=str(member.id),
                    display_name=member.display_name,
                    is_bot=member.bot,
                    can_view_channel=False if member.bot else self._can_view(member),
                )
            )
        return candidates


class ChannelSink:
    """Deliver announcements to a text channel with all pings disabled."""

    def __init__(self, channel: discord.abc.Messageable) -> None:
        self._channel = channel

    async def send(self, content: str) -> None:
        await self._channel.send(content, allowed_mentions=discord.AllowedMentions.none())


def read_member_presence(guild: discord.Guild, activity_name: str) -> SignalReader:
    """Build the poll-path reader that checks cached member presences."""

    def _read(user_id: str) -> bool:
        member = guild.get_member(int(user_id))
        if member is None:
            return False
        return is_playing(member, activity_name)

    return _read


class WorkBot(discord.Client):
    """Discord client hosting the shift monitor."""

    def __init__(
        self,
        settings: WorkbotSettings,
        *,
        role_labels: Mapping[str, str] | None = None,
        quote_backend: QuoteBackend | None = None,
        **options,
    ) -> None:
        super().__init__(intents=build_intents(), **options)
        self.settings = settings
        self._role_labels = dict(role_labels or {})
        self._quote_backend = quote_backend
        self.monitor: ShiftMonitor | None = None
        self.target_channel: discord.TextChannel | None = None
        self.exit_code = 0
        self._initialized = False

    async def resolve_target_channel(self) -> discord.TextChannel:
        channel_id = int(self.settings.channel_id)
        channel = self.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.fetch_channel(channel_id)
            except discord.HTTPException as exc:
                raise ChannelUnavailableError(
                    f"Channel with ID {channel_id} not found or not accessible"
                ) from exc
        if not isinstance(channel, discord.TextChannel):
            raise ChannelUnavailableError(f"Channel {channel_id} is not a guild text channel")
        return channel

    def build_monitor(self, channel: discord.TextChannel) -> ShiftMonitor:
        settings = self.settings
        backend = self._quote_backend or GeminiQuoteBackend(
            settings.gemini_api_key.get_secret_value(), settings.gemini_model
        )
        return create_monitor(
            roster=GuildRoster(channel),
            sink=ChannelSink(channel),
            read_signal=read_member_presence(channel.guild, settings.activity_name),
            quote_backend=backend,
            role_labels=self._role_labels,
            activity_name=settings.activity_name,
            polling_interval=settings.polling_interval,
            member_check_interval=settings.member_check_interval,
            metrics_interval=settings.metrics_interval,
            max_cached_quotes=settings.max_cached_quotes,
            preload_count=settings.preload_quotes,
            roster_timeout=settings.roster_timeout,
            delivery_timeout=settings.delivery_timeout,
        )

    async def on_ready(self) -> None:
        logger.info(
            "WorkBot online",
            extra={"bot_user_id": str(self.user.id) if self.user else None},
        )
        # on_ready fires again after reconnects
        if self._initialized:
            return
        self._initialized = True

        try:
            channel = await self.resolve_target_channel()
        except ChannelUnavailableError as exc:
            logger.error("Failed to initialize bot", extra={"error": str(exc)})
            self.exit_code = 1
            await self.close()
            return

        self.target_channel = channel
        logger.info(
            "Target channel found",
            extra={"channel_id": str(channel.id), "guild_id": str(channel.guild.id)},
        )
        self.monitor = self.build_monitor(channel)
        await self.monitor.start()
        logger.info(
            "Bot initialization complete",
            extra={"monitored_users": len(self.monitor.tracker)},
        )

    async def on_presence_update(self, before: discord.Member, after: discord.Member) -> None:
        if self.monitor is not None:
            await self.monitor.handle_presence(after)

    async def on_disconnect(self) -> None:
        logger.warning("Disconnected from Discord")

    async def on_resumed(self) -> None:
        logger.info("Gateway session resumed")

    async def close(self) -> None:
        if self.monitor is not None:
            await self.monitor.stop()
        await super().close()


__all__ = [
    "ChannelSink",
    "ChannelUnavailableError",
    "GuildRoster",
    "WorkBot",
    "build_intents",
    "read_member_presence",
]
