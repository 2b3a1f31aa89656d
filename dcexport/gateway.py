"""Gateway handler: discord.py callbacks wired to the aggregator.

Each callback normalizes its payload and applies it before its first
``await``, so events for a guild land in the order the gateway delivered them.
"""

from __future__ import annotations

import logging
from typing import Any

import discord

from .aggregator import GuildStateAggregator
from .config import DiscordConfig
from .events import GuildEvent
from .lifecycle import LifecycleCoordinator
from .normalizer import EventNormalizer


def build_intents(config: DiscordConfig) -> discord.Intents:
    """Intents needed for member, presence, voice and message tracking."""
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True
    intents.voice_states = True
    intents.members = config.intents_members
    intents.presences = config.intents_presences
    return intents


def create_client(config: DiscordConfig) -> discord.Client:
    return discord.Client(intents=build_intents(config))


class GatewayHandler:
    """Routes discord.py events to the normalizer, coordinator and aggregator."""

    EVENTS: tuple[str, ...] = (
        "on_connect",
        "on_ready",
        "on_resumed",
        "on_disconnect",
        "on_guild_available",
        "on_guild_join",
        "on_guild_unavailable",
        "on_guild_remove",
        "on_guild_update",
        "on_member_join",
        "on_member_remove",
        "on_presence_update",
        "on_voice_state_update",
        "on_message",
        "on_guild_channel_create",
        "on_guild_channel_delete",
    )

    def __init__(
        self,
        aggregator: GuildStateAggregator,
        coordinator: LifecycleCoordinator,
        normalizer: EventNormalizer | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._coordinator = coordinator
        self._normalizer = normalizer or EventNormalizer()
        self._logger = logger or logging.getLogger("dcexport.gateway")

        # Counters (for metrics)
        self.events_processed: int = 0
        self.events_discarded: int = 0

    def register(self, client: discord.Client) -> None:
        """Attach every handler method as a client event."""
        for name in self.EVENTS:
            client.event(getattr(self, name))

    def _apply(self, event: GuildEvent | None, kind: str) -> None:
        if event is None:
            self.events_discarded += 1
            return
        self.events_processed += 1
        self._aggregator.apply(event)
        self._logger.debug("%s: %s", kind, event)

    def _full_state(self, guild: Any, kind: str) -> None:
        event = self._normalizer.full_state(guild)
        if event is None:
            self.events_discarded += 1
            return
        self.events_processed += 1
        self._logger.debug("%s: guild %s", kind, event.guild_id)
        self._coordinator.on_full_state(event)

    def _removed(self, guild: Any, kind: str) -> None:
        event = self._normalizer.guild_removed(guild)
        if event is None:
            self.events_discarded += 1
            return
        self.events_processed += 1
        self._logger.info("%s: guild %s", kind, event.guild_id)
        self._coordinator.on_guild_removed(event)

    # ── Connection lifecycle ───────────────────────────────

    async def on_connect(self) -> None:
        try:
            self._coordinator.on_session_started()
        except Exception:
            self._logger.exception("connect handler error")

    async def on_ready(self) -> None:
        try:
            self._coordinator.on_sync_complete()
            self._logger.info("Gateway ready: tracking %d guild(s)", len(self._aggregator))
        except Exception:
            self._logger.exception("ready handler error")

    async def on_resumed(self) -> None:
        try:
            self._coordinator.on_resumed()
        except Exception:
            self._logger.exception("resumed handler error")

    async def on_disconnect(self) -> None:
        try:
            self._coordinator.on_disconnected()
        except Exception:
            self._logger.exception("disconnect handler error")

    # ── Guild lifecycle ────────────────────────────────────

    async def on_guild_available(self, guild: discord.Guild) -> None:
        try:
            self._full_state(guild, "Guild available")
        except Exception:
            self._logger.exception("guild_available handler error for %s", getattr(guild, "id", "?"))

    async def on_guild_join(self, guild: discord.Guild) -> None:
        try:
            self._full_state(guild, "Guild join")
        except Exception:
            self._logger.exception("guild_join handler error for %s", getattr(guild, "id", "?"))

    async def on_guild_unavailable(self, guild: discord.Guild) -> None:
        try:
            self._removed(guild, "Guild unavailable")
        except Exception:
            self._logger.exception("guild_unavailable handler error for %s", getattr(guild, "id", "?"))

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        try:
            self._removed(guild, "Guild remove")
        except Exception:
            self._logger.exception("guild_remove handler error for %s", getattr(guild, "id", "?"))

    async def on_guild_update(self, before: discord.Guild, after: discord.Guild) -> None:
        try:
            self._apply(self._normalizer.guild_updated(before, after), "Guild update")
        except Exception:
            self._logger.exception("guild_update handler error for %s", getattr(after, "id", "?"))

    # ── Members & presence ─────────────────────────────────

    async def on_member_join(self, member: discord.Member) -> None:
        try:
            self._apply(self._normalizer.member_joined(member), "Member join")
        except Exception:
            self._logger.exception("member_join handler error for %s", getattr(member, "id", "?"))

    async def on_member_remove(self, member: discord.Member) -> None:
        try:
            self._apply(self._normalizer.member_left(member), "Member remove")
        except Exception:
            self._logger.exception("member_remove handler error for %s", getattr(member, "id", "?"))

    async def on_presence_update(self, before: discord.Member, after: discord.Member) -> None:
        try:
            self._apply(self._normalizer.presence_changed(before, after), "Presence update")
        except Exception:
            self._logger.exception("presence_update handler error for %s", getattr(after, "id", "?"))

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            self._apply(
                self._normalizer.voice_state_changed(member, before, after),
                "Voice state update",
            )
        except Exception:
            self._logger.exception("voice_state_update handler error for %s", getattr(member, "id", "?"))

    # ── Activity ───────────────────────────────────────────

    async def on_message(self, message: discord.Message) -> None:
        try:
            self._apply(self._normalizer.message_sent(message), "Message")
        except Exception:
            self._logger.exception("message handler error for %s", getattr(message, "id", "?"))

    async def on_guild_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        try:
            self._apply(self._normalizer.channel_created(channel), "Channel create")
        except Exception:
            self._logger.exception("channel_create handler error for %s", getattr(channel, "id", "?"))

    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        try:
            self._apply(self._normalizer.channel_deleted(channel), "Channel delete")
        except Exception:
            self._logger.exception("channel_delete handler error for %s", getattr(channel, "id", "?"))
