"""Guild state aggregator: the heart of the exporter.

Keeps one mutable state per guild the bot is a member of and applies
normalized events to it. Every operation is synchronous: on the single
asyncio loop each call runs to completion before a scrape can read, so
readers never observe a half-applied mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .events import (
    BoostCountChanged,
    ChannelCreated,
    ChannelDeleted,
    GuildEvent,
    GuildFullState,
    GuildRemoved,
    MemberJoined,
    MemberLeft,
    MessageSent,
    PresenceChanged,
    VoiceStateChanged,
)


@dataclass
class GuildSnapshot:
    """Point-in-time copy of one guild's numeric state."""

    guild_id: int
    guild_name: str | None = None
    member_count: int = 0
    bot_count: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)
    voice_member_count: int = 0
    activity_count: int = 0
    boost_count: int = 0
    channel_count: int = 0
    messages_sent: int = 0
    emotes_used: int = 0
    known_member_ids: frozenset[int] = frozenset()


@dataclass
class GuildState:
    """Mutable per-guild state owned by the aggregator."""

    guild_id: int
    guild_name: str | None = None
    member_count: int = 0
    bot_count: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)
    voice_member_count: int = 0
    activity_count: int = 0
    boost_count: int = 0
    messages_sent: int = 0
    emotes_used: int = 0
    # member_id -> last known status (keys are the known members)
    member_statuses: dict[int, str | None] = field(default_factory=dict)
    voice_member_ids: set[int] = field(default_factory=set)
    channel_ids: set[int] = field(default_factory=set)

    def to_snapshot(self) -> GuildSnapshot:
        return GuildSnapshot(
            guild_id=self.guild_id,
            guild_name=self.guild_name,
            member_count=self.member_count,
            bot_count=self.bot_count,
            status_counts=dict(self.status_counts),
            voice_member_count=self.voice_member_count,
            activity_count=self.activity_count,
            boost_count=self.boost_count,
            channel_count=len(self.channel_ids),
            messages_sent=self.messages_sent,
            emotes_used=self.emotes_used,
            known_member_ids=frozenset(self.member_statuses),
        )


def _dec(value: int, amount: int = 1) -> int:
    """Subtract, flooring at zero."""
    return max(0, value - amount)


class GuildStateAggregator:
    """Owns the guild id → state mapping and every mutation of it."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("dcexport.aggregator")
        # Insertion-ordered: {guild_id: GuildState}
        self._guilds: dict[int, GuildState] = {}

    def __len__(self) -> int:
        return len(self._guilds)

    def __contains__(self, guild_id: object) -> bool:
        return guild_id in self._guilds

    def _get(self, guild_id: int, event: object) -> GuildState | None:
        state = self._guilds.get(guild_id)
        if state is None:
            self._logger.debug(
                "Dropping %s for unknown guild %s", type(event).__name__, guild_id,
            )
        return state

    # ══════════════════════════════════════════════════════════
    #  Guild lifecycle
    # ══════════════════════════════════════════════════════════

    def apply_full_state(self, event: GuildFullState) -> None:
        """Create or replace a guild's derived state.

        Lifetime counters of an existing guild are carried forward; every
        other field is taken from the event.
        """
        previous = self._guilds.get(event.guild_id)

        known = set(event.known_member_ids) | set(event.member_statuses)
        member_statuses: dict[int, str | None] = {
            member_id: event.member_statuses.get(member_id) for member_id in known
        }

        state = GuildState(
            guild_id=event.guild_id,
            guild_name=event.guild_name,
            member_count=max(0, event.member_count),
            bot_count=max(0, event.bot_count),
            status_counts={
                status: count
                for status, count in event.status_counts.items()
                if count >= 0
            },
            voice_member_count=max(0, event.voice_member_count),
            activity_count=max(0, event.activity_count),
            boost_count=max(0, event.boost_count),
            member_statuses=member_statuses,
            voice_member_ids=set(event.voice_member_ids),
            channel_ids=set(event.channel_ids),
        )
        if previous is not None:
            state.messages_sent = previous.messages_sent
            state.emotes_used = previous.emotes_used

        self._guilds[event.guild_id] = state
        self._logger.info(
            "%s guild %s: %d members, %d bots",
            "Resynchronized" if previous is not None else "Created",
            event.guild_id, state.member_count, state.bot_count,
        )

    def remove_guild(self, guild_id: int) -> bool:
        """Forget a guild entirely. Returns True if it was known."""
        removed = self._guilds.pop(guild_id, None)
        if removed is not None:
            self._logger.info("Removed guild %s", guild_id)
        return removed is not None

    # ══════════════════════════════════════════════════════════
    #  Incremental updates
    # ══════════════════════════════════════════════════════════

    def apply_member_joined(self, event: MemberJoined) -> None:
        state = self._get(event.guild_id, event)
        if state is None:
            return
        state.member_count += 1
        if event.is_bot:
            state.bot_count += 1

    def apply_member_left(self, event: MemberLeft) -> None:
        state = self._get(event.guild_id, event)
        if state is None:
            return
        state.member_count = _dec(state.member_count)
        if event.is_bot:
            state.bot_count = _dec(state.bot_count)

        known = event.member_id in state.member_statuses
        if known:
            status = state.member_statuses.pop(event.member_id) or event.last_known_status
            if status is not None and status in state.status_counts:
                state.status_counts[status] = _dec(state.status_counts[status])
            state.activity_count = _dec(
                state.activity_count, max(0, event.activity_contribution),
            )

        if event.member_id in state.voice_member_ids or (known and event.was_in_voice):
            state.voice_member_ids.discard(event.member_id)
            state.voice_member_count = _dec(state.voice_member_count)

    def apply_presence_changed(self, event: PresenceChanged) -> None:
        """Move one member between status buckets.

        Presence can arrive before the member join or after the leave, so an
        unknown member is only ever added, never decremented from a bucket.
        """
        state = self._get(event.guild_id, event)
        if state is None:
            return

        counts = state.status_counts
        if event.member_id in state.member_statuses:
            old = event.old_status or state.member_statuses[event.member_id]
            if old is not None and old in counts:
                counts[old] = _dec(counts[old])
        counts[event.new_status] = counts.get(event.new_status, 0) + 1
        state.member_statuses[event.member_id] = event.new_status

        state.activity_count = max(0, state.activity_count + event.activity_delta)

    def apply_voice_state_changed(self, event: VoiceStateChanged) -> None:
        state = self._get(event.guild_id, event)
        if state is None:
            return
        in_voice = event.member_id in state.voice_member_ids
        if event.now_in_voice and not in_voice:
            state.voice_member_ids.add(event.member_id)
            state.voice_member_count += 1
        elif not event.now_in_voice and in_voice:
            state.voice_member_ids.discard(event.member_id)
            state.voice_member_count = _dec(state.voice_member_count)

    def apply_boost_count_changed(self, event: BoostCountChanged) -> None:
        state = self._get(event.guild_id, event)
        if state is None:
            return
        state.boost_count = max(0, event.new_count)
        if event.guild_name is not None:
            state.guild_name = event.guild_name

    def apply_message_sent(self, event: MessageSent) -> None:
        state = self._get(event.guild_id, event)
        if state is None:
            return
        state.messages_sent += 1
        state.emotes_used += max(0, event.emote_count)

    def apply_channel_created(self, event: ChannelCreated) -> None:
        state = self._get(event.guild_id, event)
        if state is not None:
            state.channel_ids.add(event.channel_id)

    def apply_channel_deleted(self, event: ChannelDeleted) -> None:
        state = self._get(event.guild_id, event)
        if state is not None:
            state.channel_ids.discard(event.channel_id)

    def apply(self, event: GuildEvent) -> None:
        """Dispatch any normalized event to its operation."""
        if isinstance(event, GuildFullState):
            self.apply_full_state(event)
        elif isinstance(event, GuildRemoved):
            self.remove_guild(event.guild_id)
        elif isinstance(event, MemberJoined):
            self.apply_member_joined(event)
        elif isinstance(event, MemberLeft):
            self.apply_member_left(event)
        elif isinstance(event, PresenceChanged):
            self.apply_presence_changed(event)
        elif isinstance(event, VoiceStateChanged):
            self.apply_voice_state_changed(event)
        elif isinstance(event, BoostCountChanged):
            self.apply_boost_count_changed(event)
        elif isinstance(event, MessageSent):
            self.apply_message_sent(event)
        elif isinstance(event, ChannelCreated):
            self.apply_channel_created(event)
        elif isinstance(event, ChannelDeleted):
            self.apply_channel_deleted(event)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

    # ══════════════════════════════════════════════════════════
    #  Queries
    # ══════════════════════════════════════════════════════════

    def snapshot(self, guild_id: int) -> GuildSnapshot | None:
        """Return an independent copy of a guild's state, or None."""
        state = self._guilds.get(guild_id)
        return state.to_snapshot() if state is not None else None

    def all_snapshots(self) -> list[tuple[int, GuildSnapshot]]:
        """Copies of every guild, in the order guilds were first seen."""
        return [(guild_id, state.to_snapshot()) for guild_id, state in self._guilds.items()]

    def guild_ids(self) -> list[int]:
        return list(self._guilds)
