"""Normalized guild events.

The gateway handler turns discord.py callbacks into these variants; the
aggregator only ever sees these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Union

STATUSES: tuple[str, ...] = ("online", "idle", "dnd", "offline")


@dataclass(frozen=True)
class GuildFullState:
    """Authoritative description of a guild, delivered on (re)connect."""

    guild_id: int
    member_count: int
    bot_count: int
    status_counts: Mapping[str, int]
    voice_member_count: int
    activity_count: int
    boost_count: int
    known_member_ids: frozenset[int] = frozenset()
    guild_name: str | None = None
    member_statuses: Mapping[int, str] = field(default_factory=dict)
    voice_member_ids: frozenset[int] = frozenset()
    channel_ids: frozenset[int] = frozenset()


@dataclass(frozen=True)
class GuildRemoved:
    guild_id: int


@dataclass(frozen=True)
class MemberJoined:
    guild_id: int
    is_bot: bool


@dataclass(frozen=True)
class MemberLeft:
    guild_id: int
    member_id: int
    is_bot: bool
    last_known_status: str | None = None
    was_in_voice: bool = False
    activity_contribution: int = 0


@dataclass(frozen=True)
class PresenceChanged:
    guild_id: int
    member_id: int
    new_status: str
    old_status: str | None = None
    activity_delta: int = 0


@dataclass(frozen=True)
class VoiceStateChanged:
    guild_id: int
    member_id: int
    now_in_voice: bool


@dataclass(frozen=True)
class BoostCountChanged:
    guild_id: int
    new_count: int
    guild_name: str | None = None


@dataclass(frozen=True)
class MessageSent:
    guild_id: int
    emote_count: int = 0


@dataclass(frozen=True)
class ChannelCreated:
    guild_id: int
    channel_id: int


@dataclass(frozen=True)
class ChannelDeleted:
    guild_id: int
    channel_id: int


GuildEvent = Union[
    GuildFullState,
    GuildRemoved,
    MemberJoined,
    MemberLeft,
    PresenceChanged,
    VoiceStateChanged,
    BoostCountChanged,
    MessageSent,
    ChannelCreated,
    ChannelDeleted,
]
