"""Event normalizer: discord.py objects in, guild events out.

Every method is pure: it reads attributes off the gateway objects and
returns one event variant, or None when the callback is irrelevant to the
tracked metrics or the payload is malformed.
"""

from __future__ import annotations

import functools
import logging
from collections import Counter
from typing import Any, Callable, TypeVar

from .events import (
    BoostCountChanged,
    ChannelCreated,
    ChannelDeleted,
    GuildFullState,
    GuildRemoved,
    MemberJoined,
    MemberLeft,
    MessageSent,
    PresenceChanged,
    VoiceStateChanged,
)
from .utils import count_custom_emotes, normalize_status

logger = logging.getLogger("dcexport.normalizer")

T = TypeVar("T")


def _discard_malformed(func: Callable[..., T | None]) -> Callable[..., T | None]:
    """Turn attribute/type errors on malformed payloads into a discard."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T | None:
        try:
            return func(*args, **kwargs)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug("Discarding malformed %s payload: %s", func.__name__, exc)
            return None

    return wrapper


def _in_voice(voice_state: Any) -> bool:
    return voice_state is not None and getattr(voice_state, "channel", None) is not None


def _activity_count(member: Any) -> int:
    return len(getattr(member, "activities", None) or ())


class EventNormalizer:
    """Stateless translation of gateway callbacks into guild events."""

    @_discard_malformed
    def full_state(self, guild: Any) -> GuildFullState | None:
        if getattr(guild, "unavailable", False):
            return None

        members = list(guild.members or ())
        member_statuses: dict[int, str] = {}
        voice_ids: set[int] = set()
        activities = 0
        for member in members:
            status = normalize_status(getattr(member, "status", None))
            if status is not None:
                member_statuses[member.id] = status
            if _in_voice(getattr(member, "voice", None)):
                voice_ids.add(member.id)
            activities += _activity_count(member)

        member_count = guild.member_count
        if member_count is None:
            member_count = len(members)

        return GuildFullState(
            guild_id=int(guild.id),
            guild_name=getattr(guild, "name", None),
            member_count=int(member_count),
            bot_count=sum(1 for m in members if getattr(m, "bot", False)),
            status_counts=dict(Counter(member_statuses.values())),
            voice_member_count=len(voice_ids),
            activity_count=activities,
            boost_count=int(getattr(guild, "premium_subscription_count", None) or 0),
            known_member_ids=frozenset(member_statuses),
            member_statuses=member_statuses,
            voice_member_ids=frozenset(voice_ids),
            channel_ids=frozenset(int(c.id) for c in (getattr(guild, "channels", None) or ())),
        )

    @_discard_malformed
    def guild_removed(self, guild: Any) -> GuildRemoved | None:
        return GuildRemoved(guild_id=int(guild.id))

    @_discard_malformed
    def guild_updated(self, before: Any, after: Any) -> BoostCountChanged | None:
        old_boosts = getattr(before, "premium_subscription_count", None) or 0
        new_boosts = getattr(after, "premium_subscription_count", None) or 0
        old_name = getattr(before, "name", None)
        new_name = getattr(after, "name", None)
        if old_boosts == new_boosts and old_name == new_name:
            return None
        return BoostCountChanged(
            guild_id=int(after.id),
            new_count=int(new_boosts),
            guild_name=new_name,
        )

    @_discard_malformed
    def member_joined(self, member: Any) -> MemberJoined | None:
        return MemberJoined(
            guild_id=int(member.guild.id),
            is_bot=bool(member.bot),
        )

    @_discard_malformed
    def member_left(self, member: Any) -> MemberLeft | None:
        return MemberLeft(
            guild_id=int(member.guild.id),
            member_id=int(member.id),
            is_bot=bool(member.bot),
            last_known_status=normalize_status(getattr(member, "status", None)),
            was_in_voice=_in_voice(getattr(member, "voice", None)),
            activity_contribution=_activity_count(member),
        )

    @_discard_malformed
    def presence_changed(self, before: Any, after: Any) -> PresenceChanged | None:
        new_status = normalize_status(getattr(after, "status", None))
        if new_status is None:
            return None
        old_status = normalize_status(getattr(before, "status", None)) if before is not None else None
        before_activities = _activity_count(before) if before is not None else 0
        return PresenceChanged(
            guild_id=int(after.guild.id),
            member_id=int(after.id),
            new_status=new_status,
            old_status=old_status,
            activity_delta=_activity_count(after) - before_activities,
        )

    @_discard_malformed
    def voice_state_changed(self, member: Any, before: Any, after: Any) -> VoiceStateChanged | None:
        was_in, now_in = _in_voice(before), _in_voice(after)
        if was_in == now_in:
            # mute/deafen/stream toggles and channel moves
            return None
        return VoiceStateChanged(
            guild_id=int(member.guild.id),
            member_id=int(member.id),
            now_in_voice=now_in,
        )

    @_discard_malformed
    def message_sent(self, message: Any) -> MessageSent | None:
        guild = getattr(message, "guild", None)
        if guild is None:
            return None
        author = message.author
        if getattr(author, "bot", False) or getattr(author, "system", False):
            return None
        return MessageSent(
            guild_id=int(guild.id),
            emote_count=count_custom_emotes(getattr(message, "content", None)),
        )

    @_discard_malformed
    def channel_created(self, channel: Any) -> ChannelCreated | None:
        return ChannelCreated(guild_id=int(channel.guild.id), channel_id=int(channel.id))

    @_discard_malformed
    def channel_deleted(self, channel: Any) -> ChannelDeleted | None:
        return ChannelDeleted(guild_id=int(channel.guild.id), channel_id=int(channel.id))
