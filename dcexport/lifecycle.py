"""Lifecycle coordinator: gateway connection state and resynchronization.

Tracks DISCONNECTED → CONNECTING → SYNCHRONIZING → LIVE. A new gateway
session re-delivers every guild; guilds that were known before the session
started but are not re-delivered by the time it is ready get evicted.
Disconnects never evict: the next session replaces state in place.
"""

from __future__ import annotations

import logging
from enum import Enum

from .aggregator import GuildStateAggregator
from .events import GuildFullState, GuildRemoved


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SYNCHRONIZING = "synchronizing"
    LIVE = "live"


class LifecycleCoordinator:
    """Drives guild resync and eviction from connection signals."""

    def __init__(
        self,
        aggregator: GuildStateAggregator,
        logger: logging.Logger | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._logger = logger or logging.getLogger("dcexport.lifecycle")
        self._state = ConnectionState.DISCONNECTED

        # Guilds known when the current session started
        self._previous_guilds: set[int] = set()
        # Guilds delivered since the current session started
        self._synced_guilds: set[int] = set()
        # Set by a new session, cleared only once it is ready; survives
        # disconnect/resume cycles in between
        self._resync_pending = False

        self.sessions_started: int = 0
        self.resumes: int = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def resync_pending(self) -> bool:
        return self._resync_pending

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state is self._state:
            return
        self._logger.info("Gateway %s → %s", self._state.value, new_state.value)
        self._state = new_state

    # ── Connection signals ─────────────────────────────────

    def on_connecting(self) -> None:
        self._transition(ConnectionState.CONNECTING)

    def on_session_started(self) -> None:
        """A fresh session was established; full state for every guild follows."""
        self.sessions_started += 1
        self._previous_guilds = set(self._aggregator.guild_ids())
        self._synced_guilds = set()
        self._resync_pending = True
        self._transition(ConnectionState.SYNCHRONIZING)

    def on_sync_complete(self) -> list[int]:
        """All guilds of the session were delivered. Returns evicted guild ids."""
        evicted: list[int] = []
        if self._resync_pending:
            for guild_id in sorted(self._previous_guilds - self._synced_guilds):
                if self._aggregator.remove_guild(guild_id):
                    evicted.append(guild_id)
            if evicted:
                self._logger.info(
                    "Evicted %d guild(s) missing after resync: %s", len(evicted), evicted,
                )
        self._previous_guilds = set()
        self._synced_guilds = set()
        self._resync_pending = False
        self._transition(ConnectionState.LIVE)
        return evicted

    def on_resumed(self) -> None:
        """Session resumed; missed events were replayed.

        A resume never starts a resync, but one interrupted by the disconnect
        is still pending and continues until the session is ready.
        """
        self.resumes += 1
        if self._resync_pending:
            self._transition(ConnectionState.SYNCHRONIZING)
        else:
            self._transition(ConnectionState.LIVE)

    def on_disconnected(self) -> None:
        self._transition(ConnectionState.DISCONNECTED)

    # ── Guild signals ──────────────────────────────────────

    def on_full_state(self, event: GuildFullState) -> None:
        self._aggregator.apply_full_state(event)
        if self._resync_pending:
            self._synced_guilds.add(event.guild_id)

    def on_guild_removed(self, event: GuildRemoved) -> None:
        self._aggregator.remove_guild(event.guild_id)
        self._synced_guilds.discard(event.guild_id)
