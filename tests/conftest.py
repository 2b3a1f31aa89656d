"""Shared test fixtures for dcexport."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import Any

import pytest

from dcexport.aggregator import GuildStateAggregator
from dcexport.config import ExporterConfig
from dcexport.events import GuildFullState
from dcexport.exporter import SnapshotExporter
from dcexport.gateway import GatewayHandler
from dcexport.lifecycle import LifecycleCoordinator
from dcexport.normalizer import EventNormalizer

G1 = 111111111111111111
G2 = 222222222222222222


# ── Config ──────────────────────────────────────────────────

def make_config_dict(**overrides) -> dict:
    """Build a valid config dict with sensible test defaults."""
    base = {
        "discord": {"token": "test-token"},
        "metrics": {"host": "127.0.0.1", "port": 9999, "prefix": "dcexport"},
        "logging": {"level": "DEBUG"},
    }
    base.update(overrides)
    return base


@pytest.fixture
def sample_config_dict() -> dict:
    return make_config_dict()


@pytest.fixture
def sample_config(sample_config_dict: dict) -> ExporterConfig:
    return ExporterConfig(**sample_config_dict)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DCEXPORT_* variables of the host out of the tests."""
    for name in (
        "DCEXPORT_DISCORD_TOKEN",
        "DCEXPORT_LOG",
        "DCEXPORT_METRICS_HOST",
        "DCEXPORT_METRICS_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


# ── Core components ─────────────────────────────────────────

@pytest.fixture
def aggregator() -> GuildStateAggregator:
    return GuildStateAggregator(logging.getLogger("test.aggregator"))


@pytest.fixture
def coordinator(aggregator: GuildStateAggregator) -> LifecycleCoordinator:
    return LifecycleCoordinator(aggregator, logging.getLogger("test.lifecycle"))


@pytest.fixture
def normalizer() -> EventNormalizer:
    return EventNormalizer()


@pytest.fixture
def exporter(aggregator: GuildStateAggregator) -> SnapshotExporter:
    return SnapshotExporter(aggregator, prefix="dcexport")


@pytest.fixture
def gateway(aggregator: GuildStateAggregator, coordinator: LifecycleCoordinator) -> GatewayHandler:
    return GatewayHandler(aggregator, coordinator, logger=logging.getLogger("test.gateway"))


def make_full_state(guild_id: int = G1, **overrides: Any) -> GuildFullState:
    """A GuildFullState for a 10-member guild."""
    fields: dict[str, Any] = {
        "guild_id": guild_id,
        "member_count": 10,
        "bot_count": 1,
        "status_counts": {"online": 5, "offline": 5},
        "voice_member_count": 2,
        "activity_count": 3,
        "boost_count": 0,
    }
    fields.update(overrides)
    return GuildFullState(**fields)


# ── Fake discord.py objects ─────────────────────────────────

def make_guild(
    guild_id: int = G1,
    members: list | None = None,
    name: str = "Test Guild",
    member_count: int | None = None,
    boosts: int | None = 0,
    channel_ids: tuple[int, ...] = (1, 2, 3),
    unavailable: bool = False,
) -> SimpleNamespace:
    members = members or []
    return SimpleNamespace(
        id=guild_id,
        name=name,
        members=members,
        member_count=len(members) if member_count is None else member_count,
        premium_subscription_count=boosts,
        channels=[SimpleNamespace(id=cid) for cid in channel_ids],
        unavailable=unavailable,
    )


def make_member(
    member_id: int,
    guild: Any = None,
    status: str = "online",
    bot: bool = False,
    activities: int = 0,
    in_voice: bool = False,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=member_id,
        guild=guild if guild is not None else SimpleNamespace(id=G1),
        status=status,
        bot=bot,
        activities=tuple(SimpleNamespace(name=f"game{i}") for i in range(activities)),
        voice=voice_state(in_voice) if in_voice else None,
    )


def voice_state(in_channel: bool) -> SimpleNamespace:
    return SimpleNamespace(channel=SimpleNamespace(id=42) if in_channel else None)


def make_message(
    content: str = "hello",
    guild_id: int | None = G1,
    bot: bool = False,
    system: bool = False,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=1,
        content=content,
        guild=SimpleNamespace(id=guild_id) if guild_id is not None else None,
        author=SimpleNamespace(id=7, bot=bot, system=system),
    )
