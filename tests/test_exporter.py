"""Tests for dcexport.exporter module."""

from __future__ import annotations

from dcexport.aggregator import GuildStateAggregator
from dcexport.events import MessageSent
from dcexport.exporter import COUNTER, GAUGE, SnapshotExporter

from tests.conftest import G1, G2, make_full_state


def _by_name(samples, name):
    return [s for s in samples if s.name == name]


class TestCollect:
    def test_empty(self, exporter: SnapshotExporter):
        assert exporter.collect() == []

    def test_one_sample_per_metric_per_guild(
        self, exporter: SnapshotExporter, aggregator: GuildStateAggregator,
    ):
        aggregator.apply_full_state(make_full_state(G1, guild_name="One"))
        aggregator.apply_full_state(make_full_state(G2))
        aggregator.apply_message_sent(MessageSent(G1, emote_count=4))

        samples = exporter.collect()
        guilds = _by_name(samples, "guild")
        assert len(guilds) == 2
        assert {s.labels["guild_id"] for s in guilds} == {str(G1), str(G2)}
        assert all(s.value == 1 and s.kind == GAUGE for s in guilds)

        messages = {s.labels["guild_id"]: s for s in _by_name(samples, "message_sent")}
        assert messages[str(G1)].value == 1
        assert messages[str(G1)].kind == COUNTER
        assert messages[str(G2)].value == 0

        emotes = {s.labels["guild_id"]: s.value for s in _by_name(samples, "emote_used")}
        assert emotes == {str(G1): 4, str(G2): 0}

        for name in ("activity", "member", "bot", "member_voice", "boost", "channel"):
            assert len(_by_name(samples, name)) == 2

    def test_status_buckets_always_present(
        self, exporter: SnapshotExporter, aggregator: GuildStateAggregator,
    ):
        aggregator.apply_full_state(make_full_state(G1))
        statuses = {
            s.labels["status"]: s.value for s in _by_name(exporter.collect(), "member_status")
        }
        assert statuses == {"online": 5, "idle": 0, "dnd": 0, "offline": 5}


class TestRender:
    def test_empty_render_is_valid(self, exporter: SnapshotExporter):
        text = exporter.render()
        assert "# TYPE dcexport_guild gauge" in text
        assert "# TYPE dcexport_message_sent_total counter" in text
        assert not [line for line in text.splitlines() if line and not line.startswith("#")]
        assert text.endswith("\n")

    def test_render_samples(self, exporter: SnapshotExporter, aggregator: GuildStateAggregator):
        aggregator.apply_full_state(make_full_state(G1, guild_name='Say "hi"'))
        aggregator.apply_message_sent(MessageSent(G1, emote_count=2))
        lines = exporter.render().splitlines()

        assert f'dcexport_guild{{guild_id="{G1}",guild_name="Say \\"hi\\""}} 1' in lines
        assert f'dcexport_member{{guild_id="{G1}"}} 10' in lines
        assert f'dcexport_member_status{{guild_id="{G1}",status="online"}} 5' in lines
        assert f'dcexport_message_sent_total{{guild_id="{G1}"}} 1' in lines
        assert f'dcexport_emote_used_total{{guild_id="{G1}"}} 2' in lines

    def test_extra_lines_appended(self, exporter: SnapshotExporter):
        text = exporter.render(["dcexport_events_processed_total 3"])
        assert text.splitlines()[-1] == "dcexport_events_processed_total 3"

    def test_custom_prefix(self, aggregator: GuildStateAggregator):
        aggregator.apply_full_state(make_full_state(G1))
        text = SnapshotExporter(aggregator, prefix="discord").render()
        assert f'discord_boost{{guild_id="{G1}"}} 0' in text
