"""Snapshot exporter: guild snapshots to Prometheus samples.

Reads copies from the aggregator and never holds on to them, so rendering
and the HTTP write happen without touching live state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .aggregator import GuildSnapshot, GuildStateAggregator
from .events import STATUSES
from .utils import escape_label_value

GAUGE = "gauge"
COUNTER = "counter"


@dataclass(frozen=True)
class MetricFamily:
    name: str
    kind: str
    help: str


@dataclass(frozen=True)
class Sample:
    name: str
    kind: str
    value: int
    labels: dict[str, str] = field(default_factory=dict)


# Exposition order; the metric names are relative to the prefix
FAMILIES: tuple[MetricFamily, ...] = (
    MetricFamily("guild", GAUGE, "The guilds handled by the exporter."),
    MetricFamily("channel", GAUGE, "The number of channels on the guild."),
    MetricFamily("boost", GAUGE, "The number of boosts active on the guild."),
    MetricFamily("member", GAUGE, "The number of members (including bots) on the guild."),
    MetricFamily("bot", GAUGE, "The number of bot members on the guild."),
    MetricFamily("member_status", GAUGE, "The number of members on the guild per status."),
    MetricFamily("member_voice", GAUGE, "The number of members in voice channels."),
    MetricFamily("message_sent", COUNTER, "The total number of messages sent by guild members."),
    MetricFamily("emote_used", COUNTER, "The total number of custom emotes used by guild members in messages."),
    MetricFamily("activity", GAUGE, "The number of current activities."),
)


class SnapshotExporter:
    """Turns aggregator snapshots into labeled samples and exposition text."""

    def __init__(self, aggregator: GuildStateAggregator, prefix: str = "dcexport") -> None:
        self._aggregator = aggregator
        self._prefix = prefix

    @property
    def aggregator(self) -> GuildStateAggregator:
        return self._aggregator

    def metric_name(self, name: str) -> str:
        """Prefix a metric name; an empty prefix leaves it bare."""
        return f"{self._prefix}_{name}" if self._prefix else name

    def _guild_samples(self, snap: GuildSnapshot) -> list[Sample]:
        labels = {"guild_id": str(snap.guild_id)}
        samples = [
            Sample("guild", GAUGE, 1, {**labels, "guild_name": snap.guild_name or ""}),
            Sample("channel", GAUGE, snap.channel_count, labels),
            Sample("boost", GAUGE, snap.boost_count, labels),
            Sample("member", GAUGE, snap.member_count, labels),
            Sample("bot", GAUGE, snap.bot_count, labels),
        ]
        # Fixed bucket set; absent buckets are exported as zero
        for status in STATUSES:
            samples.append(Sample(
                "member_status", GAUGE, snap.status_counts.get(status, 0),
                {**labels, "status": status},
            ))
        samples.extend([
            Sample("member_voice", GAUGE, snap.voice_member_count, labels),
            Sample("message_sent", COUNTER, snap.messages_sent, labels),
            Sample("emote_used", COUNTER, snap.emotes_used, labels),
            Sample("activity", GAUGE, snap.activity_count, labels),
        ])
        return samples

    def collect(self) -> list[Sample]:
        """One sample per metric per guild (names without prefix)."""
        samples: list[Sample] = []
        for _guild_id, snap in self._aggregator.all_snapshots():
            samples.extend(self._guild_samples(snap))
        return samples

    def render(self, extra_lines: list[str] | None = None) -> str:
        """Render the Prometheus text exposition format."""
        by_family: dict[str, list[Sample]] = {family.name: [] for family in FAMILIES}
        for sample in self.collect():
            by_family[sample.name].append(sample)

        lines: list[str] = []
        for family in FAMILIES:
            name = self.metric_name(family.name)
            if family.kind == COUNTER:
                name = f"{name}_total"
            lines.append(f"# HELP {name} {family.help}")
            lines.append(f"# TYPE {name} {family.kind}")
            for sample in by_family[family.name]:
                lines.append(f"{name}{_format_labels(sample.labels)} {sample.value}")

        if extra_lines:
            lines.extend(extra_lines)
        return "\n".join(lines) + "\n"


def _format_labels(labels: dict[str, str]) -> str:
    if not labels:
        return ""
    inner = ",".join(f'{key}="{escape_label_value(value)}"' for key, value in labels.items())
    return f"{{{inner}}}"
