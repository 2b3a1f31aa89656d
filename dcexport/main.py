"""Service orchestrator: ExporterApp.

config → aggregator → coordinator/exporter → register handlers →
metrics server → connect → run.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import discord

from . import __version__
from .aggregator import GuildStateAggregator
from .config import ExporterConfig, load_config
from .exporter import SnapshotExporter
from .gateway import GatewayHandler, create_client
from .lifecycle import LifecycleCoordinator
from .metrics_server import MetricsServer
from .normalizer import EventNormalizer


class ExporterApp:
    """Top-level application orchestrator."""

    def __init__(
        self,
        config_path: str | None = None,
        config: ExporterConfig | None = None,
    ) -> None:
        self.config_path = Path(config_path) if config_path else None
        self.config: ExporterConfig | None = config
        self.logger = logging.getLogger("dcexport")

        # Components (initialized in start())
        self.aggregator: GuildStateAggregator | None = None
        self.coordinator: LifecycleCoordinator | None = None
        self.exporter: SnapshotExporter | None = None
        self.gateway: GatewayHandler | None = None
        self.metrics_server: MetricsServer | None = None
        self.client: discord.Client | None = None

        self._running = False
        self._stop_task: asyncio.Future[None] | None = None

    def build(self) -> None:
        """Load config and wire every component, without any I/O."""
        if self.config is None:
            self.config = load_config(str(self.config_path) if self.config_path else None)

        self.aggregator = GuildStateAggregator(logger=self.logger.getChild("aggregator"))
        self.coordinator = LifecycleCoordinator(
            self.aggregator, logger=self.logger.getChild("lifecycle"),
        )
        self.exporter = SnapshotExporter(self.aggregator, prefix=self.config.metrics.prefix)
        self.gateway = GatewayHandler(
            self.aggregator,
            self.coordinator,
            normalizer=EventNormalizer(),
            logger=self.logger.getChild("gateway"),
        )
        self.metrics_server = MetricsServer(
            self.exporter,
            config=self.config.metrics,
            coordinator=self.coordinator,
            gateway=self.gateway,
            logger=self.logger.getChild("metrics"),
        )

        if self.client is None:
            self.client = create_client(self.config.discord)
        self.gateway.register(self.client)

    async def start(self) -> None:
        """Start the exporter and block on the gateway connection."""
        self.logger.info("Starting dcexport v%s...", __version__)
        self.build()

        await self.metrics_server.start()

        self._running = True
        self.coordinator.on_connecting()
        self.logger.info("Connecting to Discord gateway")
        await self.client.start(self.config.discord.token)

    async def stop(self) -> None:
        """Gracefully shut down all components in reverse order.

        Concurrent callers (a signal handler and the CLI's ``finally``) all
        wait on the same shutdown, so none returns while it is still running.
        """
        if self._stop_task is None:
            if not self._running:
                return
            self._running = False
            self._stop_task = asyncio.ensure_future(self._shutdown())
        await self._stop_task

    async def _shutdown(self) -> None:
        self.logger.info("Shutting down dcexport...")

        if self.client is not None and not self.client.is_closed():
            await self.client.close()
        if self.coordinator is not None:
            self.coordinator.on_disconnected()
        if self.metrics_server is not None:
            await self.metrics_server.stop()

        self.logger.info("dcexport stopped.")
