"""Prometheus metrics server for dcexport.

Serves the guild export on ``/`` and the configured metrics path, plus a
JSON health endpoint, using aiohttp.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from aiohttp import web

from .config import MetricsConfig
from .exporter import SnapshotExporter

if TYPE_CHECKING:
    from .gateway import GatewayHandler
    from .lifecycle import LifecycleCoordinator

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class MetricsServer:
    """aiohttp endpoint exposing the current guild snapshots."""

    def __init__(
        self,
        exporter: SnapshotExporter,
        config: MetricsConfig | None = None,
        coordinator: LifecycleCoordinator | None = None,
        gateway: GatewayHandler | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._exporter = exporter
        self._config = config or MetricsConfig()
        self._coordinator = coordinator
        self._gateway = gateway
        self._logger = logger or logging.getLogger("dcexport.metrics")
        self._runner: web.AppRunner | None = None
        self._start_time = time.time()
        self.scrapes: int = 0

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_metrics)
        if self._config.metrics_path != "/":
            app.router.add_get(self._config.metrics_path, self._handle_metrics)
        app.router.add_get(self._config.health_path, self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        self._logger.info(
            "Metrics server listening on %s:%d", self._config.host, self._config.port,
        )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._logger.info("Metrics server stopped")

    def _service_metric_lines(self) -> list[str]:
        """Exporter self-metrics, appended after the guild families."""
        counters: list[tuple[str, int]] = []
        if self._gateway is not None:
            counters.append(("events_processed_total", self._gateway.events_processed))
            counters.append(("events_discarded_total", self._gateway.events_discarded))
        if self._coordinator is not None:
            counters.append(("gateway_sessions_total", self._coordinator.sessions_started))
            counters.append(("gateway_resumes_total", self._coordinator.resumes))

        lines: list[str] = []
        for name, value in counters:
            name = self._exporter.metric_name(name)
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
        return lines

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        self.scrapes += 1
        self._logger.debug("Handling metrics request")
        body = self._exporter.render(self._service_metric_lines())
        return web.Response(
            body=body.encode("utf-8"),
            headers={"Content-Type": CONTENT_TYPE},
        )

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "gateway": self._coordinator.state.value if self._coordinator else "unknown",
            "guilds": len(self._exporter.aggregator),
            "events_processed": self._gateway.events_processed if self._gateway else 0,
            "resumes": self._coordinator.resumes if self._coordinator else 0,
            "scrapes": self.scrapes,
            "uptime_seconds": round(time.time() - self._start_time, 1),
        })
