"""Tests for the ExporterApp orchestrator and CLI entry point."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import yaml

from dcexport.__main__ import main_async, resolve_config_path
from dcexport.config import ExporterConfig
from dcexport.lifecycle import ConnectionState
from dcexport.main import ExporterApp


@pytest.fixture
def mock_client() -> MagicMock:
    """Return a mock discord.Client with async methods."""
    client = MagicMock()
    client.start = AsyncMock()
    client.close = AsyncMock()
    client.is_closed.return_value = False
    return client


@pytest.fixture
def app(sample_config: ExporterConfig, mock_client: MagicMock) -> ExporterApp:
    app = ExporterApp(config=sample_config)
    app.client = mock_client
    return app


class TestExporterApp:
    def test_build_wires_components(self, app: ExporterApp, mock_client: MagicMock):
        app.build()
        assert app.aggregator is not None
        assert app.exporter.aggregator is app.aggregator
        assert mock_client.event.call_count == len(app.gateway.EVENTS)

    async def test_start_and_stop(
        self, app: ExporterApp, mock_client: MagicMock, monkeypatch: pytest.MonkeyPatch,
    ):
        server = MagicMock()
        server.start = AsyncMock()
        server.stop = AsyncMock()
        monkeypatch.setattr("dcexport.main.MetricsServer", MagicMock(return_value=server))

        await app.start()
        server.start.assert_awaited_once()
        mock_client.start.assert_awaited_once_with("test-token")
        assert app.coordinator.state is ConnectionState.CONNECTING

        await app.stop()
        mock_client.close.assert_awaited_once()
        assert app.coordinator.state is ConnectionState.DISCONNECTED
        server.stop.assert_awaited_once()

        # Idempotent
        await app.stop()
        mock_client.close.assert_awaited_once()

    async def test_concurrent_stop_waits_for_shutdown(
        self, app: ExporterApp, mock_client: MagicMock, monkeypatch: pytest.MonkeyPatch,
    ):
        """A second stop() returns only once the first shutdown has finished."""
        release = asyncio.Event()

        async def slow_stop() -> None:
            await release.wait()

        server = MagicMock()
        server.start = AsyncMock()
        server.stop = AsyncMock(side_effect=slow_stop)
        monkeypatch.setattr("dcexport.main.MetricsServer", MagicMock(return_value=server))
        await app.start()

        from_signal = asyncio.ensure_future(app.stop())
        await asyncio.sleep(0)
        from_finally = asyncio.ensure_future(app.stop())
        for _ in range(3):
            await asyncio.sleep(0)
        assert not from_signal.done()
        assert not from_finally.done()

        release.set()
        await asyncio.gather(from_signal, from_finally)
        server.stop.assert_awaited_once()
        mock_client.close.assert_awaited_once()

    async def test_stop_before_start_is_noop(self, app: ExporterApp, mock_client: MagicMock):
        await app.stop()
        mock_client.close.assert_not_awaited()


class TestCli:
    def test_resolve_explicit_path(self):
        assert resolve_config_path("/some/config.yaml") == "/some/config.yaml"

    async def test_validate_config_ok(self, sample_config_dict: dict, tmp_path: Path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump(sample_config_dict))
        assert await main_async(["--config", str(config_path), "--validate-config"]) == 0

    async def test_log_level_alias_is_not_fatal(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("DCEXPORT_DISCORD_TOKEN", "tok")
        monkeypatch.setenv("DCEXPORT_LOG", "warn")
        monkeypatch.chdir(tmp_path)
        assert await main_async(["--validate-config"]) == 0

    async def test_missing_token_exits_nonzero(self, tmp_path: Path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("metrics:\n  port: 9100\n")
        assert await main_async(["--config", str(config_path)]) == 1

    async def test_login_failure_exits_nonzero(
        self, sample_config_dict: dict, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump(sample_config_dict))

        async def fail_start(self):
            raise discord.LoginFailure("Improper token has been passed.")

        stop = AsyncMock()
        monkeypatch.setattr(ExporterApp, "start", fail_start)
        monkeypatch.setattr(ExporterApp, "stop", stop)
        assert await main_async(["--config", str(config_path)]) == 1
        stop.assert_awaited_once()
