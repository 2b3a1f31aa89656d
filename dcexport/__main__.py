"""CLI entry point for dcexport."""
import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import discord
from pydantic import ValidationError

from .config import load_config, normalize_log_level
from .main import ExporterApp


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="dcexport: Discord guild Prometheus exporter")
    parser.add_argument("--config", type=str, help="Path to config.yaml")
    parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Overrides logging.level and DCEXPORT_LOG",
    )
    parser.add_argument("--validate-config", action="store_true", help="Validate config and exit without starting")
    return parser.parse_args(argv)


def resolve_config_path(explicit: str | None) -> str | None:
    """--config, else the first existing default location, else env only."""
    if explicit:
        return explicit
    for candidate in ["/etc/dcexport/config.yaml", "./config.yaml"]:
        if Path(candidate).exists():
            return candidate
    return None


async def main_async(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level or normalize_log_level(os.environ.get("DCEXPORT_LOG") or "INFO"))
    logger = logging.getLogger("dcexport")

    config_path = resolve_config_path(args.config)
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        logger.error("Config validation failed: %s", e)
        return 1

    if args.log_level is None:
        logging.getLogger().setLevel(config.logging.level)

    if args.validate_config:
        logger.info("Config is valid.")
        return 0

    app = ExporterApp(config_path, config=config)

    # Signal handling (Unix only; Windows uses KeyboardInterrupt)
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(app.stop()))

    try:
        await app.start()
    except discord.LoginFailure as e:
        logger.error("Discord authentication failed: %s", e)
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()
    return 0


def main() -> None:
    """Sync entry point for pyproject.toml [project.scripts]."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
