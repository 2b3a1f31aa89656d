"""Configuration system for dcexport.

Pydantic models with sensible defaults, loaded from an optional YAML file
and overridden by ``DCEXPORT_*`` environment variables. Only the Discord
token is required.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


class DiscordConfig(BaseModel):
    token: str = Field(min_length=1, description="Bot token used to log in to the gateway")
    # Presence and member intents are privileged; both are needed for status/bot counts
    intents_presences: bool = True
    intents_members: bool = True


class MetricsConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=0, le=65535)
    prefix: str = "dcexport"
    metrics_path: str = "/metrics"
    health_path: str = "/health"


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class ExporterConfig(BaseModel):
    """Top-level exporter config."""

    discord: DiscordConfig
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ═══════════════════════════════════════════════════════════════
#  Config Loading
# ═══════════════════════════════════════════════════════════════

# Level names accepted from DCEXPORT_LOG or logging.level besides the canonical ones
LOG_LEVEL_ALIASES: dict[str, str] = {
    "WARN": "WARNING",
    "TRACE": "DEBUG",
    "CRITICAL": "ERROR",
    "OFF": "ERROR",
}

# env var → (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DCEXPORT_DISCORD_TOKEN": ("discord", "token"),
    "DCEXPORT_LOG": ("logging", "level"),
    "DCEXPORT_METRICS_HOST": ("metrics", "host"),
    "DCEXPORT_METRICS_PORT": ("metrics", "port"),
}


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(obj, str):
        return re.sub(
            r"\$\{([^}:]+)(?::-(.*?))?\}",
            lambda m: os.environ.get(m.group(1), m.group(2) or ""),
            obj,
        )
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def normalize_log_level(value: str) -> str:
    """Map a log filter such as ``warn`` or ``info,dcexport=debug`` to a level name.

    For a comma-separated filter the last directive wins, and a
    ``target=level`` directive contributes its level.
    """
    directive = value.split(",")[-1].strip()
    level = directive.rsplit("=", 1)[-1].strip().upper()
    return LOG_LEVEL_ALIASES.get(level, level)


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        sub = raw.get(section)
        if not isinstance(sub, dict):
            sub = {}
            raw[section] = sub
        sub[key] = value
    return raw


def load_config(config_path: str | None = None) -> ExporterConfig:
    """Load an optional YAML config file, apply env overrides and validate."""
    raw: Any = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError("Config file must contain a YAML mapping at the top level.")

    raw = _expand_env_vars(raw)
    raw = _apply_env_overrides(raw)
    raw.setdefault("discord", {})
    logging_section = raw.get("logging")
    if isinstance(logging_section, dict) and isinstance(logging_section.get("level"), str):
        logging_section["level"] = normalize_log_level(logging_section["level"])
    return ExporterConfig(**raw)
