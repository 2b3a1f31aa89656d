"""Shared utility helpers for dcexport."""

from __future__ import annotations

import re

from .events import STATUSES

_CUSTOM_EMOJI_RE = re.compile(r"<a?:[A-Za-z0-9_~]{2,32}:\d{15,21}>")


def count_custom_emotes(content: str | None) -> int:
    """Count whitespace-separated tokens that are exactly a custom emoji.

    Only guild emotes (``<:name:id>`` / ``<a:name:id>``) count; unicode
    emoji and emotes glued to other text do not.
    """
    if not content:
        return 0
    return sum(1 for part in content.split() if _CUSTOM_EMOJI_RE.fullmatch(part))


def normalize_status(status: object) -> str | None:
    """Map a discord.py status (enum or str) onto one of STATUSES.

    ``invisible`` is what others see as ``offline``; anything else unknown
    returns None.
    """
    if status is None:
        return None
    name = str(getattr(status, "value", status)).lower()
    if name == "invisible":
        return "offline"
    if name == "do_not_disturb":
        return "dnd"
    return name if name in STATUSES else None


def escape_label_value(value: str) -> str:
    """Escape a Prometheus label value (backslash, quote, newline)."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
