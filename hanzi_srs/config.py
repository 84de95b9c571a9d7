"""
Process-level settings for hanzi-srs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo


def _get_timezone() -> str:
    """
    Return the IANA timezone used for calendar-day boundaries.

    "Reviewed today" and streak days are counted in this zone. Falls back
    to UTC so tests and local development need no configuration.
    """
    return os.getenv("HANZI_SRS_TIMEZONE", "UTC")


def _get_max_ease_factor() -> Optional[float]:
    raw = os.getenv("HANZI_SRS_MAX_EASE_FACTOR", "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"HANZI_SRS_MAX_EASE_FACTOR must be a number, got {raw!r}") from e
    if value < 1.3:
        raise ValueError("HANZI_SRS_MAX_EASE_FACTOR must be at least 1.3")
    return value


@dataclass
class Settings:
    """Settings resolved from the environment."""

    timezone: str = "UTC"
    max_ease_factor: Optional[float] = None

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    return Settings(
        timezone=_get_timezone(),
        max_ease_factor=_get_max_ease_factor(),
    )
