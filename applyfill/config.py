"""Configuration helpers for the autofill engine."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

FILL_DELAYS: Dict[str, int] = {
    "fast": 25,
    "normal": 50,
    "careful": 150,
}
"""Inter-field pause in milliseconds per fill speed."""

AI_RESPONSE_LENGTHS: Dict[str, int] = {
    "brief": 150,
    "standard": 300,
    "detailed": 500,
}
"""Maximum generated answer length (characters) per response setting."""


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Container for environment-driven settings."""

    api_base_url: str = os.getenv("APPLYFILL_API_BASE_URL", "http://localhost:3000")
    api_token: str | None = os.getenv("APPLYFILL_API_TOKEN")
    http_timeout_seconds: float = float(os.getenv("APPLYFILL_HTTP_TIMEOUT", "30.0"))
    profile_cache_ttl_seconds: float = float(os.getenv("APPLYFILL_PROFILE_TTL", "1800"))
    ai_cache_ttl_seconds: float = float(os.getenv("APPLYFILL_AI_CACHE_TTL", str(7 * 24 * 3600)))

    fill_speed: str = os.getenv("APPLYFILL_FILL_SPEED", "normal")
    overwrite_existing: bool = _env_flag("APPLYFILL_OVERWRITE_EXISTING", default=False)
    ai_enabled: bool = _env_flag("APPLYFILL_AI_ENABLED", default=True)
    ai_response_length: str = os.getenv("APPLYFILL_AI_RESPONSE_LENGTH", "standard")
    # Auto-answers unanswered legal/background questions at reduced confidence.
    screening_defaults: bool = _env_flag("APPLYFILL_SCREENING_DEFAULTS", default=True)
    scan_cross_origin_frames: bool = _env_flag("APPLYFILL_SCAN_CROSS_ORIGIN", default=False)
    # Seconds to watch for late-rendered fields after a pass; 0 disables.
    mutation_watch_seconds: float = float(os.getenv("APPLYFILL_MUTATION_WATCH", "1.5"))
    track_usage: bool = _env_flag("APPLYFILL_TRACK_USAGE", default=True)

    playwright_browser: str = os.getenv("PLAYWRIGHT_BROWSER", "chromium")
    playwright_headless: bool = _env_flag("PLAYWRIGHT_HEADLESS", default=False)

    @property
    def fill_delay_seconds(self) -> float:
        return FILL_DELAYS.get(self.fill_speed, FILL_DELAYS["normal"]) / 1000.0

    @property
    def ai_max_length(self) -> int:
        return AI_RESPONSE_LENGTHS.get(self.ai_response_length, AI_RESPONSE_LENGTHS["standard"])

    @property
    def api_configured(self) -> bool:
        return bool(self.api_base_url and self.api_token)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
