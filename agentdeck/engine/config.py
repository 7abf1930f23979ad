"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via AGENTDECK_* env vars
or a ``deck:`` section in ``.agentdeck/deck.yaml`` (see yaml_config).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields

logger = logging.getLogger(__name__)

ENV_PREFIX = "AGENTDECK_"


def _env_number(name: str, default: float, cast: type) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected %s)", name, raw, cast.__name__)
        return default


@dataclass
class DeckConfig:
    """Client-side engine configuration."""

    # Backend API root; every endpoint path is appended to this.
    base_url: str = "http://localhost:3001/api"

    # Viewport
    page_size: int = 10
    load_threshold_px: int = 50
    bottom_threshold_px: int = 100

    # Batched status polling
    poll_interval_seconds: float = 5.0
    # Delay before the post-send status refresh picks up the new process
    status_refresh_delay_seconds: float = 0.5

    # Live stream. A read stalled longer than the read timeout counts
    # as a lost connection and triggers a fresh subscription.
    reconnect_delay_seconds: float = 3.0
    stream_read_timeout_seconds: float = 90.0

    request_timeout_seconds: float = 30.0

    # Display cap for folded tool results
    max_result_chars: int = 500

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> DeckConfig:
        """Load configuration from AGENTDECK_* environment variables."""
        deck_vars = {
            k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)
        }
        if deck_vars:
            logger.info(
                "DeckConfig.from_env: overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(deck_vars.items())),
            )

        defaults = cls()
        values: dict[str, object] = {}
        for f in fields(cls):
            env_name = ENV_PREFIX + f.name.upper()
            default = getattr(defaults, f.name)
            if isinstance(default, bool):
                raw = os.getenv(env_name)
                values[f.name] = default if raw is None else raw.lower() in {"1", "true", "yes"}
            elif isinstance(default, int):
                values[f.name] = int(_env_number(env_name, default, int))
            elif isinstance(default, float):
                values[f.name] = float(_env_number(env_name, default, float))
            else:
                values[f.name] = os.getenv(env_name, default)

        config = cls(**values)
        config.base_url = config.base_url.rstrip("/")
        logger.debug(
            "DeckConfig.from_env: base_url=%s page_size=%d poll=%.1fs",
            config.base_url, config.page_size, config.poll_interval_seconds,
        )
        return config
