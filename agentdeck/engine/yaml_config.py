"""YAML configuration loader.

Example ``.agentdeck/deck.yaml``:

    deck:
      base_url: http://localhost:3001/api
      page_size: 20
      poll_interval_seconds: 3
      max_result_chars: 800
      log_level: DEBUG

Values in the file are applied over ``DeckConfig.from_env()``.
"""
from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path

import yaml

from .config import DeckConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = ".agentdeck"
CONFIG_FILENAME = "deck.yaml"


def discover_config_path(cwd: Path | None = None) -> Path | None:
    """Return ``<cwd>/.agentdeck/deck.yaml`` if it exists."""
    candidate = (cwd or Path.cwd()) / CONFIG_DIRNAME / CONFIG_FILENAME
    logger.debug("Config auto-discovery candidate: %s (exists=%s)", candidate, candidate.exists())
    return candidate if candidate.exists() else None


def load_yaml_config(path: str | Path, base: DeckConfig | None = None) -> DeckConfig:
    """Load a YAML config file on top of *base* (env-derived by default)."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"YAML parse error: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    section = raw.get("deck") or {}
    if not isinstance(section, dict):
        raise ConfigError(str(path), "'deck' must be a mapping")

    config = base if base is not None else DeckConfig.from_env()
    known = {f.name: f for f in fields(DeckConfig)}
    for key, value in section.items():
        if key not in known:
            logger.warning("load_yaml_config: unknown key deck.%s in %s", key, path)
            continue
        current = getattr(config, key)
        try:
            if isinstance(current, bool):
                coerced = bool(value)
            elif isinstance(current, int):
                coerced = int(value)
            elif isinstance(current, float):
                coerced = float(value)
            else:
                coerced = str(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(str(path), f"deck.{key}: {exc}") from exc
        setattr(config, key, coerced)

    config.base_url = config.base_url.rstrip("/")
    logger.info(
        "Loaded config %s, keys: %s",
        path.name, ", ".join(sorted(section)) if section else "(empty)",
    )
    return config
