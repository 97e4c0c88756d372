"""familycal.config_loader

Lightweight config loader for familycal.

- Reads YAML (PyYAML) or JSON, chosen by file suffix.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
- Environment variables FAMILYCAL_DATA_PATH and FAMILYCAL_PORT override the
  file values.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "familycal" / "config.yaml"
DEFAULT_DATA_PATH = Path.home() / ".local" / "share" / "familycal" / "events.json"


@dataclass
class Config:
    """Typed configuration for familycal.

    Fields:
        data_path: JSON file backing the template repository
        max_expansion_iterations: per-template expansion cap (1..100000)
        upcoming_limit: default number of upcoming events listed (1..100)
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        log_level: logging level name
    """

    data_path: str = str(DEFAULT_DATA_PATH)
    max_expansion_iterations: int = 1000
    upcoming_limit: int = 10
    server_bind: str = "127.0.0.1"
    server_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and clamped to their allowed
        range, logging a warning whenever a value is replaced.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, lower: int, upper: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < lower:
                logger.warning("Config %s=%d below minimum; coercing to %d", key, value, lower)
                return lower
            if value > upper:
                logger.warning("Config %s=%d above maximum; coercing to %d", key, value, upper)
                return upper
            return value

        data_path = data.get("data_path") or str(DEFAULT_DATA_PATH)
        server_bind = data.get("server_bind") or "127.0.0.1"
        log_level = str(data.get("log_level") or "INFO").upper()

        return cls(
            data_path=str(Path(str(data_path)).expanduser()),
            max_expansion_iterations=_coerce_int("max_expansion_iterations", 1000, 1, 100_000),
            upcoming_limit=_coerce_int("upcoming_limit", 10, 1, 100),
            server_bind=str(server_bind),
            server_port=_coerce_int("server_port", 8080, 1, 65535),
            log_level=log_level,
        )


def _load_yaml_or_json(path: Path) -> Any:
    """Load a document from a YAML or JSON file; empty files load as {}."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text) if text.strip() else {}
    loaded = yaml.safe_load(text)
    return {} if loaded is None else loaded


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    merged = dict(raw)
    data_path = os.environ.get("FAMILYCAL_DATA_PATH")
    if data_path:
        merged["data_path"] = data_path
    port = os.environ.get("FAMILYCAL_PORT")
    if port:
        merged["server_port"] = port
    return merged


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              ~/.config/familycal/config.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns defaults (plus environment overrides).
    - If file exists but top-level is not a mapping: raises ValueError.
    - If the file cannot be parsed: the YAML/JSON error propagates.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        cfg = Config.from_dict(_apply_env_overrides({}))
        logger.debug("Default Config in use: %s", cfg)
        return cfg

    raw = _load_yaml_or_json(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = Config.from_dict(_apply_env_overrides(raw))
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
