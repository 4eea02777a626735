"""User configuration for ted.

Settings live in ``~/.ted/config.yaml`` (or ``$TED_HOME/config.yaml``)
and are edited interactively with ``ted settings``.  The file is a flat
YAML mapping::

    provider: gemini
    gemini_api_key: ""
    model: gemini-2.0-flash
    temperature: 0.3

A default file is written on first use.  A malformed file is reported in
the log and the defaults are used instead.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"

AVAILABLE_MODELS = [
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-2.5-pro",
    "gemini-2.5-flash",
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "provider": "gemini",
    "gemini_api_key": "",
    "model": DEFAULT_MODEL,
    "temperature": 0.3,
}


class ConfigError(Exception):
    """Raised when the configuration file cannot be written."""


def config_dir() -> Path:
    """Return the ted configuration directory.

    ``$TED_HOME`` wins over the default ``~/.ted``.  The directory is not
    created here; callers that write to it create it themselves.
    """
    override = os.environ.get("TED_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ted"


def config_file() -> Path:
    return config_dir() / "config.yaml"


def load_config(apply_env: bool = True) -> Dict[str, Any]:
    """Load the configuration, creating a default file if there is none.

    Missing keys are filled from :data:`DEFAULT_CONFIG`.  With
    ``apply_env``, an empty ``gemini_api_key`` is taken from
    ``$GEMINI_API_KEY`` when set.
    """
    cfg_path = config_file()
    config = dict(DEFAULT_CONFIG)
    if cfg_path.exists():
        try:
            with cfg_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            if isinstance(data, dict):
                config.update(data)
            elif data is not None:
                logger.warning("Ignoring %s: expected a mapping", cfg_path)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to read %s, using defaults: %s", cfg_path, exc)
    else:
        try:
            save_config(config)
        except ConfigError as exc:
            logger.warning("%s", exc)
    if apply_env and not config.get("gemini_api_key"):
        config["gemini_api_key"] = os.environ.get("GEMINI_API_KEY", "")
    try:
        config["temperature"] = float(config.get("temperature", DEFAULT_CONFIG["temperature"]))
    except (TypeError, ValueError):
        logger.warning("Invalid temperature %r in config, using default", config.get("temperature"))
        config["temperature"] = DEFAULT_CONFIG["temperature"]
    return config


def save_config(config: Dict[str, Any]) -> Path:
    """Persist configuration to disk and return the file path."""
    cfg_path = config_file()
    try:
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
        with cfg_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    except OSError as exc:
        raise ConfigError(f"failed to write config file {cfg_path}: {exc}") from exc
    return cfg_path
