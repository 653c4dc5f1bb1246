"""Configuration utilities for staffing simulation runs."""
from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import StaffsimError


class ConfigError(StaffsimError):
    """Raised when the configuration file cannot be processed."""


_DEFAULTS: Dict[str, Any] = {
    "primary_ratios": [3, 4, 5],
    "secondary_ratios": [10, 12, 14],
    "shift_hours": 8,
    "iterations": 1000,
    "confidence_level": 0.95,
    "interval": "normal",
    "random_seed": None,
    "patient_volume": 30,
    "rates": {"primary": 45.0, "secondary": 22.0},
    "overhead_multiplier": 1.3,
    "min_sample_size": 3,
    "workers": 1,
    "time_budget": None,
    "once_per_shift": [],
    "constraints": {"min_completion_rate": 90.0, "max_budget": 10000.0},
}

_PATH_KEYS = ("profiles", "survey")


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def load_config(path: Path) -> Dict[str, Any]:
    """Load a YAML or JSON run configuration and fill in defaults."""
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        elif suffix == ".json":
            data = json.loads(text)
        else:
            raise ConfigError("Unsupported configuration format. Use YAML or JSON.")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Configuration file could not be parsed: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping of keys to values.")

    if not any(data.get(key) for key in _PATH_KEYS):
        raise ConfigError("Configuration must name a task profile file ('profiles') or a survey file ('survey').")

    config = default_config()
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value

    for key in _PATH_KEYS:
        if config.get(key):
            location = Path(str(config[key]))
            if not location.is_absolute():
                location = path.parent / location
            config[key] = location

    _validate(config)
    return config


def _validate(config: Dict[str, Any]) -> None:
    for key in ("primary_ratios", "secondary_ratios", "once_per_shift"):
        if not isinstance(config[key], list):
            raise ConfigError(f"'{key}' must be a list.")
    if not config["primary_ratios"] or not config["secondary_ratios"]:
        raise ConfigError("Ratio lists must not be empty.")
    for key in ("primary", "secondary"):
        if key not in config["rates"]:
            raise ConfigError(f"'rates' must define an hourly rate for '{key}'.")
    for key in ("min_completion_rate", "max_budget"):
        if key not in config["constraints"]:
            raise ConfigError(f"'constraints' must define '{key}'.")


__all__ = ["load_config", "default_config", "ConfigError"]
