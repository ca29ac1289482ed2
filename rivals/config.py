"""Configuration loader for Space Rivals

Tunable values come from config/config.yaml; secrets and per-machine
values come from the environment (a .env file is loaded by run.py).
Environment variables override the YAML.

Configuration is validated at load time using Pydantic.
Typos and invalid values fail fast with clear error messages.

Usage:
    from rivals.config import load_config, get, get_validated_config

    # Load and validate (call once at startup)
    load_config("config/config.yaml")

    # Get values by dot-path
    delay = get("loop.agent_delay_seconds")

    # Or use the typed config object (preferred)
    config = get_validated_config()
    delay = config.loop.agent_delay_seconds
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .config_schema import AppConfig, validate_config_dict

# Global config instances
_config: dict[str, Any] | None = None
_validated_config: AppConfig | None = None

# Default config path
DEFAULT_CONFIG_PATH: Path = Path(__file__).parent.parent / "config" / "config.yaml"


def _as_bool(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no", "off")


# Environment variable -> (dot-path, converter)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "PACKAGE_ID": ("ledger.package_id", str),
    "SUI_RPC_URL": ("ledger.rpc_url", str),
    "AGENT_AI_MODEL": ("llm.model", str),
    "AGENT_AI_BASE_URL": ("llm.api_base", str),
    "AGENT_MAX_ROUNDS": ("loop.max_rounds", int),
    "AGENT_PREMINT_GALACTIC": ("bootstrap.premint_galactic", _as_bool),
}


def _set_path(target: dict[str, Any], key: str, value: Any) -> None:
    keys = key.split(".")
    for k in keys[:-1]:
        if not isinstance(target.get(k), dict):
            target[k] = {}
        target = target[k]
    target[keys[-1]] = value


def apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Return a copy of ``raw`` with set environment variables applied."""
    env = os.environ if environ is None else environ
    merged = copy.deepcopy(raw)
    for name, (key, convert) in ENV_OVERRIDES.items():
        value = env.get(name)
        if value:
            _set_path(merged, key, convert(value))
    return merged


def load_config(
    config_path: str | Path | None = None, environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Load and validate configuration from YAML file plus environment.

    Args:
        config_path: Path to config file. Defaults to config/config.yaml.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        Configuration dictionary with overrides applied.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid.
    """
    global _config, _validated_config

    path: Path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        loaded: Any = yaml.safe_load(f)
        if not isinstance(loaded, dict):
            loaded = {}

    merged = apply_env_overrides(loaded, environ)
    _validated_config = validate_config_dict(merged)
    _config = merged
    return _config


def get_config() -> dict[str, Any]:
    """Get the loaded configuration dict. Loads default if not already loaded.

    For typed access, use get_validated_config() instead.
    """
    global _config
    if _config is None:
        load_config()
    if _config is None:
        raise RuntimeError("Config failed to load. Call load_config() first.")
    return _config


def get_validated_config() -> AppConfig:
    """Get the validated configuration object.

    Loads default config if not already loaded.
    """
    global _validated_config
    if _validated_config is None:
        load_config()
    if _validated_config is None:
        raise RuntimeError("Validated config failed to load. Call load_config() first.")
    return _validated_config


def get(key: str, default: Any = None) -> Any:
    """Get a config value by dot-separated key path.

    Examples:
        get("ledger.gas_budget")
        get("agents.rival.temperature")
    """
    value: Any = get_config()
    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


def set_config_value(key: str, value: Any) -> None:
    """Set a config value by dot-separated key path.

    Used for runtime overrides (e.g., CLI args). Re-validates the config.

    Args:
        key: Dot-separated key path (e.g., "loop.max_rounds")
        value: Value to set

    Raises:
        pydantic.ValidationError: If the new value is invalid.
    """
    global _config, _validated_config

    if _config is None:
        load_config()
    if _config is None:
        raise RuntimeError("Config failed to load. Call load_config() first.")

    candidate = copy.deepcopy(_config)
    _set_path(candidate, key, value)
    _validated_config = validate_config_dict(candidate)
    _config = candidate


def reset_config() -> None:
    """Forget the loaded config (tests)."""
    global _config, _validated_config
    _config = None
    _validated_config = None
