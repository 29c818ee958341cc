"""
Appraisal Coordinator — Environment Config Loader

Layered configuration loading:
  1. Base YAML file (coordinator.yaml)
  2. Per-environment overlay files (config/{AC_ENV}.yaml merged over base)
  3. Environment variable overrides (AC_ prefixed)

Usage:
    from appraisal_engine.config import load_config, get_config_value

    cfg = load_config(base_path="coordinator.yaml", env="prod")
    workers = get_config_value("coordinator.max_workers", cfg, default=8)

Environment variables:
    AC_ENV         — active profile (dev, staging, prod)
    AC_CONFIG_DIR  — directory for overlay files (default: config/)
    AC_*           — overrides; "__" separates nesting levels
                     (e.g., AC_COORDINATOR__MAX_WORKERS=16)
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("appraisal_ai.config")

ENV_PREFIX = "AC_"
_META_KEYS = {"AC_ENV", "AC_CONFIG_DIR", "AC_VERSION"}


def deep_merge(base: dict, overlay: dict) -> dict:
    """
    Deep-merge overlay into base. Overlay values win.
    Lists are replaced (not appended). Dicts are recursed.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _set_nested(d: dict, keys: list[str], value: Any):
    """Set a nested dict value from a list of keys."""
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = value


def _parse_scalar(value: str) -> Any:
    """Parse an env var string as YAML (numbers, booleans, null, lists)."""
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


# ═══════════════════════════════════════════════════════════════════
# Overlay Files
# ═══════════════════════════════════════════════════════════════════

def _load_overlay_file(
    base_path: str,
    env: str = "",
    config_dir: str = "",
) -> dict[str, Any]:
    """
    Load the per-environment overlay file.
    Looks for {config_dir}/{env}.yaml, then config/{env}.yaml next to
    the base file. Returns empty dict if not found.
    """
    env = env or os.environ.get("AC_ENV", "")
    if not env:
        return {}

    config_dir = config_dir or os.environ.get("AC_CONFIG_DIR", "config")

    candidates = [
        Path(config_dir) / f"{env}.yaml",
        Path(config_dir) / f"{env}.yml",
        Path(os.path.dirname(base_path)) / "config" / f"{env}.yaml",
    ]

    for path in candidates:
        if path.exists():
            try:
                with open(path) as f:
                    overlay = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Failed to load overlay %s: %s", path, e)
                continue
            logger.info("Loaded config overlay: %s (%d keys)", path, len(overlay))
            return overlay

    logger.debug("No config overlay found for env=%s", env)
    return {}


# ═══════════════════════════════════════════════════════════════════
# Environment Variable Overrides
# ═══════════════════════════════════════════════════════════════════

def _load_env_overrides(prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """
    Load AC_ prefixed environment variables as config overrides.

      AC_SECTION__KEY=value → {"section": {"key": value}}

    Values are parsed as YAML scalars. Meta variables (AC_ENV,
    AC_CONFIG_DIR, AC_VERSION) are excluded.
    """
    overrides: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key in _META_KEYS:
            continue
        path = [p for p in key[len(prefix):].lower().split("__") if p]
        if not path:
            continue
        _set_nested(overrides, path, _parse_scalar(value))

    if overrides:
        logger.debug("Loaded %d env var overrides", len(overrides))
    return overrides


# ═══════════════════════════════════════════════════════════════════
# Main Loader
# ═══════════════════════════════════════════════════════════════════

def load_config(
    base_path: str = "coordinator.yaml",
    env: str = "",
    config_dir: str = "",
    include_env_vars: bool = True,
) -> dict[str, Any]:
    """
    Load configuration with layered merging.

    Priority (highest wins):
      1. Environment variable overrides (AC_*)
      2. Per-environment overlay file (config/{env}.yaml)
      3. Base config file

    Returns:
        Merged configuration dict
    """
    config: dict[str, Any] = {}
    if os.path.exists(base_path):
        with open(base_path) as f:
            config = yaml.safe_load(f) or {}
        logger.debug("Loaded base config: %s", base_path)

    overlay = _load_overlay_file(base_path, env=env, config_dir=config_dir)
    if overlay:
        config = deep_merge(config, overlay)

    if include_env_vars:
        env_overrides = _load_env_overrides()
        if env_overrides:
            config = deep_merge(config, env_overrides)

    config["_active_env"] = env or os.environ.get("AC_ENV", "default")
    config["_config_source"] = base_path

    return config


def get_config_value(
    path: str,
    config: dict[str, Any] | None = None,
    default: Any = None,
) -> Any:
    """
    Get a nested config value by dotted path.

    Example:
        get_config_value("coordinator.max_workers", cfg, 8)
    """
    if config is None:
        config = load_config()

    current: Any = config
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current
