"""Layered configuration loading.

Layers, lowest precedence first::

    built-in defaults < YAML file < CORSARO_* env vars (.env included) < CLI

Every layer is brought into the sectioned YAML shape before merging, so
a flat key such as ``log_level`` (ENV/CLI) and ``logging.level`` (YAML)
land on the same slot.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_TOP_LEVEL_KEYS = ("app_name", "environment", "tmdb_api_key")
_SECTIONS = ("http", "logging", "cache", "providers", "pipeline", "debrid")

# flat ENV/CLI key -> (section, key)
_FLAT_KEYS: dict[str, tuple[str, str]] = {
    "http_timeout_seconds": ("http", "timeout_seconds"),
    "http_user_agent": ("http", "user_agent"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "cache_backend": ("cache", "backend"),
    "cache_dir": ("cache", "directory"),
    "max_queries": ("pipeline", "max_queries"),
    "provider_timeout_seconds": ("pipeline", "provider_timeout_seconds"),
    "request_deadline_seconds": ("pipeline", "request_deadline_seconds"),
    "candidate_budget": ("debrid", "candidate_budget"),
    "debrid_min_interval_seconds": ("debrid", "min_interval_seconds"),
    "debrid_cleanup_discarded": ("debrid", "cleanup_discarded"),
}

# Accepted spellings inside a section -> canonical key. Canonicalising per
# layer keeps a lower layer's value from shadowing a higher layer's alias.
_SECTION_ALIASES: dict[str, dict[str, str]] = {
    "cache": {"dir": "directory"},
    "providers": {"1337x_enabled": "x1337_enabled"},
}


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge *override* into *base* in place; non-dict values replace."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge(current, value)
        else:
            base[key] = value
    return base


def _canonical_section(name: str, block: Mapping[str, Any]) -> dict[str, Any]:
    aliases = _SECTION_ALIASES.get(name, {})
    return {aliases.get(key, key): value for key, value in block.items()}


def _to_sections(layer: Mapping[str, Any]) -> dict[str, Any]:
    """Bring one layer into the sectioned shape; unknown keys are dropped."""
    out: dict[str, Any] = {k: layer[k] for k in _TOP_LEVEL_KEYS if k in layer}

    for name in _SECTIONS:
        block = layer.get(name)
        if isinstance(block, Mapping):
            out[name] = _canonical_section(name, block)

    for flat_key, (section, key) in _FLAT_KEYS.items():
        if flat_key in layer:
            out.setdefault(section, {})[key] = layer[flat_key]
    return out


def _read_yaml(path: Path) -> dict[str, Any]:
    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """Merge all layers and validate the result into an ``AppConfig``.

    Missing explicit files raise ``FileNotFoundError``; invalid values
    raise pydantic's ``ValidationError``. Nothing is written to disk.
    """
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        # Real environment variables keep priority over the file.
        load_dotenv(dotenv_path, override=False)
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(config_path)

    layers: list[Mapping[str, Any]] = [deepcopy(DEFAULT_CONFIG)]
    if config_path is not None:
        layers.append(_read_yaml(config_path))
    layers.append(EnvOverrides().to_update_dict())
    layers.append(cli_overrides or {})

    merged: dict[str, Any] = {}
    for layer in layers:
        _merge(merged, _to_sections(layer))
    return AppConfig.model_validate(merged)
