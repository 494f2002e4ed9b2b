"""Layered configuration loading.

Precedence, lowest first: built-in defaults, YAML file, environment
(``OTAKUHUB_*``, optionally seeded from a ``.env`` file), CLI overrides.
Every layer is folded into the sectioned shape of ``DEFAULT_CONFIG``
before merging, and only the merged result is validated.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_SECTIONS = frozenset(k for k, v in DEFAULT_CONFIG.items() if isinstance(v, dict))
_TOP_LEVEL = frozenset(k for k, v in DEFAULT_CONFIG.items() if not isinstance(v, dict))

# Flat keys whose prefix is not their section name.
_FLAT_ALIASES: dict[str, tuple[str, str]] = {
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
}


def _flat_target(key: str) -> tuple[str, str] | None:
    """``"playback_open_timeout_seconds"`` -> ``("playback", "open_timeout_seconds")``."""
    if key in _FLAT_ALIASES:
        return _FLAT_ALIASES[key]
    section, sep, rest = key.partition("_")
    if sep and rest and section in _SECTIONS:
        return section, rest
    return None


def _sectioned(layer: Mapping[str, Any]) -> dict[str, Any]:
    """Accept both ``{"api": {"base_url": ..}}`` and ``{"api_base_url": ..}``."""
    out: dict[str, Any] = {}
    for key, value in layer.items():
        if key in _SECTIONS and isinstance(value, Mapping):
            out.setdefault(key, {}).update(value)
        elif key in _TOP_LEVEL:
            out[key] = value
        elif (target := _flat_target(key)) is not None:
            section, name = target
            out.setdefault(section, {})[name] = value
    return out


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge *override* into *base* in place; scalars replace."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge(current, value)
        else:
            base[key] = value
    return base


def _yaml_layer(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(parsed).__name__}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """Build the validated ``AppConfig``.

    Reads files but never creates any; directories named in the config
    are created by their users on first write.

    Raises:
        FileNotFoundError: an explicit config or dotenv path does not exist.
        ValueError: the YAML is not a mapping, or the merged values are
            invalid (``pydantic.ValidationError`` is a ``ValueError``).
    """
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        # Real environment variables keep priority over the file.
        load_dotenv(dotenv_path, override=False)

    layers: list[Mapping[str, Any]] = [deepcopy(DEFAULT_CONFIG)]
    if config_path is not None:
        layers.append(_yaml_layer(config_path))
    layers.append(EnvOverrides().to_update_dict())
    layers.append(cli_overrides or {})

    merged: dict[str, Any] = {}
    for layer in layers:
        _merge(merged, _sectioned(layer))
    return AppConfig.model_validate(merged)
