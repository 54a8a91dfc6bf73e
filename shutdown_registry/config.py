"""Configuration loading and validation for the cleanup registry."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Tuple, Union

import yaml

from .logging_utils import validate_logging_section
from .models import DEFAULT_OVERALL_TIMEOUT, validate_seconds

ENV_CONFIG_PATH = "SHUTDOWN_REGISTRY_CONFIG"


DEFAULT_CONFIG: Dict[str, Any] = {
    "registry": {
        "overall_timeout": DEFAULT_OVERALL_TIMEOUT,
        # None resolves to the built-in default, capped at overall_timeout.
        "retry_delay": None,
        "timeout_backoff": None,
    },
    "trigger": {
        "strict_pre_hook": False,
        "strict_post_hook": False,
    },
    "logging": {
        "console_level": "INFO",
        "file_level": "DEBUG",
        "json_logs": False,
        "color": True,
        "log_dir": None,
    },
    "signals": ["SIGINT", "SIGTERM"],
}


@dataclass(frozen=True)
class ConfigLoadResult:
    """Container for the merged configuration."""

    config: Dict[str, Any]
    sources: Tuple[str, ...]


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, MutableMapping):
        raise ValueError(f"Configuration file {path} must contain a mapping at the root")
    return dict(data)


def _deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], MutableMapping)
            and isinstance(value, MutableMapping)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _collect_sources(path: Union[str, Path, None]) -> Iterable[Tuple[Path, bool]]:
    if path is not None:
        yield Path(path), True
    env_path = os.getenv(ENV_CONFIG_PATH)
    if env_path:
        yield Path(env_path), False


def _validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    registry = config.get("registry")
    if not isinstance(registry, MutableMapping):
        raise ValueError("Configuration must define a 'registry' section")
    overall = validate_seconds("overall_timeout", registry.get("overall_timeout"), positive=True)
    for key in ("retry_delay", "timeout_backoff"):
        if registry.get(key) is not None:
            validate_seconds(key, registry[key], limit=overall)
    logging_section = config.get("logging")
    if not isinstance(logging_section, MutableMapping):
        raise ValueError("logging must be a mapping")
    validate_logging_section(logging_section)
    signals = config.get("signals")
    if not isinstance(signals, list) or not all(isinstance(name, str) for name in signals):
        raise ValueError("signals must be a list of signal names")
    return config


def load_config(
    path: Union[str, Path, None] = None,
    *,
    include_sources: bool = False,
) -> Union[ConfigLoadResult, Dict[str, Any]]:
    """Load defaults merged with the given YAML file and ``$SHUTDOWN_REGISTRY_CONFIG``."""

    config: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))
    sources: list[str] = []

    for source, required in _collect_sources(path):
        if not source.exists():
            if required:
                raise FileNotFoundError(f"Configuration file not found: {source}")
            continue
        data = _load_yaml(source)
        config = _deep_merge(config, data)
        sources.append(str(source.resolve()))

    config = _validate_config(config)

    result = ConfigLoadResult(config=config, sources=tuple(sources))
    if include_sources:
        return result
    return result.config


__all__ = ["DEFAULT_CONFIG", "ENV_CONFIG_PATH", "ConfigLoadResult", "load_config"]
