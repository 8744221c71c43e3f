"""
Configuration file system for skos-explorer.

Supports loading configuration from multiple locations, merged with precedence:
1. /etc/skos-explorer/config.yaml or config.json (lowest priority)
2. ~/.config/skos-explorer/config.yaml or config.json
3. ./skos-explorer.yaml or ./skos-explorer.json (highest priority)

All found config files are merged, with later files overriding earlier ones.
YAML is checked before JSON at each location. Environment variables
(SKOS_EXPLORER_*) have the highest priority.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

# Config filenames for current working directory (project-local config)
CONFIG_FILENAMES = ["config.yaml", "config.json", "skos-explorer.yaml", "skos-explorer.json"]
# Config filenames for system/user config directories
CONFIG_USER_FILENAMES = ["config.yaml", "config.json"]

ENV_PREFIX = "SKOS_EXPLORER_"

DEFAULT_STORE_PATH = Path.home() / ".local" / "share" / "skos-explorer" / "endpoints.json"

DEFAULTS: dict[str, Any] = {
    "sparql": {
        "timeout": 60.0,  # Per request; public endpoints can be slow
        "connect_timeout": 10.0,  # Connection test only
        "max_retries": 1,
        "retry_delay": 0.5,
        "origin": None,  # Browser origin to check CORS against, e.g. "https://app.example.org"
    },
    "analysis": {
        "max_graphs": 1000,
        "duplicate_sample_size": 1000,
        "language_limit": 50,
        "skos_graph_limit": 500,  # SKOS graphs listed for the batched census
        "census_batch_size": 10,  # Graphs per census query
        "max_schemes": 200,  # Concept scheme URIs kept per analysis
        "elapsed_delay": 2.0,  # Seconds before a running analysis reports elapsed time
        "max_workers": 4,
    },
    "labels": {
        "show_language_tags": True,
        "show_preferred_language_tag": False,
    },
    "storage": {
        "path": None,  # Default: ~/.local/share/skos-explorer/endpoints.json
    },
}


def _get_config_dirs() -> list[Path]:
    """Get list of config directories to search, in merge order (lowest priority first)."""
    return [
        Path("/etc/skos-explorer"),
        Path.home() / ".config" / "skos-explorer",
        Path.cwd(),
    ]


def find_config_files() -> list[Path]:
    """Find all existing config files, in merge order (lowest priority first).

    At each location only the first existing file (YAML before JSON) counts.
    """
    found_files = []
    for dir_path in _get_config_dirs():
        filenames = CONFIG_FILENAMES if dir_path == Path.cwd() else CONFIG_USER_FILENAMES
        for filename in filenames:
            path = dir_path / filename
            if path.exists():
                found_files.append(path)
                break
    return found_files


def find_config_file() -> Path | None:
    """Return the highest-priority existing config file, or None."""
    files = find_config_files()
    return files[-1] if files else None


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base dict, modifying base in place."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _load_config_file(path: Path) -> dict[str, Any]:
    """Load a single YAML or JSON config file.

    Raises:
        yaml.YAMLError: If a YAML config file is malformed.
        json.JSONDecodeError: If a JSON config file is malformed.
    """
    with open(path, encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(f) or {}
        return json.load(f)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load config from file(s), merging with defaults.

    Args:
        path: Optional explicit config file. If given, only this file is
              loaded (plus defaults and environment). Otherwise all standard
              locations are merged.

    Returns:
        Merged configuration dictionary.
    """
    config = json.loads(json.dumps(DEFAULTS))

    paths = ([path] if path.exists() else []) if path is not None else find_config_files()
    for config_path in paths:
        _deep_merge(config, _load_config_file(config_path))

    _apply_env_overrides(config)
    return config


def _apply_env_overrides(config: dict[str, Any]) -> None:
    """Apply SKOS_EXPLORER_<KEY> overrides; nested keys use double underscore.

    e.g. SKOS_EXPLORER_SPARQL__TIMEOUT=30 sets config["sparql"]["timeout"].
    """
    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            _set_nested_value(config, key[len(ENV_PREFIX):].lower(), value)


def _set_nested_value(config: dict, key: str, value: str) -> None:
    parts = key.split("__")
    target = config
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = _convert_value(value)


def _convert_value(value: str) -> Any:
    """Convert an environment string to bool, int or float where possible."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    for convert in (int, float):
        try:
            return convert(value)
        except ValueError:
            pass
    return value


def get_config_value(config: dict[str, Any], key: str, default: Any = None) -> Any:
    """Get a config value using dot notation, e.g. "sparql.timeout"."""
    target = config
    for part in key.split("."):
        if isinstance(target, dict) and part in target:
            target = target[part]
        else:
            return default
    return target


class Config:
    """Configuration holder with typed accessors."""

    def __init__(self, path: Path | None = None):
        if path is not None:
            self._paths = [path] if path.exists() else []
        else:
            self._paths = find_config_files()
        self._data = load_config(path)

    @property
    def path(self) -> Path | None:
        """Return the highest-priority loaded config file, or None."""
        return self._paths[-1] if self._paths else None

    @property
    def paths(self) -> list[Path]:
        return self._paths.copy()

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return get_config_value(self._data, key, default)

    @property
    def sparql_timeout(self) -> float:
        return float(self.get("sparql.timeout", 60.0))

    @property
    def connect_timeout(self) -> float:
        return float(self.get("sparql.connect_timeout", 10.0))

    @property
    def max_retries(self) -> int:
        return int(self.get("sparql.max_retries", 1))

    @property
    def retry_delay(self) -> float:
        return float(self.get("sparql.retry_delay", 0.5))

    @property
    def origin(self) -> str | None:
        return self.get("sparql.origin") or None

    @property
    def max_graphs(self) -> int:
        return int(self.get("analysis.max_graphs", 1000))

    @property
    def duplicate_sample_size(self) -> int:
        return int(self.get("analysis.duplicate_sample_size", 1000))

    @property
    def language_limit(self) -> int:
        return int(self.get("analysis.language_limit", 50))

    @property
    def skos_graph_limit(self) -> int:
        return int(self.get("analysis.skos_graph_limit", 500))

    @property
    def census_batch_size(self) -> int:
        return int(self.get("analysis.census_batch_size", 10))

    @property
    def max_schemes(self) -> int:
        return int(self.get("analysis.max_schemes", 200))

    @property
    def elapsed_delay(self) -> float:
        """Seconds after which a running analysis reports its elapsed time."""
        return float(self.get("analysis.elapsed_delay", 2.0))

    @property
    def max_workers(self) -> int:
        return int(self.get("analysis.max_workers", 4))

    @property
    def show_language_tags(self) -> bool:
        return bool(self.get("labels.show_language_tags", True))

    @property
    def show_preferred_language_tag(self) -> bool:
        """Whether the tag of the top-priority language is shown too.

        Example config:
            labels:
              show_preferred_language_tag: true
        """
        return bool(self.get("labels.show_preferred_language_tag", False))

    @property
    def store_path(self) -> Path:
        value = self.get("storage.path")
        return Path(value).expanduser() if value else DEFAULT_STORE_PATH
