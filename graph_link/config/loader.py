"""
Configuration loading for graph_link.

A ``ClientConfig`` is built from an optional JSON or YAML file, overlaid with
``GRAPH_LINK_*`` environment variables. Without an explicit file the loader
looks for ``graph_link.{yaml,yml,json}`` in the working directory and in
``config/``.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .models import ClientConfig

DEFAULT_FILE_NAMES = ("graph_link.yaml", "graph_link.yml", "graph_link.json")
DEFAULT_SEARCH_DIRS = (".", "config")

# Environment variable suffix -> (section, field)
ENV_FIELDS: Dict[str, Tuple[str, str]] = {
    "HTTP_URL": ("http", "url"),
    "HTTP_TIMEOUT": ("http", "timeout"),
    "WS_URL": ("ws", "url"),
    "WS_PROTOCOL": ("ws", "protocol"),
    "RESUME_SUBSCRIPTIONS": ("ws", "resume_subscriptions"),
    "RECONNECT_TIMEOUT": ("ws", "reconnect_timeout"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_STRUCTURED": ("logging", "enable_structured"),
}

_TRUE = {"true", "yes", "on"}
_FALSE = {"false", "no", "off"}
_NONE = {"none", "null"}


def coerce_env_value(value: str) -> Any:
    """
    Turn an environment string into a bool, None, int or float where it
    looks like one; otherwise return it unchanged.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    if lowered in _NONE:
        return None

    for number in (int, float):
        try:
            return number(value)
        except ValueError:
            continue
    return value


def merge_sections(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``override`` on ``base`` without mutating either."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_sections(current, value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads a ``ClientConfig`` from a file and the environment."""

    def __init__(
        self,
        env_prefix: str = "GRAPH_LINK_",
        search_dirs: Iterable[Union[str, Path]] = DEFAULT_SEARCH_DIRS,
    ) -> None:
        self.env_prefix = env_prefix
        self.search_dirs = [Path(d) for d in search_dirs]

    def find_config_file(self) -> Optional[Path]:
        """First default config file that exists, if any."""
        for directory in self.search_dirs:
            for name in DEFAULT_FILE_NAMES:
                candidate = directory / name
                if candidate.is_file():
                    return candidate
        return None

    def read_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Parse a JSON or YAML config file.

        Raises:
            ConfigurationError: If the file is missing, unreadable or not a mapping
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")

        suffix = path.suffix.lower()
        if suffix not in (".json", ".yaml", ".yml"):
            raise ConfigurationError(f"Unsupported config file format: {path.suffix}")

        try:
            text = path.read_text(encoding="utf-8")
            data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to parse config file {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    def read_environment(self, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Collect ``<prefix>*`` variables into nested config sections."""
        environ = os.environ if environ is None else environ
        sections: Dict[str, Dict[str, Any]] = {}
        for suffix, (section, field) in ENV_FIELDS.items():
            raw = environ.get(f"{self.env_prefix}{suffix}")
            if raw is not None:
                sections.setdefault(section, {})[field] = coerce_env_value(raw)
        return sections

    def load_config(self, config_file: Optional[Union[str, Path]] = None) -> ClientConfig:
        """
        Build the client configuration.

        Args:
            config_file: Explicit config file; searched for when omitted

        Raises:
            ConfigurationError: If a source cannot be read or the merged
                configuration is invalid
        """
        path = Path(config_file) if config_file else self.find_config_file()
        data = self.read_file(path) if path is not None else {}
        data = merge_sections(data, self.read_environment())

        try:
            return ClientConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")


def load_config(config_file: Optional[Union[str, Path]] = None) -> ClientConfig:
    """Load configuration with the default loader."""
    return ConfigLoader().load_config(config_file)
