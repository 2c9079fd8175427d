"""
Configuration file loading.

Reads ``config.yaml`` from a project directory, merges ``config.{env}.yaml``
over it and resolves placeholders.
"""

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from bucketspool.config.resolver import resolve_config
from bucketspool.exceptions import ConfigurationError

CONFIG_FILE = "config.yaml"
ENV_VAR = "BUCKETSPOOL_ENV"


class Config:
    """Loaded configuration with dict-like and dot-notation access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot path, e.g. ``config.get("source.bucket")``."""
        value: Any = self.data
        for part in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(part)
            if value is None:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        if "." in key:
            return self.get(key)
        if key not in self.data:
            raise KeyError(f"Config key '{key}' not found")
        value = self.data[key]
        if isinstance(value, dict):
            return Config(value)
        return value

    def __contains__(self, key: str) -> bool:
        value: Any = self.data
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return False
            value = value[part]
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def keys(self):
        return self.data.keys()

    def items(self):
        return self.data.items()

    def validate(self) -> None:
        """Check the top-level structure; section contents are checked by SpoolConfig."""
        if not isinstance(self.data, dict):
            raise ConfigurationError(f"Configuration must be a mapping, got {type(self.data).__name__}")
        errors = []
        for section in ("store", "source", "format", "post_processing", "error_handling", "batch", "logging"):
            value = self.data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"Configuration '{section}' must be a mapping, got {type(value).__name__}")
        if "source" not in self.data:
            errors.append("Configuration requires a 'source' section")
        if errors:
            raise ConfigurationError("\n".join(errors))


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        raise ConfigurationError(
            f"Error parsing {path.name}{where}:\n"
            f"  {e}\n"
            f"  File: {path}\n"
            f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
        ) from e
    except PermissionError as e:
        raise ConfigurationError(f"Permission denied reading {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load configuration for a project directory.

    Args:
        project_path: Directory holding config.yaml (default: current directory)
        env: Environment name; falls back to $BUCKETSPOOL_ENV, then "dev"

    Returns:
        Validated Config

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    project_path = Path(project_path) if project_path is not None else Path.cwd()
    env = env or os.environ.get(ENV_VAR, "dev")

    base_path = project_path / CONFIG_FILE
    if not base_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_path}\n"
            f"  Suggestion: Create a {CONFIG_FILE} file in your project directory"
        )
    config_data = _read_yaml(base_path)

    env_path = project_path / f"config.{env}.yaml"
    if env_path.is_file():
        _merge_dict(config_data, _read_yaml(env_path))

    config = Config(resolve_config(config_data, env))
    config.validate()
    return config


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
