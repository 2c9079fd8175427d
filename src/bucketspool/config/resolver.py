"""
Placeholder resolution for loaded configuration.

``${VAR_NAME}`` is replaced by the environment variable (left as-is when the
variable is unset) and ``{env}`` by the active environment name.
"""

import os
import re
from typing import Any

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Resolve placeholders throughout a configuration mapping.

    Args:
        config_data: Configuration dictionary
        env: Current environment name

    Returns:
        A resolved copy; the input is not modified
    """
    return _resolve_value(config_data, env)


def _resolve_value(value: Any, env: str) -> Any:
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    if isinstance(value, str):
        result = ENV_VAR_PATTERN.sub(lambda m: os.getenv(m.group(1), m.group(0)), value)
        return result.replace("{env}", env)
    return value
