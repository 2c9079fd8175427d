"""
Configuration management: YAML loading, placeholder resolution, typed settings.
"""

from bucketspool.config.loader import Config, load_config
from bucketspool.config.resolver import resolve_config
from bucketspool.config.settings import BatchSettings, ErrorHandling, FormatSettings, SpoolConfig, StoreSettings

__all__ = [
    "BatchSettings",
    "Config",
    "ErrorHandling",
    "FormatSettings",
    "SpoolConfig",
    "StoreSettings",
    "load_config",
    "resolve_config",
]
