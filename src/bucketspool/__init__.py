"""
bucketspool - resumable record spooling from object-store buckets.

Reads the objects under a bucket folder in key order, one record at a time,
tracks progress with a cursor the caller persists, and archives or deletes
each object once it has been consumed.
"""

__version__ = "0.1.0"

# Core exports
from bucketspool.config.loader import Config, load_config
from bucketspool.config.settings import SpoolConfig
from bucketspool.spool.cursor import Cursor, decode_cursor, encode_cursor
from bucketspool.spool.source import SpoolSource
from bucketspool.spool.types import Batch, Location, PostProcessAction, Record, RecordError
from bucketspool.spool.validation import ValidationIssue, validate_locations

# Exceptions
from bucketspool.exceptions import (
    BucketSpoolError,
    ConfigurationError,
    CursorError,
    DecodeError,
    ObjectNotFoundError,
    PostProcessError,
    SpoolStateError,
    StoreError,
    TransientStoreError,
)

# Logging utilities
from bucketspool.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    "__version__",
    # Spooling
    "SpoolSource",
    "SpoolConfig",
    "Batch",
    "Record",
    "RecordError",
    "Location",
    "PostProcessAction",
    "Cursor",
    "encode_cursor",
    "decode_cursor",
    "ValidationIssue",
    "validate_locations",
    # Config
    "Config",
    "load_config",
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    # Exceptions
    "BucketSpoolError",
    "ConfigurationError",
    "CursorError",
    "DecodeError",
    "ObjectNotFoundError",
    "PostProcessError",
    "SpoolStateError",
    "StoreError",
    "TransientStoreError",
]
