"""
Typed spool source settings built from a configuration mapping.

Example config.yaml::

    store:
      type: s3
      config:
        region: us-east-1

    source:
      bucket: incoming-logs
      folder: NorthAmerica/USA
      pattern: "*.log"

    format:
      type: log
      mode: combined

    post_processing:
      action: archive
      bucket: processed-logs
      folder: "{env}/archive"

    error_handling:
      action: archive
      folder: errors
      stop_on_error: false

    batch:
      max_records: 1000
      max_wait_seconds: 1.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bucketspool.config.loader import load_config
from bucketspool.exceptions import ConfigurationError
from bucketspool.spool.types import ActionKind, Location, PostProcessAction


@dataclass
class StoreSettings:
    type: str = "s3"
    config: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type, "config": dict(self.config)}


@dataclass
class FormatSettings:
    type: str = "text"
    options: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.options}


@dataclass
class ErrorHandling:
    """What happens to an object whose records cannot be decoded."""

    action: PostProcessAction = field(default_factory=PostProcessAction.none)
    stop_on_error: bool = False


@dataclass
class BatchSettings:
    max_records: int = 1000
    max_wait_seconds: float = 1.0


@dataclass
class SpoolConfig:
    source: Location
    store: StoreSettings = field(default_factory=StoreSettings)
    data_format: FormatSettings = field(default_factory=FormatSettings)
    post_processing: PostProcessAction = field(default_factory=PostProcessAction.none)
    error_handling: ErrorHandling = field(default_factory=ErrorHandling)
    batch: BatchSettings = field(default_factory=BatchSettings)

    @classmethod
    def load(cls, project_path: Path | None = None, env: str | None = None) -> SpoolConfig:
        """Load config.yaml (plus config.{env}.yaml) and build settings from it."""
        return cls.from_dict(load_config(project_path, env=env).data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpoolConfig:
        """
        Build settings from a loaded configuration mapping.

        Archive destinations default to the source bucket when only a folder
        is given.

        Raises:
            ConfigurationError: If a section is missing or malformed
        """
        source_data = _section(data, "source", required=True)
        delimiter = source_data.get("delimiter", "/")
        source = Location(
            bucket=str(source_data.get("bucket") or ""),
            folder=str(source_data.get("folder") or ""),
            pattern=str(source_data.get("pattern", "*")),
            delimiter="" if delimiter is None else str(delimiter),
        )

        store_data = _section(data, "store")
        store = StoreSettings(
            type=store_data.get("type", "s3"),
            config=dict(store_data.get("config") or {}),
        )

        format_data = dict(_section(data, "format"))
        data_format = FormatSettings(type=format_data.pop("type", "text"), options=format_data)

        success_action = _parse_action(_section(data, "post_processing"), "post_processing", source)
        error_data = _section(data, "error_handling")
        error_handling = ErrorHandling(
            action=_parse_action(error_data, "error_handling", source),
            stop_on_error=bool(error_data.get("stop_on_error", False)),
        )

        batch_data = _section(data, "batch")
        try:
            batch = BatchSettings(
                max_records=int(batch_data.get("max_records", 1000)),
                max_wait_seconds=float(batch_data.get("max_wait_seconds", 1.0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid 'batch' settings: {e}") from e
        if batch.max_records < 1:
            raise ConfigurationError("batch.max_records must be at least 1")
        if batch.max_wait_seconds < 0:
            raise ConfigurationError("batch.max_wait_seconds must not be negative")

        return cls(
            source=source,
            store=store,
            data_format=data_format,
            post_processing=success_action,
            error_handling=error_handling,
            batch=batch,
        )


def _section(data: dict[str, Any], name: str, required: bool = False) -> dict[str, Any]:
    value = data.get(name)
    if value is None:
        if required:
            raise ConfigurationError(f"Configuration requires a '{name}' section")
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Configuration '{name}' must be a mapping, got {type(value).__name__}")
    return value


def _parse_action(data: dict[str, Any], name: str, source: Location) -> PostProcessAction:
    raw = str(data.get("action") or ActionKind.NONE.value).lower()
    try:
        kind = ActionKind(raw)
    except ValueError:
        choices = ", ".join(k.value for k in ActionKind)
        raise ConfigurationError(f"{name}.action must be one of {choices}, got '{raw}'") from None
    if kind is ActionKind.NONE:
        return PostProcessAction.none()
    if kind is ActionKind.DELETE:
        return PostProcessAction.delete()
    destination = Location(
        bucket=str(data.get("bucket") or source.bucket),
        folder=str(data.get("folder") or ""),
        delimiter=source.delimiter,
    )
    return PostProcessAction.archive(destination)
