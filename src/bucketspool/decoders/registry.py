"""
Decoder registry.

Resolves the ``format:`` section of the configuration into a Decoder.
"""

from __future__ import annotations

from typing import Any

from bucketspool.decoders.base import Decoder
from bucketspool.decoders.delimited import DelimitedDecoder
from bucketspool.decoders.json_lines import JsonLinesDecoder
from bucketspool.decoders.log import LogDecoder
from bucketspool.decoders.text import TextDecoder
from bucketspool.exceptions import ConfigurationError
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.decoders.registry")


def build_default_decoder_registry() -> dict[str, type[Decoder]]:
    """
    Build registry of built-in decoders.
    """
    return {
        TextDecoder.name: TextDecoder,
        LogDecoder.name: LogDecoder,
        JsonLinesDecoder.name: JsonLinesDecoder,
        DelimitedDecoder.name: DelimitedDecoder,
    }


def create_decoder(
    format_config: dict[str, Any] | None,
    *,
    registry: dict[str, type[Decoder]] | None = None,
) -> Decoder:
    """
    Create a decoder from ``{"type": <name>, **options}``.

    Raises:
        ConfigurationError: If the type is unknown or the options are invalid
    """
    registry = registry or build_default_decoder_registry()
    options = dict(format_config or {})
    name = options.pop("type", "text")
    decoder_cls = registry.get(name)
    if decoder_cls is None:
        raise ConfigurationError(f"Unknown data format '{name}'. Available: {sorted(registry)}")
    try:
        decoder = decoder_cls(**options)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid options for data format '{name}': {e}") from e
    logger.debug(f"Using {decoder!r} for data format '{name}'")
    return decoder
