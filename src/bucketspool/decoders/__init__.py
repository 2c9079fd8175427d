"""
Record decoders for the supported payload formats.
"""

from bucketspool.decoders.base import END_OF_OBJECT, Decoder, DecodedRecord, EndOfObject, RecordReader
from bucketspool.decoders.delimited import DelimitedDecoder
from bucketspool.decoders.json_lines import JsonLinesDecoder
from bucketspool.decoders.log import LogDecoder
from bucketspool.decoders.registry import build_default_decoder_registry, create_decoder
from bucketspool.decoders.text import TextDecoder

__all__ = [
    "END_OF_OBJECT",
    "DecodedRecord",
    "Decoder",
    "DelimitedDecoder",
    "EndOfObject",
    "JsonLinesDecoder",
    "LogDecoder",
    "RecordReader",
    "TextDecoder",
    "build_default_decoder_registry",
    "create_decoder",
]
