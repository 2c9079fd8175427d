"""
JSON lines decoder: one JSON document per line.
"""

from __future__ import annotations

import json
from typing import Any, BinaryIO

from bucketspool.decoders.base import Decoder, LineRecordReader
from bucketspool.exceptions import DecodeError
from bucketspool.spool.types import ObjectHandle


class JsonLinesRecordReader(LineRecordReader):
    def parse_line(self, line: str, offset: int) -> dict[str, Any] | None:
        if not line.strip():
            return None
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError as e:
            raise DecodeError(self.handle.key, offset, f"invalid JSON: {e.msg}") from e
        # Scalars and arrays are wrapped so every record is a mapping
        if not isinstance(parsed, dict):
            return {"value": parsed}
        return parsed


class JsonLinesDecoder(Decoder):
    name = "json"

    def reader(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int) -> JsonLinesRecordReader:
        return JsonLinesRecordReader(stream, handle, start_offset, charset=self.charset)
