"""
Plain text decoder: one record per line.
"""

from __future__ import annotations

from typing import Any, BinaryIO

from bucketspool.decoders.base import Decoder, LineRecordReader
from bucketspool.spool.types import ObjectHandle


class TextRecordReader(LineRecordReader):
    def __init__(
        self,
        stream: BinaryIO,
        handle: ObjectHandle,
        start_offset: int = 0,
        *,
        charset: str = "utf-8",
        max_line_length: int | None = None,
    ):
        super().__init__(stream, handle, start_offset, charset=charset)
        self.max_line_length = max_line_length

    def parse_line(self, line: str, offset: int) -> dict[str, Any] | None:
        if self.max_line_length and len(line) > self.max_line_length:
            return {"text": line[: self.max_line_length], "truncated": True}
        return {"text": line}


class TextDecoder(Decoder):
    """
    Emits ``{"text": line}`` for every line, blank lines included.

    Lines longer than ``max_line_length`` characters are cut and flagged with
    ``"truncated": True``.
    """

    name = "text"

    def __init__(self, charset: str = "utf-8", max_line_length: int | None = 1024):
        super().__init__(charset)
        if max_line_length is not None and max_line_length <= 0:
            raise ValueError("max_line_length must be positive")
        self.max_line_length = max_line_length

    def reader(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int) -> TextRecordReader:
        return TextRecordReader(
            stream, handle, start_offset, charset=self.charset, max_line_length=self.max_line_length
        )
