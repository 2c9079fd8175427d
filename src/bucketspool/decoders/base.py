"""
Record decoder interface.

A Decoder opens an object at a byte offset and returns a RecordReader that
pulls one record at a time. Every record reports the offset it starts at and
the offset the next read resumes from, so any reported offset can be handed
back to ``Decoder.open`` to resume mid-object.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, BinaryIO

from bucketspool.exceptions import DecodeError
from bucketspool.spool.types import ObjectHandle
from bucketspool.stores.base import ObjectStore


class EndOfObject:
    """Sentinel returned by ``RecordReader.read_next`` once an object is exhausted."""

    _instance: EndOfObject | None = None

    def __new__(cls) -> EndOfObject:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_OBJECT"

    def __bool__(self) -> bool:
        return False


END_OF_OBJECT = EndOfObject()


@dataclass(frozen=True)
class DecodedRecord:
    value: dict[str, Any]
    offset: int
    next_offset: int


class RecordReader(ABC):
    """Pulls records out of one open object."""

    def __init__(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int = 0):
        self._stream = stream
        self.handle = handle
        self._offset = start_offset
        self.closed = False

    @property
    def offset(self) -> int:
        """Byte offset the next ``read_next`` call starts from."""
        return self._offset

    @abstractmethod
    def read_next(self) -> DecodedRecord | EndOfObject:
        """
        Read the next record.

        Returns:
            The next record, or END_OF_OBJECT when the object is exhausted

        Raises:
            DecodeError: If the next record is malformed. The reader has
                already moved past it.
        """

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._stream.close()

    def __enter__(self) -> RecordReader:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class LineRecordReader(RecordReader):
    """
    Base reader for newline-delimited formats.

    Splits the byte stream on ``\\n`` (a trailing ``\\r`` is dropped) and
    hands each decoded line to ``parse_line``. ``parse_line`` returns None
    for lines that carry no record (blank lines, headers).
    """

    chunk_size = 64 * 1024

    def __init__(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int = 0, *, charset: str = "utf-8"):
        super().__init__(stream, handle, start_offset)
        self.charset = charset
        self._buffer = bytearray()
        self._eof = False

    def _next_line(self) -> tuple[bytes, int] | None:
        """Next raw line (without its newline) and the offset it starts at."""
        while True:
            idx = self._buffer.find(b"\n")
            if idx >= 0:
                raw = bytes(self._buffer[:idx])
                del self._buffer[: idx + 1]
                start = self._offset
                self._offset += idx + 1
                return raw, start
            if self._eof:
                if not self._buffer:
                    return None
                raw = bytes(self._buffer)
                self._buffer.clear()
                start = self._offset
                self._offset += len(raw)
                return raw, start
            chunk = self._stream.read(self.chunk_size)
            if chunk:
                self._buffer.extend(chunk)
            else:
                self._eof = True

    def read_next(self) -> DecodedRecord | EndOfObject:
        while True:
            line = self._next_line()
            if line is None:
                return END_OF_OBJECT
            raw, start = line
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            try:
                text = raw.decode(self.charset)
            except UnicodeDecodeError as e:
                raise DecodeError(self.handle.key, start, f"invalid {self.charset} data: {e.reason}") from e
            value = self.parse_line(text, start)
            if value is not None:
                return DecodedRecord(value=value, offset=start, next_offset=self._offset)

    @abstractmethod
    def parse_line(self, line: str, offset: int) -> dict[str, Any] | None:
        """Turn one line into a record value, or None to skip it."""


class Decoder(ABC):
    """Factory for record readers of one payload format."""

    name: str = ""

    def __init__(self, charset: str = "utf-8"):
        self.charset = charset

    def open(self, store: ObjectStore, handle: ObjectHandle, start_offset: int = 0) -> RecordReader:
        """Open ``handle`` at ``start_offset`` and return a reader positioned there."""
        stream = store.open_object(handle.bucket, handle.key, start_offset)
        return self.reader(stream, handle, start_offset)

    @abstractmethod
    def reader(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int) -> RecordReader:
        """Wrap an open stream in this format's reader."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(charset='{self.charset}')"
