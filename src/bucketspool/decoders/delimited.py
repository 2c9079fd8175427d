"""
Delimited (CSV/TSV) decoder.

Rows are single lines; quoted fields spanning several lines are not
supported because every record must start at a resumable line offset.
"""

from __future__ import annotations

import csv
from typing import Any, BinaryIO

from bucketspool.decoders.base import Decoder, LineRecordReader
from bucketspool.exceptions import DecodeError
from bucketspool.spool.types import ObjectHandle
from bucketspool.stores.base import ObjectStore


class DelimitedRecordReader(LineRecordReader):
    def __init__(
        self,
        stream: BinaryIO,
        handle: ObjectHandle,
        start_offset: int = 0,
        *,
        charset: str = "utf-8",
        delimiter: str = ",",
        quote_char: str = '"',
        header: bool = True,
        columns: list[str] | None = None,
    ):
        super().__init__(stream, handle, start_offset, charset=charset)
        self.delimiter = delimiter
        self.quote_char = quote_char
        self.header = header
        self.columns = columns

    def _split(self, line: str, offset: int) -> list[str]:
        try:
            rows = list(csv.reader([line], delimiter=self.delimiter, quotechar=self.quote_char, strict=True))
        except csv.Error as e:
            raise DecodeError(self.handle.key, offset, f"malformed row: {e}") from e
        return rows[0] if rows else []

    def read_header(self) -> list[str] | None:
        """Consume lines up to and including the first non-blank one and return its fields."""
        while True:
            line = self._next_line()
            if line is None:
                return None
            raw, start = line
            text = raw.decode(self.charset, errors="replace").rstrip("\r")
            if text.strip():
                self.columns = self._split(text, start)
                return self.columns

    def parse_line(self, line: str, offset: int) -> dict[str, Any] | None:
        if not line.strip():
            return None
        row = self._split(line, offset)
        if self.header and self.columns is None:
            # First line of the object names the columns
            self.columns = row
            return None
        if self.columns is None:
            return {"columns": row}
        if len(row) != len(self.columns):
            raise DecodeError(
                self.handle.key, offset, f"expected {len(self.columns)} fields, found {len(row)}"
            )
        return dict(zip(self.columns, row))


class DelimitedDecoder(Decoder):
    """
    Parses delimited rows into mappings keyed by the header line.

    Without a header each record is ``{"columns": [...]}``. When resuming
    mid-object the header line is read again from the start of the object.
    """

    name = "delimited"

    def __init__(
        self,
        charset: str = "utf-8",
        delimiter: str = ",",
        quote_char: str = '"',
        header: bool = True,
    ):
        super().__init__(charset)
        if len(delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        self.delimiter = delimiter
        self.quote_char = quote_char
        self.header = header

    def open(self, store: ObjectStore, handle: ObjectHandle, start_offset: int = 0) -> DelimitedRecordReader:
        columns = None
        if self.header and start_offset > 0:
            columns = self._read_header(store, handle)
        stream = store.open_object(handle.bucket, handle.key, start_offset)
        return self._reader(stream, handle, start_offset, columns)

    def reader(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int) -> DelimitedRecordReader:
        return self._reader(stream, handle, start_offset, None)

    def _reader(
        self, stream: BinaryIO, handle: ObjectHandle, start_offset: int, columns: list[str] | None
    ) -> DelimitedRecordReader:
        return DelimitedRecordReader(
            stream,
            handle,
            start_offset,
            charset=self.charset,
            delimiter=self.delimiter,
            quote_char=self.quote_char,
            header=self.header,
            columns=columns,
        )

    def _read_header(self, store: ObjectStore, handle: ObjectHandle) -> list[str]:
        with self._reader(store.open_object(handle.bucket, handle.key, 0), handle, 0, None) as reader:
            columns = reader.read_header()
        if columns is None:
            raise DecodeError(handle.key, 0, "missing header line")
        return columns
