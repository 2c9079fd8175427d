"""
Web server access log decoder.

Supports the Common Log Format, the Combined Log Format and custom regular
expressions with named groups. Lines that do not match are decode errors.
"""

from __future__ import annotations

import re
from typing import Any, BinaryIO

from bucketspool.decoders.base import Decoder, LineRecordReader
from bucketspool.exceptions import DecodeError
from bucketspool.spool.types import ObjectHandle

COMMON_LOG_FORMAT = (
    r"(?P<clientip>\S+) (?P<ident>\S+) (?P<auth>\S+) \[(?P<timestamp>[^\]]+)\] "
    r'"(?P<verb>\S+) (?P<request>\S+)(?: HTTP/(?P<httpversion>[^"]+))?" '
    r"(?P<response>\d{3}) (?P<bytes>\d+|-)"
)
COMBINED_LOG_FORMAT = COMMON_LOG_FORMAT + r' "(?P<referrer>[^"]*)" "(?P<agent>[^"]*)"'

LOG_MODES = {
    "common": COMMON_LOG_FORMAT,
    "combined": COMBINED_LOG_FORMAT,
}

_INT_FIELDS = ("response", "bytes")


class LogRecordReader(LineRecordReader):
    def __init__(
        self,
        stream: BinaryIO,
        handle: ObjectHandle,
        start_offset: int = 0,
        *,
        charset: str = "utf-8",
        pattern: re.Pattern[str],
        max_line_length: int | None = None,
    ):
        super().__init__(stream, handle, start_offset, charset=charset)
        self.pattern = pattern
        self.max_line_length = max_line_length

    def parse_line(self, line: str, offset: int) -> dict[str, Any] | None:
        if not line.strip():
            return None
        if self.max_line_length and len(line) > self.max_line_length:
            raise DecodeError(self.handle.key, offset, f"log line exceeds {self.max_line_length} characters")
        match = self.pattern.fullmatch(line.rstrip())
        if match is None:
            raise DecodeError(self.handle.key, offset, "line does not match the log format")
        value: dict[str, Any] = match.groupdict()
        for name in _INT_FIELDS:
            raw = value.get(name)
            if raw is not None:
                value[name] = None if raw == "-" else int(raw)
        value["originalLine"] = line
        return value


class LogDecoder(Decoder):
    """
    Parses access log lines into their fields.

    Args:
        mode: "common", "combined" or "regex"
        regex: Pattern with named groups, required when mode is "regex"
        max_line_length: Longer lines are decode errors
    """

    name = "log"

    def __init__(
        self,
        charset: str = "utf-8",
        mode: str = "common",
        regex: str | None = None,
        max_line_length: int | None = 1024,
    ):
        super().__init__(charset)
        if mode == "regex":
            if not regex:
                raise ValueError("log mode 'regex' requires a 'regex' pattern")
            pattern = regex
        elif mode in LOG_MODES:
            pattern = LOG_MODES[mode]
        else:
            raise ValueError(f"Unknown log mode '{mode}'. Available: {sorted(LOG_MODES) + ['regex']}")
        self.mode = mode
        self.pattern = re.compile(pattern)
        self.max_line_length = max_line_length

    def reader(self, stream: BinaryIO, handle: ObjectHandle, start_offset: int) -> LogRecordReader:
        return LogRecordReader(
            stream,
            handle,
            start_offset,
            charset=self.charset,
            pattern=self.pattern,
            max_line_length=self.max_line_length,
        )
