"""
Cursor codec.

The cursor is handled as a structured value everywhere inside the spooler and
only turned into a string token at the boundary with the calling runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from bucketspool.exceptions import CursorError

OBJECT_DONE = -1
SEPARATOR = "::"


@dataclass(frozen=True)
class Cursor:
    """Position in the stream: object key, in-object offset, emission sequence."""

    key: str
    offset: int
    sequence: int = 0

    @property
    def is_done(self) -> bool:
        """The object at ``key`` has been fully consumed."""
        return self.offset == OBJECT_DONE

    def moved_to(self, key: str, offset: int) -> Cursor:
        """Next emission of this cursor at a new position."""
        return replace(self, key=key, offset=offset, sequence=self.sequence + 1)


def encode_cursor(cursor: Cursor | None) -> str | None:
    if cursor is None:
        return None
    return f"{cursor.key}{SEPARATOR}{cursor.offset}{SEPARATOR}{cursor.sequence}"


def decode_cursor(token: str | None) -> Cursor | None:
    """
    Decode a cursor token. Empty or missing tokens mean start of stream.

    Parsed from the right, so object keys may themselves contain ``::``.

    Raises:
        CursorError: If the token is not a well-formed cursor
    """
    if not token:
        return None
    parts = token.rsplit(SEPARATOR, 2)
    if len(parts) != 3 or not parts[0]:
        raise CursorError(token, "expected '<key>::<offset>::<sequence>'")
    key, offset_text, sequence_text = parts
    try:
        offset = int(offset_text)
        sequence = int(sequence_text)
    except ValueError as e:
        raise CursorError(token, "offset and sequence must be integers") from e
    if offset < OBJECT_DONE:
        raise CursorError(token, f"offset must be >= {OBJECT_DONE}")
    if sequence < 0:
        raise CursorError(token, "sequence must be >= 0")
    return Cursor(key=key, offset=offset, sequence=sequence)
