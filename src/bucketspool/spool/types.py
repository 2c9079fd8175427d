"""
Type definitions shared by the spooler components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Location:
    """
    A logical root to enumerate: bucket + folder + filename pattern.

    ``folder`` is kept as configured; use ``prefix`` for the normalised form
    (no leading delimiter, exactly one trailing delimiter, empty for the
    bucket root).
    """

    bucket: str
    folder: str = ""
    pattern: str = "*"
    delimiter: str = "/"

    @property
    def prefix(self) -> str:
        folder = self.folder.strip()
        if not self.delimiter:
            return folder
        folder = folder.strip(self.delimiter)
        return f"{folder}{self.delimiter}" if folder else ""

    def same_place(self, other: Location) -> bool:
        """Whether both locations enumerate the same bucket folder."""
        return self.bucket == other.bucket and self.prefix == other.prefix

    def lists_from(self, other: Location) -> bool:
        """
        Whether objects written under ``other`` would be listed from here.

        With a delimiter only direct children of the folder are listed, so
        that means the same place. Without one the listing is recursive and
        covers every key starting with this prefix.
        """
        if self.delimiter:
            return self.same_place(other)
        return self.bucket == other.bucket and other.prefix.startswith(self.prefix)

    def relative_key(self, key: str) -> str:
        """Key with this location's prefix removed."""
        prefix = self.prefix
        if prefix and key.startswith(prefix):
            return key[len(prefix) :]
        return key

    def uri(self, key: str = "") -> str:
        return f"s3://{self.bucket}/{key or self.prefix}"


@dataclass(frozen=True, order=True)
class ObjectHandle:
    """Immutable snapshot of one listed object. Ordered by key."""

    key: str
    bucket: str
    size: int = field(default=0, compare=False)
    last_modified: datetime | None = field(default=None, compare=False)


class ActionKind(str, Enum):
    """What happens to an object after it is consumed or fails."""

    NONE = "none"
    DELETE = "delete"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class PostProcessAction:
    """
    A post-processing action. ``destination`` is only used by ARCHIVE.

    Two independent instances are configured per source: one for objects
    consumed successfully, one for objects that failed decoding.
    """

    kind: ActionKind = ActionKind.NONE
    destination: Location | None = None

    @classmethod
    def none(cls) -> PostProcessAction:
        return cls(ActionKind.NONE)

    @classmethod
    def delete(cls) -> PostProcessAction:
        return cls(ActionKind.DELETE)

    @classmethod
    def archive(cls, destination: Location) -> PostProcessAction:
        return cls(ActionKind.ARCHIVE, destination)

    def __str__(self) -> str:
        if self.kind is ActionKind.ARCHIVE and self.destination is not None:
            return f"archive to {self.destination.uri()}"
        return self.kind.value


class Outcome(str, Enum):
    """Why an object is being post-processed."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Record:
    """One decoded record plus where it came from."""

    value: dict[str, Any]
    bucket: str
    key: str
    offset: int

    @property
    def record_id(self) -> str:
        return f"{self.bucket}/{self.key}::{self.offset}"


@dataclass(frozen=True)
class RecordError:
    """A record that could not be decoded."""

    key: str
    offset: int
    message: str


@dataclass
class Batch:
    """Result of one produce cycle."""

    cursor: str | None
    records: list[Record] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)
