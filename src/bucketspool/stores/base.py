"""
Abstract object store interface.

The spooler only needs list/get/head/copy/delete primitives and a bucket
existence check; transport, auth and pagination live in the implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Iterator

from bucketspool.spool.types import ObjectHandle
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.stores.base")


class ObjectStore(ABC):
    """
    Base class for object stores.

    Implementations must return listings in ascending key order and honour
    ``start_after`` as an exclusive lower bound. When ``delimiter`` is given,
    only direct children of ``prefix`` are listed (keys whose remainder after
    the prefix contains the delimiter are left out).

    A store is a session: ``open()`` acquires clients, ``close()`` releases
    them. Using the store as a context manager guarantees the release.
    """

    def __init__(self, name: str = "default", config: dict[str, Any] | None = None):
        self.name = name
        self.config = config or {}

    @property
    def _cfg(self) -> dict[str, Any]:
        """Nested ``config`` section of the store settings."""
        return self.config.get("config", {})

    def open(self) -> None:
        """Acquire the underlying client or session."""

    def close(self) -> None:
        """Release the underlying client or session. Safe to call twice."""

    @abstractmethod
    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        delimiter: str = "",
        start_after: str | None = None,
    ) -> Iterator[ObjectHandle]:
        """Yield objects under ``prefix`` in ascending key order."""

    @abstractmethod
    def open_object(self, bucket: str, key: str, start: int = 0) -> BinaryIO:
        """Open a binary stream over the object content starting at byte ``start``."""

    @abstractmethod
    def head_object(self, bucket: str, key: str) -> ObjectHandle | None:
        """Metadata for one key, or None if it does not exist."""

    @abstractmethod
    def copy_object(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        """Server-side copy of one object."""

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete one object. Deleting a missing key is not an error."""

    @abstractmethod
    def bucket_exists(self, bucket: str) -> bool:
        """Whether the bucket exists and is reachable."""

    def object_exists(self, bucket: str, key: str) -> bool:
        return self.head_object(bucket, key) is not None

    def __enter__(self) -> ObjectStore:
        self.open()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        try:
            self.close()
        except Exception as e:
            # Don't override the original exception if one occurred
            if exc_type is None:
                raise
            logger.warning(f"Error closing store {self.name} during context exit: {e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


def is_direct_child(key: str, prefix: str, delimiter: str) -> bool:
    """Whether ``key`` sits directly under ``prefix`` (not in a sub-folder)."""
    if not delimiter:
        return True
    return delimiter not in key[len(prefix) :]
