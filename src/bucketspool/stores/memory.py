"""
In-memory object store for testing.

Provides a process-local bucket/key space useful for exercising the spooler
without a real object store.

Example:
    from bucketspool.stores import InMemoryObjectStore

    store = InMemoryObjectStore()
    store.create_bucket("mybucket")
    store.put_object("mybucket", "file1.log", "Hello World")
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO, Iterator

from bucketspool.exceptions import ObjectNotFoundError
from bucketspool.spool.types import ObjectHandle
from bucketspool.stores.base import ObjectStore, is_direct_child


@dataclass
class _StoredObject:
    data: bytes
    last_modified: datetime


class InMemoryObjectStore(ObjectStore):
    """
    In-memory object store for tests and development.

    Features:
    - No external dependencies
    - S3-like semantics: ordered listings, exclusive start_after, delimiter
      listings, idempotent deletes
    - Contents survive close() so tests can inspect buckets afterwards
    """

    def __init__(self, name: str = "memory", config: dict[str, Any] | None = None):
        super().__init__(name, config)
        self._buckets: dict[str, dict[str, _StoredObject]] = {}
        self.opened = False
        for bucket in self._cfg.get("buckets", []):
            self.create_bucket(bucket)

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.opened = False

    # --- test helpers --------------------------------------------------------

    def create_bucket(self, bucket: str) -> None:
        self._buckets.setdefault(bucket, {})

    def put_object(self, bucket: str, key: str, body: bytes | str) -> None:
        data = body.encode() if isinstance(body, str) else body
        self._bucket(bucket)[key] = _StoredObject(data=data, last_modified=datetime.now(timezone.utc))

    def get_bytes(self, bucket: str, key: str) -> bytes:
        return self._object(bucket, key).data

    def keys(self, bucket: str, prefix: str = "") -> list[str]:
        return sorted(k for k in self._bucket(bucket) if k.startswith(prefix))

    def object_count(self, bucket: str, prefix: str = "") -> int:
        return len(self.keys(bucket, prefix))

    # --- ObjectStore ---------------------------------------------------------

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        delimiter: str = "",
        start_after: str | None = None,
    ) -> Iterator[ObjectHandle]:
        objects = self._bucket(bucket)
        # Snapshot keys so callers may delete while iterating
        for key in sorted(objects):
            if not key.startswith(prefix):
                continue
            if start_after is not None and key <= start_after:
                continue
            if not is_direct_child(key, prefix, delimiter):
                continue
            stored = objects.get(key)
            if stored is None:
                continue
            yield ObjectHandle(key=key, bucket=bucket, size=len(stored.data), last_modified=stored.last_modified)

    def open_object(self, bucket: str, key: str, start: int = 0) -> BinaryIO:
        return io.BytesIO(self._object(bucket, key).data[start:])

    def head_object(self, bucket: str, key: str) -> ObjectHandle | None:
        stored = self._bucket(bucket).get(key)
        if stored is None:
            return None
        return ObjectHandle(key=key, bucket=bucket, size=len(stored.data), last_modified=stored.last_modified)

    def copy_object(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        source = self._object(src_bucket, src_key)
        self._bucket(dst_bucket)[dst_key] = _StoredObject(data=source.data, last_modified=datetime.now(timezone.utc))

    def delete_object(self, bucket: str, key: str) -> None:
        self._bucket(bucket).pop(key, None)

    def bucket_exists(self, bucket: str) -> bool:
        return bucket in self._buckets

    def _bucket(self, bucket: str) -> dict[str, _StoredObject]:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise ObjectNotFoundError(f"Bucket not found: {bucket}", operation="bucket", bucket=bucket) from None

    def _object(self, bucket: str, key: str) -> _StoredObject:
        try:
            return self._bucket(bucket)[key]
        except KeyError:
            raise ObjectNotFoundError(
                f"Object not found: {bucket}/{key}", operation="get", bucket=bucket, key=key
            ) from None
