"""
Local filesystem object store.

Each bucket is a directory under ``root_path``; object keys are the
slash-separated paths of the files below it.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Iterator

from bucketspool.exceptions import ObjectNotFoundError, StoreError
from bucketspool.spool.types import ObjectHandle
from bucketspool.stores.base import ObjectStore, is_direct_child


class FilesystemObjectStore(ObjectStore):
    """
    Filesystem-backed object store.

    Config example:
        store:
          type: filesystem
          config:
            root_path: /data/spool
    """

    def __init__(self, name: str = "filesystem", config: dict[str, Any] | None = None):
        super().__init__(name, config)

    @property
    def root_path(self) -> Path:
        return Path(self._cfg.get("root_path", "data"))

    def _bucket_path(self, bucket: str) -> Path:
        root = self.root_path.resolve()
        path = (root / bucket).resolve()
        if path == root or root not in path.parents:
            raise StoreError(f"Invalid bucket name: {bucket!r}", operation="bucket", bucket=bucket)
        return path

    def _object_path(self, bucket: str, key: str) -> Path:
        bucket_path = self._bucket_path(bucket)
        path = (bucket_path / key).resolve()
        # Ensure the key cannot escape its bucket
        if bucket_path not in path.parents:
            raise StoreError(f"Path traversal detected in key {key!r}", operation="resolve", bucket=bucket, key=key)
        return path

    def _handle(self, bucket: str, key: str, path: Path) -> ObjectHandle:
        stat = path.stat()
        return ObjectHandle(
            key=key,
            bucket=bucket,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        delimiter: str = "",
        start_after: str | None = None,
    ) -> Iterator[ObjectHandle]:
        bucket_path = self._bucket_path(bucket)
        if not bucket_path.is_dir():
            raise ObjectNotFoundError(f"Bucket not found: {bucket}", operation="list", bucket=bucket)

        keys = []
        for dirpath, _dirnames, filenames in os.walk(bucket_path):
            for filename in filenames:
                if filename.endswith(".part"):
                    continue
                keys.append((Path(dirpath) / filename).relative_to(bucket_path).as_posix())

        for key in sorted(keys):
            if not key.startswith(prefix):
                continue
            if start_after is not None and key <= start_after:
                continue
            if not is_direct_child(key, prefix, delimiter):
                continue
            path = bucket_path / key
            if not path.exists():
                continue
            yield self._handle(bucket, key, path)

    def open_object(self, bucket: str, key: str, start: int = 0) -> BinaryIO:
        path = self._object_path(bucket, key)
        try:
            stream = open(path, "rb")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(
                f"Object not found: {bucket}/{key}", operation="get", bucket=bucket, key=key
            ) from e
        stream.seek(start)
        return stream

    def head_object(self, bucket: str, key: str) -> ObjectHandle | None:
        path = self._object_path(bucket, key)
        if not path.is_file():
            return None
        return self._handle(bucket, key, path)

    def copy_object(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        source = self._object_path(src_bucket, src_key)
        if not source.is_file():
            raise ObjectNotFoundError(
                f"Object not found: {src_bucket}/{src_key}", operation="copy", bucket=src_bucket, key=src_key
            )
        target = self._object_path(dst_bucket, dst_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        # Copy to a temp file first for atomicity
        tmp = target.with_suffix(target.suffix + ".part")
        try:
            shutil.copy2(source, tmp)
            os.replace(tmp, target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StoreError(
                f"Copy {src_bucket}/{src_key} -> {dst_bucket}/{dst_key} failed: {e}",
                operation="copy",
                bucket=src_bucket,
                key=src_key,
            ) from e

    def delete_object(self, bucket: str, key: str) -> None:
        path = self._object_path(bucket, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Delete {bucket}/{key} failed: {e}", operation="delete", bucket=bucket, key=key) from e

    def bucket_exists(self, bucket: str) -> bool:
        try:
            return self._bucket_path(bucket).is_dir()
        except StoreError:
            return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', root_path='{self.root_path}')"
