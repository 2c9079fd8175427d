"""
S3 object store.

Provides a boto3-backed implementation of the object store primitives
(list, get, head, copy, delete) for AWS S3 and S3-compatible services.
"""

from __future__ import annotations

import io
from typing import Any, BinaryIO, Iterator, Optional

from bucketspool.exceptions import ObjectNotFoundError, StoreError, TransientStoreError
from bucketspool.spool.types import ObjectHandle
from bucketspool.stores.base import ObjectStore
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.stores.s3")

NOT_FOUND_CODES = ("404", "NoSuchKey", "NoSuchBucket", "NotFound")
TRANSIENT_CODES = (
    "500",
    "502",
    "503",
    "504",
    "InternalError",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
)


class S3ObjectStore(ObjectStore):
    """
    S3 object store with a lazily initialised boto3 client.

    Supports AWS credentials from config, environment, or IAM role.

    Config example:
        store:
          type: s3
          config:
            region: us-east-1
            access_key_id: AKIA...  # Optional, uses env/IAM if not set
            secret_access_key: ...   # Optional
            session_token: ...       # Optional (for temp creds)
            endpoint_url: ...        # Optional (for S3-compatible services)
            path_style: true         # Optional (MinIO, fake S3 servers)
            page_size: 1000          # Optional listing page size
    """

    def __init__(self, name: str = "s3", config: dict[str, Any] | None = None):
        super().__init__(name, config)
        self._client = None

    @property
    def region(self) -> Optional[str]:
        return self._cfg.get("region")

    @property
    def endpoint_url(self) -> Optional[str]:
        """Custom endpoint URL (for S3-compatible services like MinIO)."""
        return self._cfg.get("endpoint_url")

    @property
    def page_size(self) -> int:
        return int(self._cfg.get("page_size", 1000))

    def _get_client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for boto3 client initialization."""
        kwargs: dict[str, Any] = {}

        if self.region:
            kwargs["region_name"] = self.region

        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url

        # Explicit credentials from config (override env/IAM)
        access_key = self._cfg.get("access_key_id")
        secret_key = self._cfg.get("secret_access_key")
        session_token = self._cfg.get("session_token")

        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
            if session_token:
                kwargs["aws_session_token"] = session_token

        if self._cfg.get("path_style"):
            from botocore.config import Config as BotoConfig

            kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        return kwargs

    @property
    def client(self):
        """
        Get boto3 S3 client (lazy initialization).

        Returns:
            boto3.client('s3') instance
        """
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", **self._get_client_kwargs())
        return self._client

    def open(self) -> None:
        _ = self.client

    def close(self) -> None:
        """Close S3 client connections."""
        if self._client is not None and hasattr(self._client, "close"):
            self._client.close()
        self._client = None

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        delimiter: str = "",
        start_after: str | None = None,
    ) -> Iterator[ObjectHandle]:
        """
        List objects with ``list_objects_v2``, one page at a time.

        With a delimiter, sub-folders come back as CommonPrefixes and are not
        yielded.
        """
        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "PaginationConfig": {"PageSize": self.page_size}}
        if delimiter:
            params["Delimiter"] = delimiter
        if start_after:
            params["StartAfter"] = start_after

        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for obj in page.get("Contents", []):
                    yield ObjectHandle(
                        key=obj["Key"],
                        bucket=bucket,
                        size=int(obj.get("Size", 0)),
                        last_modified=obj.get("LastModified"),
                    )
        except Exception as e:
            raise _store_error(e, "list", bucket, prefix) from e

    def open_object(self, bucket: str, key: str, start: int = 0) -> BinaryIO:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if start > 0:
            kwargs["Range"] = f"bytes={start}-"
        try:
            response = self.client.get_object(**kwargs)
        except Exception as e:
            # Range starting at the end of the object: nothing left to read
            if start > 0 and _error_code(e) == "InvalidRange":
                return io.BytesIO(b"")
            raise _store_error(e, "get", bucket, key) from e
        return _S3Body(response["Body"], bucket, key)

    def head_object(self, bucket: str, key: str) -> ObjectHandle | None:
        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except Exception as e:
            if _is_not_found(e):
                return None
            raise _store_error(e, "head", bucket, key) from e
        return ObjectHandle(
            key=key,
            bucket=bucket,
            size=int(response.get("ContentLength", 0)),
            last_modified=response.get("LastModified"),
        )

    def copy_object(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        """Server-side copy; the managed transfer switches to multipart for large objects."""
        try:
            self.client.copy({"Bucket": src_bucket, "Key": src_key}, dst_bucket, dst_key)
        except Exception as e:
            raise _store_error(e, "copy", src_bucket, src_key) from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            raise _store_error(e, "delete", bucket, key) from e

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except Exception as e:
            if _is_not_found(e):
                return False
            raise _store_error(e, "head_bucket", bucket, None) from e

    def __enter__(self) -> "S3ObjectStore":
        self.open()
        return self


class _S3Body(io.RawIOBase):
    """Wraps a botocore StreamingBody so read failures surface as store errors."""

    def __init__(self, body: Any, bucket: str, key: str):
        super().__init__()
        self._body = body
        self._bucket = bucket
        self._key = key

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        try:
            return self._body.read() if size is None or size < 0 else self._body.read(size)
        except Exception as e:
            raise _store_error(e, "read", self._bucket, self._key) from e

    def close(self) -> None:
        if not self.closed:
            self._body.close()
        super().close()


def _error_code(e: Exception) -> str | None:
    response = getattr(e, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("Error", {}).get("Code")


def _http_status(e: Exception) -> int | None:
    response = getattr(e, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _is_not_found(e: Exception) -> bool:
    return _error_code(e) in NOT_FOUND_CODES or _http_status(e) == 404


def _store_error(e: Exception, operation: str, bucket: str, key: str | None) -> StoreError:
    """Map a boto3/botocore exception onto the store error taxonomy."""
    from botocore.exceptions import BotoCoreError, ClientError

    where = f"{bucket}/{key}" if key else bucket
    message = f"S3 {operation} failed for {where}: {e}"
    if isinstance(e, ClientError):
        if _is_not_found(e):
            return ObjectNotFoundError(message, operation=operation, bucket=bucket, key=key)
        status = _http_status(e) or 0
        if _error_code(e) in TRANSIENT_CODES or status >= 500:
            return TransientStoreError(message, operation=operation, bucket=bucket, key=key)
        return StoreError(message, operation=operation, bucket=bucket, key=key)
    if isinstance(e, BotoCoreError):
        # Endpoint, connection and read timeout errors
        return TransientStoreError(message, operation=operation, bucket=bucket, key=key)
    logger.debug(f"Unexpected error type from S3 {operation}: {type(e).__name__}")
    return StoreError(message, operation=operation, bucket=bucket, key=key)
