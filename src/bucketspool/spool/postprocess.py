"""
Post-processing of finished objects: delete or archive (copy, verify, delete).
"""

from __future__ import annotations

from bucketspool.exceptions import PostProcessError, StoreError
from bucketspool.spool.types import ActionKind, Location, ObjectHandle, PostProcessAction
from bucketspool.stores.base import ObjectStore
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.spool.postprocess")


class PostProcessor:
    """
    Applies a PostProcessAction to an object of the source Location.

    Archive always copies first and deletes the source only after the copy has
    been verified, so a failure at any step leaves the object at the source.
    Failures are raised as PostProcessError and never retried here.
    """

    def __init__(self, store: ObjectStore, source: Location):
        self.store = store
        self.source = source

    def archive_key(self, handle: ObjectHandle, destination: Location) -> str:
        """Destination key: destination folder + key relative to the source folder."""
        return f"{destination.prefix}{self.source.relative_key(handle.key)}"

    def apply(self, handle: ObjectHandle, action: PostProcessAction) -> None:
        """
        Run ``action`` against ``handle`` to completion or failure.

        Raises:
            PostProcessError: If the copy, verification or delete fails
        """
        if action.kind is ActionKind.NONE:
            return
        if action.kind is ActionKind.DELETE:
            self._delete(handle, action)
            logger.info(f"Deleted {handle.bucket}/{handle.key}")
            return
        if action.kind is ActionKind.ARCHIVE:
            if action.destination is None:
                raise PostProcessError(handle.key, str(action), "copy", "archive action has no destination")
            target_key = self.archive_key(handle, action.destination)
            self._copy(handle, action, target_key)
            self._verify(handle, action, target_key)
            self._delete(handle, action)
            logger.info(f"Archived {handle.bucket}/{handle.key} to {action.destination.bucket}/{target_key}")
            return
        raise PostProcessError(handle.key, str(action), "dispatch", f"unsupported action {action.kind!r}")

    def _copy(self, handle: ObjectHandle, action: PostProcessAction, target_key: str) -> None:
        assert action.destination is not None
        try:
            self.store.copy_object(handle.bucket, handle.key, action.destination.bucket, target_key)
        except StoreError as e:
            raise PostProcessError(handle.key, str(action), "copy", e.message) from e

    def _verify(self, handle: ObjectHandle, action: PostProcessAction, target_key: str) -> None:
        assert action.destination is not None
        try:
            copied = self.store.head_object(action.destination.bucket, target_key)
        except StoreError as e:
            raise PostProcessError(handle.key, str(action), "verify", e.message) from e
        if copied is None:
            raise PostProcessError(handle.key, str(action), "verify", f"copy '{target_key}' not found")
        if copied.size != handle.size:
            raise PostProcessError(
                handle.key,
                str(action),
                "verify",
                f"copy '{target_key}' has {copied.size} bytes, expected {handle.size}",
            )

    def _delete(self, handle: ObjectHandle, action: PostProcessAction) -> None:
        try:
            self.store.delete_object(handle.bucket, handle.key)
        except StoreError as e:
            raise PostProcessError(handle.key, str(action), "delete", e.message) from e
