"""
Object lister: lazy, ordered, filtered enumeration of a Location.
"""

from __future__ import annotations

import fnmatch
from typing import Iterator

from bucketspool.spool.types import Location, ObjectHandle
from bucketspool.stores.base import ObjectStore, is_direct_child
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.spool.lister")


class ObjectLister:
    """
    Enumerates eligible objects under a Location in ascending key order.

    Eligible objects sit directly in the Location's folder, are not directory
    markers, and have a base name matching the Location's pattern. Every call
    re-issues the listing, so objects uploaded after start-up are picked up,
    but nothing at or before the resume key is ever returned.
    """

    def __init__(self, store: ObjectStore, location: Location):
        self.store = store
        self.location = location

    def is_eligible(self, key: str) -> bool:
        prefix = self.location.prefix
        delimiter = self.location.delimiter
        if not key.startswith(prefix) or key == prefix:
            return False
        if delimiter and key.endswith(delimiter):
            # Zero-byte pseudo-directory
            return False
        if not is_direct_child(key, prefix, delimiter):
            return False
        name = key.rsplit(delimiter, 1)[-1] if delimiter else key[len(prefix) :]
        return fnmatch.fnmatchcase(name, self.location.pattern)

    def iter_objects(self, after: str | None = None) -> Iterator[ObjectHandle]:
        """
        Yield eligible objects with key strictly greater than ``after``.

        Args:
            after: Resume key; None lists from the start of the folder
        """
        last = after
        for handle in self.store.list_objects(
            self.location.bucket,
            self.location.prefix,
            delimiter=self.location.delimiter,
            start_after=after,
        ):
            key = handle.key
            if last is not None and key <= last:
                logger.warning(f"Store returned '{key}' out of order after '{last}', skipping")
                continue
            last = key
            if not self.is_eligible(key):
                logger.debug(f"Skipping ineligible key '{key}'")
                continue
            yield handle

    def next_object(self, after: str | None = None) -> ObjectHandle | None:
        """First eligible object after ``after`` from a fresh listing, or None."""
        for handle in self.iter_objects(after):
            return handle
        return None

    def find(self, key: str) -> ObjectHandle | None:
        """The handle for ``key`` if it is still present and eligible at the source."""
        if not self.is_eligible(key):
            return None
        return self.store.head_object(self.location.bucket, key)
