"""
Batch producer: the spool source a runtime drives.

A runtime calls ``produce`` repeatedly, persisting the cursor of each batch
only after it has handled the records. Passing that cursor back resumes
exactly after the last handled record, across calls and across restarts.
"""

from __future__ import annotations

import time
from typing import Any

from bucketspool.config.settings import SpoolConfig
from bucketspool.decoders.base import Decoder
from bucketspool.decoders.registry import create_decoder
from bucketspool.exceptions import ConfigurationError, DecodeError, SpoolStateError
from bucketspool.spool.cursor import decode_cursor, encode_cursor
from bucketspool.spool.lister import ObjectLister
from bucketspool.spool.postprocess import PostProcessor
from bucketspool.spool.tracker import SpoolTracker
from bucketspool.spool.types import Batch, Record, RecordError
from bucketspool.spool.validation import ValidationIssue, has_errors, validate_buckets, validate_locations
from bucketspool.stores.base import ObjectStore
from bucketspool.stores.manager import create_store
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.spool.source")


class SpoolSource:
    """
    Reads records from the objects of one bucket folder, one object at a time.

    Lifecycle: ``init`` validates the configuration and acquires the store
    session, ``produce`` returns batches, ``destroy`` releases everything.
    Use as a context manager to guarantee release::

        with SpoolSource(config) as source:
            batch = source.produce(cursor)

    Args:
        config: Spool settings
        store: Object store to use instead of one built from ``config.store``
        decoder: Decoder to use instead of one built from ``config.data_format``
    """

    def __init__(self, config: SpoolConfig, *, store: ObjectStore | None = None, decoder: Decoder | None = None):
        self.config = config
        self.store = store if store is not None else create_store(config.store.as_dict())
        self.decoder = decoder if decoder is not None else create_decoder(config.data_format.as_dict())
        self._tracker: SpoolTracker | None = None

    @property
    def initialized(self) -> bool:
        return self._tracker is not None

    def validate(self, *, check_buckets: bool = False) -> list[ValidationIssue]:
        """
        Validate the configured locations.

        Args:
            check_buckets: Also check that every bucket exists; the store
                session must be open
        """
        config = self.config
        issues = validate_locations(config.source, config.post_processing, config.error_handling.action)
        if check_buckets:
            issues.extend(
                validate_buckets(self.store, config.source, config.post_processing, config.error_handling.action)
            )
        return issues

    def init(self) -> list[ValidationIssue]:
        """
        Validate and acquire the store session. No object is touched.

        Returns:
            Non-fatal issues found during validation

        Raises:
            ConfigurationError: If validation finds an error
        """
        if self._tracker is not None:
            return []
        issues = self.validate()
        _raise_on_errors(issues)

        self.store.open()
        try:
            bucket_issues = validate_buckets(
                self.store, self.config.source, self.config.post_processing, self.config.error_handling.action
            )
            _raise_on_errors(bucket_issues)
        except BaseException:
            self.store.close()
            raise
        issues.extend(bucket_issues)

        source = self.config.source
        self._tracker = SpoolTracker(
            store=self.store,
            lister=ObjectLister(self.store, source),
            decoder=self.decoder,
            post_processor=PostProcessor(self.store, source),
            success_action=self.config.post_processing,
            error_action=self.config.error_handling.action,
        )
        logger.info(
            f"Spooling {source.uri()} (pattern '{source.pattern}'), "
            f"on success: {self.config.post_processing}, on error: {self.config.error_handling.action}"
        )
        return issues

    def produce(
        self,
        cursor: str | None,
        max_records: int | None = None,
        time_budget: float | None = None,
    ) -> Batch:
        """
        Produce the next batch of records.

        A batch holds records from a single object and ends at the record
        limit, when the time budget runs out (checked between records), at
        the end of the object, or when no object is left. Owed
        post-processing of the previous object runs before the next object is
        opened.

        Args:
            cursor: Cursor of the last batch handled, None to start over
            max_records: Record limit (default: config batch.max_records)
            time_budget: Seconds to spend (default: config batch.max_wait_seconds)

        Returns:
            The batch; its cursor equals the input when nothing was read

        Raises:
            CursorError: If ``cursor`` is malformed
            DecodeError: If a record is malformed and stop_on_error is set
            PostProcessError: If archiving or deleting failed; retried on the
                next call
            StoreError: If the store failed; the next call resumes
        """
        tracker = self._tracker
        if tracker is None:
            raise SpoolStateError("produce", "not initialized")

        limit = max_records or self.config.batch.max_records
        budget = self.config.batch.max_wait_seconds if time_budget is None else time_budget

        resume = decode_cursor(cursor)
        if resume != tracker.cursor:
            logger.info(f"Resuming from cursor {cursor!r}")
            tracker.reset(resume)

        deadline = time.monotonic() + budget
        batch = Batch(cursor=cursor)
        while len(batch.records) < limit and time.monotonic() < deadline:
            handle = tracker.next_object()
            if handle is None:
                logger.debug("No eligible objects left")
                break
            try:
                decoded = tracker.read_next()
            except DecodeError as e:
                batch.errors.append(RecordError(key=e.key, offset=e.offset, message=e.reason))
                if self.config.error_handling.stop_on_error:
                    logger.error(f"{e.message}; stopping")
                    raise
                logger.error(e.message)
                tracker.fail_current(e)
                break
            if decoded is None:
                break
            batch.records.append(Record(value=decoded.value, bucket=handle.bucket, key=handle.key, offset=decoded.offset))

        batch.cursor = encode_cursor(tracker.cursor)
        if batch.records or batch.errors:
            logger.debug(f"Produced {len(batch.records)} records, {len(batch.errors)} errors, cursor {batch.cursor!r}")
        return batch

    def destroy(self) -> None:
        """Release the reader and the store session. Safe to call more than once."""
        tracker, self._tracker = self._tracker, None
        try:
            if tracker is not None:
                tracker.close()
        finally:
            self.store.close()

    def __enter__(self) -> SpoolSource:
        self.init()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.destroy()


def _raise_on_errors(issues: list[ValidationIssue]) -> None:
    if has_errors(issues):
        summary = "; ".join(str(issue) for issue in issues)
        raise ConfigurationError(f"Invalid spool configuration: {summary}", issues=issues)
