"""
Tests for the spool tracker state machine and its driver.
"""

from unittest.mock import MagicMock

import pytest

from bucketspool.decoders.json_lines import JsonLinesDecoder
from bucketspool.decoders.text import TextDecoder
from bucketspool.exceptions import PostProcessError, SpoolStateError, StoreError
from bucketspool.spool.cursor import OBJECT_DONE, Cursor
from bucketspool.spool.lister import ObjectLister
from bucketspool.spool.postprocess import PostProcessor
from bucketspool.spool.tracker import (
    ApplyPostProcess,
    CloseObject,
    Obligation,
    OpenObject,
    SpoolPhase,
    SpoolState,
    SpoolTracker,
    abandon_object,
    advance,
    complete_drain,
    drain,
    fail_object,
    finish_object,
    initial_state,
    start_object,
)
from bucketspool.spool.types import Location, ObjectHandle, Outcome, PostProcessAction
from bucketspool.stores.memory import InMemoryObjectStore

A = ObjectHandle("a.log", "b", 10)
B = ObjectHandle("b.log", "b", 10)


def reading(handle=A, offset=0, sequence=0):
    return SpoolState(SpoolPhase.READING, Cursor(handle.key, offset, sequence), current=handle)


class TestTransitions:
    """Tests for the pure transition functions."""

    def test_start_from_nothing(self):
        state, effects = start_object(SpoolState(), A)
        assert state.phase is SpoolPhase.READING
        assert state.cursor == Cursor("a.log", 0, 0)
        assert state.current == A
        assert effects == [OpenObject(A, 0)]

    def test_start_resumes_same_key(self):
        state, effects = start_object(SpoolState(cursor=Cursor("a.log", 42, 7)), A)
        assert state.cursor == Cursor("a.log", 42, 8)
        assert effects == [OpenObject(A, 42)]

    def test_start_next_key_from_zero(self):
        state, effects = start_object(SpoolState(cursor=Cursor("a.log", OBJECT_DONE, 3)), B)
        assert state.cursor == Cursor("b.log", 0, 4)
        assert effects == [OpenObject(B, 0)]

    def test_start_behind_cursor_rejected(self):
        with pytest.raises(SpoolStateError):
            start_object(SpoolState(cursor=Cursor("b.log", 0, 1)), A)

    def test_start_consumed_object_rejected(self):
        with pytest.raises(SpoolStateError):
            start_object(SpoolState(cursor=Cursor("a.log", OBJECT_DONE, 1)), A)

    def test_advance(self):
        state, effects = advance(reading(offset=5, sequence=2), 12)
        assert state.cursor == Cursor("a.log", 12, 3)
        assert state.phase is SpoolPhase.READING
        assert effects == []

    def test_advance_backwards_rejected(self):
        with pytest.raises(SpoolStateError):
            advance(reading(offset=5), 4)

    def test_finish_defers_post_processing(self):
        state, effects = finish_object(reading(offset=10, sequence=4))
        assert state.phase is SpoolPhase.OBJECT_EXHAUSTED
        assert state.cursor == Cursor("a.log", OBJECT_DONE, 5)
        assert state.obligation == Obligation(A, Outcome.SUCCESS)
        assert effects == [CloseObject(A)]

    def test_drain(self):
        exhausted, _ = finish_object(reading())
        state, effects = drain(exhausted)
        assert state.phase is SpoolPhase.DRAINING
        assert state.cursor == exhausted.cursor
        assert effects == [ApplyPostProcess(A, Outcome.SUCCESS)]

    def test_drain_again_retries(self):
        draining, _ = drain(finish_object(reading())[0])
        state, effects = drain(draining)
        assert state == draining
        assert effects == [ApplyPostProcess(A, Outcome.SUCCESS)]

    def test_fail_defers_post_processing(self):
        state, effects = fail_object(reading(offset=3, sequence=1))
        assert state.phase is SpoolPhase.OBJECT_EXHAUSTED
        assert state.cursor == Cursor("a.log", OBJECT_DONE, 2)
        assert state.obligation == Obligation(A, Outcome.ERROR)
        assert effects == [CloseObject(A)]

    def test_drain_after_failure(self):
        state, effects = drain(fail_object(reading())[0])
        assert state.phase is SpoolPhase.DRAINING
        assert effects == [ApplyPostProcess(A, Outcome.ERROR)]

    def test_complete_drain_keeps_cursor(self):
        draining, _ = drain(fail_object(reading())[0])
        state, effects = complete_drain(draining)
        assert state == SpoolState(SpoolPhase.IDLE, draining.cursor)
        assert effects == []

    def test_abandon(self):
        state, effects = abandon_object(reading(offset=4, sequence=1))
        assert state == SpoolState(SpoolPhase.IDLE, Cursor("a.log", 4, 1))
        assert effects == [CloseObject(A)]

    @pytest.mark.parametrize(
        "transition,state",
        [
            (lambda s: start_object(s, B), reading()),
            (lambda s: advance(s, 1), SpoolState()),
            (finish_object, SpoolState()),
            (fail_object, SpoolState()),
            (drain, SpoolState()),
            (drain, reading()),
            (complete_drain, reading()),
            (abandon_object, SpoolState()),
        ],
    )
    def test_invalid_transitions(self, transition, state):
        with pytest.raises(SpoolStateError):
            transition(state)

    def test_initial_state_with_pending_object(self):
        state = initial_state(Cursor("a.log", OBJECT_DONE, 2), A)
        assert state.phase is SpoolPhase.OBJECT_EXHAUSTED
        assert state.obligation == Obligation(A, Outcome.SUCCESS)

    def test_initial_state_with_failed_object(self):
        state = initial_state(Cursor("a.log", OBJECT_DONE, 2), A, Outcome.ERROR)
        assert state.obligation == Obligation(A, Outcome.ERROR)

    def test_initial_state_without_pending_object(self):
        assert initial_state(Cursor("a.log", OBJECT_DONE, 2)) == SpoolState(cursor=Cursor("a.log", OBJECT_DONE, 2))
        assert initial_state(None) == SpoolState()


SOURCE = Location("incoming", "logs", "*.log")


@pytest.fixture
def store():
    store = InMemoryObjectStore(config={"config": {"buckets": ["incoming", "archive"]}})
    store.put_object("incoming", "logs/a.log", "a1\na2\n")
    store.put_object("incoming", "logs/b.log", "b1\n")
    return store


def make_tracker(store, success=None, error=None, post_processor=None):
    return SpoolTracker(
        store=store,
        lister=ObjectLister(store, SOURCE),
        decoder=TextDecoder(),
        post_processor=post_processor or PostProcessor(store, SOURCE),
        success_action=success or PostProcessAction.archive(Location("archive", "done")),
        error_action=error or PostProcessAction.archive(Location("archive", "failed")),
    )


def read_all(tracker):
    values = []
    while (record := tracker.read_next()) is not None:
        values.append(record.value["text"])
    return values


class TestSpoolTracker:
    """Tests for the imperative driver against the in-memory store."""

    def test_reads_objects_in_order(self, store):
        tracker = make_tracker(store)
        assert tracker.next_object().key == "logs/a.log"
        assert read_all(tracker) == ["a1", "a2"]
        assert tracker.phase is SpoolPhase.OBJECT_EXHAUSTED
        assert tracker.cursor.key == "logs/a.log" and tracker.cursor.is_done

        assert tracker.next_object().key == "logs/b.log"
        assert read_all(tracker) == ["b1"]
        assert tracker.next_object() is None
        assert tracker.phase is SpoolPhase.IDLE

    def test_archive_deferred_until_next_object(self, store):
        tracker = make_tracker(store)
        tracker.next_object()
        read_all(tracker)
        assert store.object_exists("incoming", "logs/a.log")

        tracker.next_object()
        assert not store.object_exists("incoming", "logs/a.log")
        assert store.get_bytes("archive", "done/a.log") == b"a1\na2\n"

    def test_every_cursor_change_increments_sequence(self, store):
        tracker = make_tracker(store)
        sequences = []
        tracker.next_object()
        sequences.append(tracker.cursor.sequence)
        while tracker.read_next() is not None:
            sequences.append(tracker.cursor.sequence)
        sequences.append(tracker.cursor.sequence)
        assert sequences == sorted(set(sequences))

    def test_reset_mid_object(self, store):
        tracker = make_tracker(store)
        tracker.reset(Cursor("logs/a.log", 3, 5))
        assert tracker.next_object().key == "logs/a.log"
        assert read_all(tracker) == ["a2"]

    def test_reset_mid_object_that_vanished(self, store):
        store.delete_object("incoming", "logs/a.log")
        tracker = make_tracker(store)
        tracker.reset(Cursor("logs/a.log", 3, 5))
        assert tracker.next_object().key == "logs/b.log"
        assert tracker.cursor == Cursor("logs/b.log", 0, 6)

    def test_reset_consumed_object_still_present_is_post_processed(self, store):
        tracker = make_tracker(store)
        tracker.reset(Cursor("logs/a.log", OBJECT_DONE, 9))
        assert tracker.phase is SpoolPhase.OBJECT_EXHAUSTED

        assert tracker.next_object().key == "logs/b.log"
        assert store.object_exists("archive", "done/a.log")
        assert not store.object_exists("incoming", "logs/a.log")

    def test_reset_consumed_object_gone(self, store):
        store.delete_object("incoming", "logs/a.log")
        tracker = make_tracker(store)
        tracker.reset(Cursor("logs/a.log", OBJECT_DONE, 9))
        assert tracker.phase is SpoolPhase.IDLE
        assert tracker.next_object().key == "logs/b.log"

    def test_fail_current_uses_error_action(self, store):
        tracker = make_tracker(store)
        tracker.next_object()
        tracker.read_next()
        tracker.fail_current()

        assert tracker.phase is SpoolPhase.OBJECT_EXHAUSTED
        assert tracker.cursor.key == "logs/a.log" and tracker.cursor.is_done
        assert store.object_exists("incoming", "logs/a.log")

        assert tracker.next_object().key == "logs/b.log"
        assert store.get_bytes("archive", "failed/a.log") == b"a1\na2\n"
        assert not store.object_exists("incoming", "logs/a.log")
        assert not store.object_exists("archive", "done/a.log")

    def test_reset_failed_object_gets_error_action(self, store):
        store.put_object("incoming", "logs/a.log", '{"n": 1}\nnot json\n')
        tracker = make_tracker(store, success=PostProcessAction.delete(), error=PostProcessAction.none())
        tracker.decoder = JsonLinesDecoder()
        tracker.reset(Cursor("logs/a.log", OBJECT_DONE, 4))
        assert tracker.state.obligation == Obligation(ObjectHandle("logs/a.log", "incoming"), Outcome.ERROR)

        assert tracker.next_object().key == "logs/b.log"
        assert store.object_exists("incoming", "logs/a.log")

    def test_reset_same_actions_skips_decoding(self, store):
        decoder = MagicMock()
        tracker = make_tracker(store, success=PostProcessAction.delete(), error=PostProcessAction.delete())
        tracker.decoder = decoder
        tracker.reset(Cursor("logs/a.log", OBJECT_DONE, 4))
        assert tracker.state.obligation.outcome is Outcome.SUCCESS
        decoder.open.assert_not_called()

    def test_object_vanishing_after_read_error_is_skipped(self, store):
        tracker = make_tracker(store)
        tracker.next_object()
        tracker.read_next()

        broken = MagicMock()
        broken.read_next.side_effect = StoreError("connection reset", operation="read")
        tracker._reader = broken
        with pytest.raises(StoreError):
            tracker.read_next()
        store.delete_object("incoming", "logs/a.log")

        assert tracker.read_next() is None
        assert tracker.phase is SpoolPhase.IDLE
        assert tracker.cursor == Cursor("logs/a.log", 3, tracker.cursor.sequence)
        assert tracker.next_object().key == "logs/b.log"

    def test_post_process_failure_is_retried(self, store):
        post_processor = MagicMock()
        post_processor.apply.side_effect = [PostProcessError("logs/a.log", "archive", "copy", "boom"), None]
        tracker = make_tracker(store, post_processor=post_processor)
        tracker.next_object()
        read_all(tracker)
        cursor = tracker.cursor

        with pytest.raises(PostProcessError):
            tracker.next_object()
        assert tracker.phase is SpoolPhase.DRAINING
        assert tracker.cursor == cursor

        assert tracker.next_object().key == "logs/b.log"
        assert post_processor.apply.call_count == 2

    def test_read_error_drops_reader_and_resumes(self, store):
        tracker = make_tracker(store)
        tracker.next_object()
        assert tracker.read_next().value == {"text": "a1"}

        broken = MagicMock()
        broken.read_next.side_effect = StoreError("connection reset", operation="read")
        tracker._reader = broken
        with pytest.raises(StoreError):
            tracker.read_next()
        broken.close.assert_called_once()

        assert tracker.read_next().value == {"text": "a2"}

    def test_object_vanishing_before_open_is_skipped(self, store):
        tracker = make_tracker(store)
        real_open = store.open_object

        def open_object(bucket, key, start=0):
            if key == "logs/a.log":
                store.delete_object(bucket, key)
            return real_open(bucket, key, start)

        store.open_object = open_object
        assert tracker.next_object().key == "logs/b.log"
        assert tracker.phase is SpoolPhase.READING

    def test_read_requires_reading_phase(self, store):
        with pytest.raises(SpoolStateError):
            make_tracker(store).read_next()

    def test_close_releases_reader(self, store):
        tracker = make_tracker(store)
        tracker.next_object()
        reader = tracker._reader
        tracker.close()
        assert reader.closed
