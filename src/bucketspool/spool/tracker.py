"""
Spool tracker: which object is being read, how far, and what is still owed.

The state machine is a set of pure transition functions. Each takes the
current SpoolState and returns the next state plus the effects the driver must
run (open/close a reader, post-process an object). SpoolTracker is the driver:
it commits the new state, then runs the effects against the store, decoder and
post-processor. Because state is committed first, a failing effect leaves the
tracker in a phase from which the same effect is attempted again.

Phases::

    IDLE --start_object--> READING --finish_object--> OBJECT_EXHAUSTED
                              |                        ^     |
                              +------fail_object-------+   drain
                                                             v
    IDLE <--------------complete_drain------------------ DRAINING

``abandon_object`` returns READING to IDLE for an object that vanished.
Post-processing of a finished or failed object is deferred until the next
object is requested, so the cursor ``(key, -1)`` is emitted, and can be
persisted by the caller, before the object moves.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

from bucketspool.decoders.base import END_OF_OBJECT, DecodedRecord, Decoder, RecordReader
from bucketspool.exceptions import DecodeError, ObjectNotFoundError, SpoolStateError, StoreError
from bucketspool.spool.cursor import OBJECT_DONE, Cursor
from bucketspool.spool.lister import ObjectLister
from bucketspool.spool.postprocess import PostProcessor
from bucketspool.spool.types import ObjectHandle, Outcome, PostProcessAction
from bucketspool.stores.base import ObjectStore
from bucketspool.utils.logging import get_logger

logger = get_logger("bucketspool.spool.tracker")


class SpoolPhase(str, Enum):
    IDLE = "idle"
    READING = "reading"
    OBJECT_EXHAUSTED = "object_exhausted"
    DRAINING = "draining"


@dataclass(frozen=True)
class Obligation:
    """A post-processing duty still owed for ``handle``."""

    handle: ObjectHandle
    outcome: Outcome


@dataclass(frozen=True)
class SpoolState:
    phase: SpoolPhase = SpoolPhase.IDLE
    cursor: Cursor | None = None
    current: ObjectHandle | None = None
    obligation: Obligation | None = None


# --- Effects -----------------------------------------------------------------


@dataclass(frozen=True)
class OpenObject:
    handle: ObjectHandle
    offset: int


@dataclass(frozen=True)
class CloseObject:
    handle: ObjectHandle


@dataclass(frozen=True)
class ApplyPostProcess:
    handle: ObjectHandle
    outcome: Outcome


Effect = Union[OpenObject, CloseObject, ApplyPostProcess]
Transition = tuple[SpoolState, list[Effect]]


# --- Transitions ---------------------------------------------------------------


def _require(state: SpoolState, transition: str, *phases: SpoolPhase) -> None:
    if state.phase not in phases:
        raise SpoolStateError(transition, state.phase.value)


def _move(cursor: Cursor | None, key: str, offset: int) -> Cursor:
    if cursor is None:
        return Cursor(key=key, offset=offset)
    return cursor.moved_to(key, offset)


def initial_state(
    cursor: Cursor | None,
    consumed: ObjectHandle | None = None,
    outcome: Outcome = Outcome.SUCCESS,
) -> SpoolState:
    """
    State to resume from ``cursor``.

    ``consumed`` is the object a done cursor points at, when it is still at
    the source: its post-processing for ``outcome`` was interrupted and is
    owed again.
    """
    if cursor is not None and cursor.is_done and consumed is not None:
        return SpoolState(
            phase=SpoolPhase.OBJECT_EXHAUSTED,
            cursor=cursor,
            obligation=Obligation(consumed, outcome),
        )
    return SpoolState(cursor=cursor)


def start_object(state: SpoolState, handle: ObjectHandle) -> Transition:
    """IDLE -> READING. Resumes at the cursor offset when the cursor is on ``handle``."""
    _require(state, "start object", SpoolPhase.IDLE)
    cursor = state.cursor
    offset = 0
    if cursor is not None:
        if handle.key < cursor.key or (handle.key == cursor.key and cursor.is_done):
            raise SpoolStateError(f"start '{handle.key}' behind cursor '{cursor.key}'", state.phase.value)
        if handle.key == cursor.key:
            offset = cursor.offset
    next_state = SpoolState(
        phase=SpoolPhase.READING,
        cursor=_move(cursor, handle.key, offset),
        current=handle,
    )
    return next_state, [OpenObject(handle, offset)]


def advance(state: SpoolState, offset: int) -> Transition:
    _require(state, "advance", SpoolPhase.READING)
    assert state.cursor is not None and state.current is not None
    if offset < state.cursor.offset:
        raise SpoolStateError(f"move back from offset {state.cursor.offset} to {offset}", state.phase.value)
    return replace(state, cursor=state.cursor.moved_to(state.current.key, offset)), []


def finish_object(state: SpoolState) -> Transition:
    """READING -> OBJECT_EXHAUSTED. The success post-processing is owed, not run."""
    _require(state, "finish object", SpoolPhase.READING)
    handle = state.current
    assert state.cursor is not None and handle is not None
    next_state = SpoolState(
        phase=SpoolPhase.OBJECT_EXHAUSTED,
        cursor=state.cursor.moved_to(handle.key, OBJECT_DONE),
        obligation=Obligation(handle, Outcome.SUCCESS),
    )
    return next_state, [CloseObject(handle)]


def fail_object(state: SpoolState) -> Transition:
    """READING -> OBJECT_EXHAUSTED. The error post-processing is owed, not run."""
    _require(state, "fail object", SpoolPhase.READING)
    handle = state.current
    assert state.cursor is not None and handle is not None
    next_state = SpoolState(
        phase=SpoolPhase.OBJECT_EXHAUSTED,
        cursor=state.cursor.moved_to(handle.key, OBJECT_DONE),
        obligation=Obligation(handle, Outcome.ERROR),
    )
    return next_state, [CloseObject(handle)]


def abandon_object(state: SpoolState) -> Transition:
    """READING -> IDLE without post-processing, for an object that vanished."""
    _require(state, "abandon object", SpoolPhase.READING)
    assert state.current is not None
    return SpoolState(phase=SpoolPhase.IDLE, cursor=state.cursor), [CloseObject(state.current)]


def drain(state: SpoolState) -> Transition:
    """
    OBJECT_EXHAUSTED -> DRAINING, running the owed post-processing.

    Also accepted in DRAINING, where it re-runs a post-processing attempt
    that failed.
    """
    _require(state, "drain", SpoolPhase.OBJECT_EXHAUSTED, SpoolPhase.DRAINING)
    obligation = state.obligation
    assert obligation is not None
    return replace(state, phase=SpoolPhase.DRAINING), [ApplyPostProcess(obligation.handle, obligation.outcome)]


def complete_drain(state: SpoolState) -> Transition:
    """DRAINING -> IDLE. The cursor stays on the drained object."""
    _require(state, "complete drain", SpoolPhase.DRAINING)
    return SpoolState(phase=SpoolPhase.IDLE, cursor=state.cursor), []


# --- Driver --------------------------------------------------------------------


class SpoolTracker:
    """
    Runs the spool state machine against a store.

    Args:
        store: Object store holding the source objects
        lister: Lister over the source Location
        decoder: Decoder used to open objects
        post_processor: Executor for the success and error actions
        success_action: Action applied to fully consumed objects
        error_action: Action applied to objects that failed decoding
    """

    def __init__(
        self,
        store: ObjectStore,
        lister: ObjectLister,
        decoder: Decoder,
        post_processor: PostProcessor,
        success_action: PostProcessAction,
        error_action: PostProcessAction,
    ):
        self.store = store
        self.lister = lister
        self.decoder = decoder
        self.post_processor = post_processor
        self.actions = {Outcome.SUCCESS: success_action, Outcome.ERROR: error_action}
        self.state = SpoolState()
        self._reader: RecordReader | None = None

    @property
    def cursor(self) -> Cursor | None:
        return self.state.cursor

    @property
    def phase(self) -> SpoolPhase:
        return self.state.phase

    @property
    def current(self) -> ObjectHandle | None:
        return self.state.current

    def reset(self, cursor: Cursor | None) -> None:
        """Drop any in-flight state and resume from ``cursor``."""
        self._close_reader()
        consumed = None
        outcome: Outcome | None = None
        if cursor is not None and cursor.is_done:
            consumed = self.lister.find(cursor.key)
            if consumed is not None:
                outcome = self._recover_outcome(consumed)
                if outcome is None:
                    consumed = None
                else:
                    logger.info(
                        f"'{cursor.key}' was consumed but is still at the source, "
                        f"applying its {outcome.value} action again"
                    )
        self.state = initial_state(cursor, consumed, outcome or Outcome.SUCCESS)
        logger.debug(f"Tracker reset to {cursor} ({self.state.phase.value})")

    def _recover_outcome(self, handle: ObjectHandle) -> Outcome | None:
        """
        Whether a consumed object succeeded or failed, by decoding it again.

        A done cursor does not say which, and applying the wrong action could
        delete an object the error action keeps. Decoding is deterministic, so
        a full pass tells. Skipped when both actions are the same. Returns
        None if the object vanished meanwhile.
        """
        if self.actions[Outcome.SUCCESS] == self.actions[Outcome.ERROR]:
            return Outcome.SUCCESS
        try:
            reader = self.decoder.open(self.store, handle, 0)
        except ObjectNotFoundError:
            return None
        except DecodeError:
            return Outcome.ERROR
        try:
            while reader.read_next() is not END_OF_OBJECT:
                pass
        except DecodeError as e:
            logger.debug(f"'{handle.key}' fails decoding at offset {e.offset}")
            return Outcome.ERROR
        except ObjectNotFoundError:
            return None
        finally:
            reader.close()
        return Outcome.SUCCESS

    def next_object(self) -> ObjectHandle | None:
        """
        The object to read from, starting the next one when needed.

        Settles any owed post-processing first, so the previous object is
        archived or deleted before a later object is opened.

        Returns:
            The object being read, or None when no eligible object is left

        Raises:
            PostProcessError: Owed post-processing failed; the next call
                retries it
        """
        if self.state.phase is SpoolPhase.READING:
            return self.state.current
        if self.state.phase in (SpoolPhase.OBJECT_EXHAUSTED, SpoolPhase.DRAINING):
            self._apply(drain(self.state))
            self._apply(complete_drain(self.state))

        cursor = self.state.cursor
        handle = None
        if cursor is not None and not cursor.is_done:
            handle = self.lister.find(cursor.key)
            if handle is None:
                logger.warning(f"'{cursor.key}' disappeared before it was fully read, moving on")
        if handle is None:
            handle = self.lister.next_object(cursor.key if cursor else None)

        while handle is not None:
            logger.info(f"Reading {handle.bucket}/{handle.key}")
            try:
                self._apply(start_object(self.state, handle))
                return handle
            except ObjectNotFoundError:
                logger.warning(f"'{handle.key}' disappeared before it could be opened, skipping")
                self._apply(abandon_object(self.state))
                handle = self.lister.next_object(handle.key)
        return None

    def read_next(self) -> DecodedRecord | None:
        """
        Next record of the current object.

        Returns None once the object is exhausted; the tracker is then
        OBJECT_EXHAUSTED and the cursor marks the object done. Also returns
        None, back in IDLE, when the object vanished before it could be
        reopened; the next call to ``next_object`` moves past it.

        Raises:
            DecodeError: The next record is malformed. The cursor stays at the
                last good offset and the reader is dropped, so a later read
                reopens the object there.
        """
        _require(self.state, "read", SpoolPhase.READING)
        handle = self.state.current
        cursor = self.state.cursor
        assert handle is not None and cursor is not None
        if self._reader is None:
            try:
                self._reader = self.decoder.open(self.store, handle, cursor.offset)
            except ObjectNotFoundError:
                logger.warning(f"'{handle.key}' disappeared before it was fully read, moving on")
                self._apply(abandon_object(self.state))
                return None

        try:
            result = self._reader.read_next()
        except (DecodeError, StoreError):
            self._close_reader()
            raise

        if result is END_OF_OBJECT:
            logger.debug(f"Reached end of {handle.bucket}/{handle.key}")
            self._apply(finish_object(self.state))
            return None
        assert isinstance(result, DecodedRecord)
        self._apply(advance(self.state, result.next_offset))
        return result

    def fail_current(self, error: Exception | None = None) -> None:
        """
        Give up on the current object. Its error action runs when the next
        object is requested, like the success action of a finished object.
        """
        handle = self.state.current
        if handle is not None:
            reason = f": {error}" if error is not None else ""
            logger.warning(f"Giving up on {handle.bucket}/{handle.key}{reason}")
        self._apply(fail_object(self.state))

    def close(self) -> None:
        self._close_reader()

    def _apply(self, transition: Transition) -> None:
        state, effects = transition
        self.state = state
        for effect in effects:
            self._run(effect)

    def _run(self, effect: Effect) -> None:
        if isinstance(effect, OpenObject):
            self._close_reader()
            self._reader = self.decoder.open(self.store, effect.handle, effect.offset)
        elif isinstance(effect, CloseObject):
            self._close_reader()
        elif isinstance(effect, ApplyPostProcess):
            self.post_processor.apply(effect.handle, self.actions[effect.outcome])
        else:
            raise TypeError(f"Unknown effect: {effect!r}")

    def _close_reader(self) -> None:
        if self._reader is not None:
            reader, self._reader = self._reader, None
            reader.close()
