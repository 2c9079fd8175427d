"""
bucketspool exception hierarchy.

All domain-specific exceptions inherit from BucketSpoolError, making it easy
to catch any spooler error with a single base class while still allowing
fine-grained handling when needed.

Hierarchy::

    BucketSpoolError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── CursorError               - malformed resumption token
    ├── StoreError                - object store list/get/copy/delete
    │   ├── TransientStoreError   - network/timeout, safe to retry
    │   └── ObjectNotFoundError   - key or bucket vanished
    ├── DecodeError               - record-level decoding failure
    ├── PostProcessError          - archive/delete of a finished object failed
    └── SpoolStateError           - illegal spool tracker transition
"""

from __future__ import annotations

from typing import Any


class BucketSpoolError(Exception):
    """Base exception for all bucketspool errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(BucketSpoolError):
    """Raised when configuration loading, parsing, or validation fails.

    When raised by validation, ``issues`` holds every ValidationIssue found so
    the caller can surface all of them at once.
    """

    def __init__(self, message: str, *, issues: list[Any] | None = None) -> None:
        super().__init__(message, details={"issues": [str(i) for i in issues or []]})
        self.issues = list(issues or [])


# --- Cursor ------------------------------------------------------------------


class CursorError(BucketSpoolError):
    """Raised when a cursor token cannot be decoded."""

    def __init__(self, token: str, reason: str) -> None:
        super().__init__(f"Invalid cursor {token!r}: {reason}", details={"cursor": token})
        self.token = token


# --- Object store ------------------------------------------------------------


class StoreError(BucketSpoolError):
    """Raised when an object store operation fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, details={"operation": operation, "bucket": bucket, "key": key})
        self.operation = operation
        self.bucket = bucket
        self.key = key


class TransientStoreError(StoreError):
    """Raised on network or timeout failures. State is left resumable."""


class ObjectNotFoundError(StoreError):
    """Raised when a bucket or key does not exist."""


# --- Decoding ----------------------------------------------------------------


class DecodeError(BucketSpoolError):
    """Raised when a record inside an object cannot be decoded."""

    def __init__(self, key: str, offset: int, message: str) -> None:
        super().__init__(f"Cannot decode '{key}' at offset {offset}: {message}", details={"key": key, "offset": offset})
        self.key = key
        self.offset = offset
        self.reason = message


# --- Post-processing ---------------------------------------------------------


class PostProcessError(BucketSpoolError):
    """Raised when archiving or deleting a finished object fails.

    The object is left either untouched or copied-but-not-deleted; it is never
    lost. ``stage`` names the step that failed (copy, verify, delete).
    """

    def __init__(self, key: str, action: str, stage: str, message: str) -> None:
        full = f"Post-processing '{action}' of '{key}' failed during {stage}: {message}"
        super().__init__(full, details={"key": key, "action": action, "stage": stage})
        self.key = key
        self.action = action
        self.stage = stage


# --- Spool state -------------------------------------------------------------


class SpoolStateError(BucketSpoolError):
    """Raised when the spool tracker is asked for a transition its phase forbids."""

    def __init__(self, transition: str, phase: str) -> None:
        super().__init__(
            f"Cannot {transition} while spool tracker is {phase}",
            details={"transition": transition, "phase": phase},
        )
        self.transition = transition
        self.phase = phase
