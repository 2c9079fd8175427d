"""
Configuration validation for spool sources.

Validation runs before any object is touched. Issues are collected rather
than raised so every problem can be reported at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from bucketspool.exceptions import StoreError
from bucketspool.spool.types import ActionKind, Location, PostProcessAction
from bucketspool.stores.base import ObjectStore


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    severity: Severity
    field: str
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.field}: {self.message}"


SUCCESS_FIELD = "post_processing"
ERROR_FIELD = "error_handling"


def validate_locations(
    source: Location,
    success_action: PostProcessAction,
    error_action: PostProcessAction,
) -> list[ValidationIssue]:
    """
    Check that archiving can never feed objects back into the source.

    An archive destination in the same bucket and folder as the source would
    make every archived object reappear as new input. Distinct bucket with the
    same folder, or same bucket with a distinct folder, is fine. A source
    without a delimiter lists recursively, so any destination below its
    prefix in the same bucket is rejected too.

    Returns:
        Issues found; empty when the configuration is valid
    """
    issues: list[ValidationIssue] = []

    if not source.bucket:
        issues.append(ValidationIssue(Severity.ERROR, "source.bucket", "Source bucket is required"))
    if not source.pattern:
        issues.append(ValidationIssue(Severity.ERROR, "source.pattern", "File name pattern is required"))

    for field_name, label, action in (
        (SUCCESS_FIELD, "Post-processing", success_action),
        (ERROR_FIELD, "Error handling", error_action),
    ):
        if action.kind is not ActionKind.ARCHIVE:
            continue
        destination = action.destination
        if destination is None or not destination.bucket:
            issues.append(
                ValidationIssue(Severity.ERROR, f"{field_name}.bucket", f"{label} archive requires a destination bucket")
            )
            continue
        if source.lists_from(destination):
            where = "the source location" if destination.same_place(source) else "inside the recursive source listing"
            issues.append(
                ValidationIssue(
                    Severity.ERROR,
                    f"{field_name}.folder",
                    f"{label} archive location {destination.uri()} is {where}; archived objects would be read again",
                )
            )

    return issues


def validate_buckets(
    store: ObjectStore,
    source: Location,
    success_action: PostProcessAction,
    error_action: PostProcessAction,
) -> list[ValidationIssue]:
    """Check that the source and every archive destination bucket exist."""
    checks = [("source.bucket", source.bucket)]
    for field_name, action in ((SUCCESS_FIELD, success_action), (ERROR_FIELD, error_action)):
        if action.kind is ActionKind.ARCHIVE and action.destination is not None and action.destination.bucket:
            checks.append((f"{field_name}.bucket", action.destination.bucket))

    issues: list[ValidationIssue] = []
    for field_name, bucket in checks:
        if not bucket:
            continue
        try:
            exists = store.bucket_exists(bucket)
        except StoreError as e:
            issues.append(ValidationIssue(Severity.ERROR, field_name, f"Cannot reach bucket '{bucket}': {e.message}"))
            continue
        if not exists:
            issues.append(ValidationIssue(Severity.ERROR, field_name, f"Bucket '{bucket}' does not exist"))
    return issues


def has_errors(issues: list[ValidationIssue]) -> bool:
    return any(issue.severity is Severity.ERROR for issue in issues)
