"""Data models for marker-reindex."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

ReferenceMapping = dict[str, str]


@dataclass(frozen=True)
class Marker:
    """One inline reference marker found in a text.

    Attributes:
        number: Numeric value inside the brackets.
        text: Canonical rendering, ``"[" + number + "]"``.
        position: Zero-based offset of the opening bracket.
        end_position: Offset immediately after the closing bracket.
    """

    number: int
    text: str
    position: int
    end_position: int


class InsertionType(Enum):
    """Where an insertion landed relative to the existing markers."""

    NO_MARKERS = "no_markers"
    BEFORE_FIRST = "before_first"
    BETWEEN_MARKERS = "between_markers"
    AFTER_LAST = "after_last"
    INSIDE_MARKER = "inside_marker"
    UNCLASSIFIED = "unclassified"


@dataclass
class InsertionClassification:
    """Classification of a single insertion event.

    Attributes:
        type: Category of the insertion.
        needs_reindexing: Whether markers after the insertion must shift.
        before_marker: Marker immediately preceding the insertion, if any.
        after_marker: Marker immediately following the insertion, if any.
        affected_markers: Markers whose number must increase, in text order.
        description: Short human-readable summary.
        warning: Set for degenerate cases such as insertions inside a marker.
    """

    type: InsertionType
    needs_reindexing: bool = False
    before_marker: Marker | None = None
    after_marker: Marker | None = None
    affected_markers: list[Marker] = field(default_factory=list)
    description: str = ""
    warning: str | None = None


@dataclass
class InsertionContext:
    """Everything the planner needs to reindex after one insertion.

    Attributes:
        insertion_position: Offset where the new content was inserted.
        new_marker: Provisional text of the inserted marker, e.g. ``"[19]"``.
        new_marker_number: Number parsed from `new_marker`.
        existing_markers: Markers present before the insertion, in text order.
        classification: Result of classifying the insertion.
        markers_to_reindex: Markers that will be shifted by one.
        new_marker_final_number: Number the inserted marker ends up with.
        affected_range: Lowest and highest number among shifted markers.
        needs_reindexing: Always True for contexts returned by detection.
    """

    insertion_position: int
    new_marker: str
    new_marker_number: int
    existing_markers: list[Marker]
    classification: InsertionClassification
    markers_to_reindex: list[Marker]
    new_marker_final_number: int
    affected_range: tuple[int, int] | None = None
    needs_reindexing: bool = True


@dataclass(frozen=True)
class RenamePlanEntry:
    """One planned rename of a marker number.

    Attributes:
        old_marker: Bracketed text before the rename.
        new_marker: Bracketed text after the rename.
        old_number: Number before the rename.
        new_number: Number after the rename.
        is_new_marker: True only for the entry moving the inserted marker.
        position: Text offset the entry is anchored to.
    """

    old_marker: str
    new_marker: str
    old_number: int
    new_number: int
    is_new_marker: bool = False
    position: int = 0

    @property
    def is_existing_marker(self) -> bool:
        return not self.is_new_marker


@dataclass
class RewriteEntryResult:
    entry: RenamePlanEntry
    replacements: int
    processed: bool
    warning: str | None = None


@dataclass
class RewriteResult:
    """Outcome of applying a rename plan to a text.

    Attributes:
        success: False only when the input or the plan was unusable.
        new_content: Rewritten text, or the original text on failure.
        replacements: Total number of substitutions performed.
        entries: Per-entry results in processing order.
        error: Reason for failure, when `success` is False.
    """

    success: bool
    new_content: str
    replacements: int = 0
    entries: list[RewriteEntryResult] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class SequenceGap:
    start: int
    end: int
    missing: tuple[int, ...]


@dataclass
class ValidationResult:
    """Result of checking the numeric integrity of a marker sequence.

    Attributes:
        is_valid: True when `errors` is empty.
        errors: Conditions that must be fixed.
        warnings: Non-fatal observations.
        marker_count: Number of markers scanned.
        sequence: Marker numbers sorted ascending, duplicates included.
        unique_sequence: Distinct marker numbers sorted ascending.
        duplicates: Numbers occurring more than once.
        gaps: Non-consecutive jumps in `unique_sequence`.
        first_marker: Lowest number present, if any.
        last_marker: Highest number present, if any.
        message: Informational note, set when nothing was found.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    marker_count: int = 0
    sequence: list[int] = field(default_factory=list)
    unique_sequence: list[int] = field(default_factory=list)
    duplicates: list[int] = field(default_factory=list)
    gaps: list[SequenceGap] = field(default_factory=list)
    first_marker: int | None = None
    last_marker: int | None = None
    message: str | None = None


@dataclass
class CheckResult:
    """Result of one auxiliary integrity check.

    Attributes:
        is_valid: True when `errors` is empty.
        errors: Hard failures.
        warnings: Soft findings.
        stats: Check-specific details (orphans, failed changes, ...).
    """

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False


@dataclass
class IntegrityReport:
    """Aggregate of every post-reindex check.

    Attributes:
        is_valid: False if any check reported an error.
        errors: Errors from all checks, in check order.
        warnings: Warnings from all checks, in check order.
        checks: Individual results keyed by check name.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checks: dict[str, ValidationResult | CheckResult] = field(default_factory=dict)


@dataclass(frozen=True)
class EditorState:
    scroll_top: int = 0
    scroll_left: int = 0
    focused: bool = False


@dataclass(frozen=True)
class StateBackup:
    """Point-in-time snapshot used to roll a reindex back.

    Attributes:
        operation_id: Identifier of the operation that took the snapshot.
        timestamp: Creation time, seconds since the epoch.
        original_content: Full editor text.
        original_reference_mapping: Read-only copy of the mapping.
        cursor_position: Cursor offset, 0 when unavailable.
        editor_state: Cosmetic viewport state.
        is_error_backup: True when the editor could not be read at all.
    """

    operation_id: str
    timestamp: float
    original_content: str
    original_reference_mapping: Mapping[str, str]
    cursor_position: int = 0
    editor_state: EditorState = field(default_factory=EditorState)
    is_error_backup: bool = False


class ReindexState(Enum):
    """Stages of one reindexing transaction."""

    BACKUP = auto()
    PLAN = auto()
    REWRITE = auto()
    APPLY = auto()
    REMAP = auto()
    VALIDATE = auto()
    COMMIT = auto()
    ROLLBACK = auto()


@dataclass
class ReindexResult:
    """Output of a reindex computed without touching the editor.

    Attributes:
        success: Whether a new text could be produced.
        new_content: Rewritten text.
        reindexing_map: The rename plan that was applied.
        affected_markers_count: Number of plan entries.
        total_replacements: Substitutions performed by the rewriter.
        rewrite: Detailed rewriter output, when a rewrite ran.
        validation: Strict sequential validation of `new_content`.
    """

    success: bool
    new_content: str
    reindexing_map: list[RenamePlanEntry] = field(default_factory=list)
    affected_markers_count: int = 0
    total_replacements: int = 0
    rewrite: RewriteResult | None = None
    validation: ValidationResult | None = None


@dataclass
class FallbackState:
    """Degraded-service state returned once every retry failed.

    Attributes:
        mode: ``"fallback"``, or ``"critical_failure"`` when the fallback state
            itself could not be built.
        original_error: Message of the error that triggered the fallback.
        preserved_functions: Which capabilities remain available.
        recommendations: Suggested next steps for the user.
        context: Extra details about the failed operation.
    """

    mode: str
    original_error: str
    preserved_functions: dict[str, bool]
    recommendations: list[str]
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class RollbackableResult:
    """Result of a reindex run under backup and rollback protection.

    Attributes:
        success: Whether the reindex was committed.
        operation_id: Identifier shared by logs and the backup.
        result: Reindex output, on success.
        new_reference_mapping: Synchronized mapping, on success.
        error: What went wrong, on failure.
        backup: Snapshot taken before the attempt.
        validation: Integrity report, when validation ran.
        rollback_executed: Whether an automatic rollback fully succeeded.
        rollback: Restores the backup on demand; returns rollback success.
        attempt: Attempt number that produced this result (retry wrapper).
        total_attempts: Attempts allowed or made (retry wrapper).
        auto_recovery_applied: Names of auto-repair passes that changed state.
        fallback_state: Degraded state, when every attempt failed.
    """

    success: bool
    operation_id: str
    result: ReindexResult | None = None
    new_reference_mapping: ReferenceMapping | None = None
    error: BaseException | None = None
    backup: StateBackup | None = None
    validation: IntegrityReport | None = None
    rollback_executed: bool | None = None
    rollback: Callable[[], bool] | None = field(default=None, repr=False)
    attempt: int = 1
    total_attempts: int = 1
    auto_recovery_applied: list[str] = field(default_factory=list)
    fallback_state: FallbackState | None = None


@dataclass
class FixResult:
    """Outcome of one auto-repair pass.

    Attributes:
        success: False when the pass could not run.
        new_content: Repaired text (original text when nothing changed).
        fixed: Distinct problems addressed (duplicate numbers, renumbered markers).
        removed: Marker occurrences deleted.
        renames: Old number to new number, when every occurrence of an old
            number received the same new number.
        error: Reason for failure.
    """

    success: bool
    new_content: str
    fixed: int = 0
    removed: int = 0
    renames: dict[int, int] = field(default_factory=dict)
    error: str | None = None


@dataclass
class RecoveryResult:
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    fixes_applied: list[str]
    fix_attempts: int
    final_content: str
    final_mapping: ReferenceMapping
