"""Opt-in repair passes for damaged marker sequences."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .constants import MARKER_PATTERN, MAX_FIX_ATTEMPTS
from .mapping import sync_reference_mapping, update_reference_mapping
from .models import FixResult, RecoveryResult, ReferenceMapping, RenamePlanEntry
from .scanner import extract_all_markers, format_marker
from .validator import validate_post_reindexing_integrity

logger = logging.getLogger(__name__)


def fix_duplicate_markers(content: object) -> FixResult:
    """Remove repeated markers, keeping the first occurrence of each number.

    Args:
        content: Text to repair.

    Returns:
        FixResult: The repaired text; `fixed` counts duplicated numbers and
            `removed` counts deleted occurrences.

    Examples:
        fix_duplicate_markers("a [1] b [1] c").new_content  # "a [1] b  c"
    """
    if not isinstance(content, str):
        return FixResult(success=False, new_content="", error="Content must be a string")

    seen: set[int] = set()
    duplicated: set[int] = set()
    removed = 0

    def keep_first(match) -> str:
        nonlocal removed
        number = int(match.group(1))
        if number not in seen:
            seen.add(number)
            return match.group(0)
        duplicated.add(number)
        removed += 1
        return ""

    new_content = MARKER_PATTERN.sub(keep_first, content)
    if removed:
        logger.info(
            "Removed %d duplicate occurrence(s) of %s",
            removed,
            ", ".join(format_marker(number) for number in sorted(duplicated)),
        )
    return FixResult(success=True, new_content=new_content, fixed=len(duplicated), removed=removed)


def fix_sequence_gaps(content: object) -> FixResult:
    """Renumber every marker consecutively from 1 in text order.

    Args:
        content: Text to repair.

    Returns:
        FixResult: The renumbered text; `fixed` counts markers whose number
            changed. `renames` is filled when each old number maps to exactly
            one new number, so a reference mapping can follow along.

    Examples:
        fix_sequence_gaps("[2] a [5] b").new_content  # "[1] a [2] b"
    """
    if not isinstance(content, str):
        return FixResult(success=False, new_content="", error="Content must be a string")

    markers = extract_all_markers(content)
    if not markers:
        return FixResult(success=True, new_content=content)

    assigned: dict[int, set[int]] = {}
    for expected, marker in enumerate(markers, start=1):
        assigned.setdefault(marker.number, set()).add(expected)

    counter = 0

    def renumber(match) -> str:
        nonlocal counter
        counter += 1
        return format_marker(counter)

    new_content = MARKER_PATTERN.sub(renumber, content)
    fixed = sum(
        1 for expected, marker in enumerate(markers, start=1) if marker.number != expected
    )

    renames: dict[int, int] = {}
    if all(len(targets) == 1 for targets in assigned.values()):
        renames = {
            old: next(iter(targets))
            for old, targets in assigned.items()
            if next(iter(targets)) != old
        }

    if fixed:
        logger.info("Renumbered %d marker(s) to close sequence gaps", fixed)
    return FixResult(success=True, new_content=new_content, fixed=fixed, renames=renames)


def _renames_to_plan(renames: dict[int, int]) -> list[RenamePlanEntry]:
    return [
        RenamePlanEntry(
            old_marker=format_marker(old),
            new_marker=format_marker(new),
            old_number=old,
            new_number=new,
        )
        for old, new in sorted(renames.items())
    ]


def validate_with_auto_recovery(
    content: str,
    mapping: Mapping[str, str],
    strict_mode: bool = True,
    attempt_auto_fix: bool = True,
    fix_gaps: bool = False,
    max_fix_attempts: int = MAX_FIX_ATTEMPTS,
) -> RecoveryResult:
    """Validate content and mapping, repairing what the requested passes can.

    Each round runs the full integrity check and, if it fails, applies in
    order: duplicate stripping, gap closing (only when `fix_gaps` is set), and
    mapping synchronization. Mapping entries whose marker no longer occurs in
    the content are synchronized away even when the content is otherwise
    valid. Rounds stop once nothing is left to repair, when no pass changed
    anything, or when `max_fix_attempts` is reached.

    Args:
        content: Text to validate.
        mapping: Bidirectional title/marker table.
        strict_mode: Passed to the sequential check.
        attempt_auto_fix: When False, only validate.
        fix_gaps: Allow renumbering markers to close gaps.
        max_fix_attempts: Maximum number of repair rounds.

    Returns:
        RecoveryResult: Final validity, the passes applied, and the repaired
            content and mapping.
    """
    current_content = content
    current_mapping: ReferenceMapping = dict(mapping)
    fixes_applied: list[str] = []
    attempts = 0

    while True:
        report = validate_post_reindexing_integrity(
            current_content, current_mapping, [], strict_mode
        )
        mapping_check = report.checks["mapping_consistency"]
        stale_titles = bool(mapping_check.stats.get("missing_markers"))
        if (report.is_valid and not stale_titles) or not attempt_auto_fix:
            break
        if attempts >= max_fix_attempts:
            break

        sequential = report.checks["sequential_integrity"]
        changed = False

        if sequential.duplicates:
            fix = fix_duplicate_markers(current_content)
            if fix.success and fix.new_content != current_content:
                current_content = fix.new_content
                fixes_applied.append("duplicate_markers_removed")
                changed = True

        if fix_gaps and (sequential.gaps or sequential.first_marker not in (None, 1)):
            fix = fix_sequence_gaps(current_content)
            if fix.success and fix.new_content != current_content:
                current_content = fix.new_content
                current_mapping = update_reference_mapping(
                    current_mapping, _renames_to_plan(fix.renames)
                )
                fixes_applied.append("sequence_gaps_fixed")
                changed = True

        if not mapping_check.is_valid or stale_titles:
            synced = sync_reference_mapping(current_content, current_mapping)
            if synced != current_mapping:
                current_mapping = synced
                fixes_applied.append("mapping_synchronized")
                changed = True

        if not changed:
            break
        attempts += 1

    return RecoveryResult(
        is_valid=report.is_valid,
        errors=report.errors,
        warnings=report.warnings,
        fixes_applied=fixes_applied,
        fix_attempts=attempts,
        final_content=current_content,
        final_mapping=current_mapping,
    )
