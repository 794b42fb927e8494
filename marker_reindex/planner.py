"""Sequential reindexing plans."""

from __future__ import annotations

import logging

from .exceptions import PlanError
from .models import Marker, RenamePlanEntry
from .scanner import format_marker

logger = logging.getLogger(__name__)


def plan_reindexing(
    markers: list[Marker], insertion_offset: int, new_marker_number: int
) -> list[RenamePlanEntry]:
    """Build the rename plan for an insertion.

    Every existing marker at or after `insertion_offset` moves up by exactly
    one, and the inserted marker takes over the lowest number among them.
    Each entry's inverse is itself a valid rename, so a plan is trivially
    reversible.

    Args:
        markers: Existing markers (the inserted one excluded).
        insertion_offset: Offset where the new content was inserted.
        new_marker_number: Provisional number of the inserted marker.

    Returns:
        list[RenamePlanEntry]: The inserted marker's entry first (only when
            its number changes), then one entry per shifted marker in ascending
            number order. Empty when no marker follows the insertion.

    Examples:
        plan_reindexing(extract_all_markers("[16] a [17] b [18]"), 5, 19)
        # [19]->[17] (new), [17]->[18], [18]->[19]
    """
    to_shift = sorted(
        (marker for marker in markers if marker.position >= insertion_offset),
        key=lambda marker: marker.number,
    )
    if not to_shift:
        return []

    final_number = to_shift[0].number
    plan: list[RenamePlanEntry] = []

    if new_marker_number != final_number:
        plan.append(
            RenamePlanEntry(
                old_marker=format_marker(new_marker_number),
                new_marker=format_marker(final_number),
                old_number=new_marker_number,
                new_number=final_number,
                is_new_marker=True,
                position=insertion_offset,
            )
        )

    for marker in to_shift:
        plan.append(
            RenamePlanEntry(
                old_marker=format_marker(marker.number),
                new_marker=format_marker(marker.number + 1),
                old_number=marker.number,
                new_number=marker.number + 1,
                position=marker.position,
            )
        )

    logger.debug(
        "Planned %d rename(s); inserted marker becomes %s",
        len(plan),
        format_marker(final_number),
    )
    return plan


def check_plan(plan: list[RenamePlanEntry]) -> None:
    """Enforce rename plan invariants before any rewrite.

    Args:
        plan: Entries to check.

    Raises:
        PlanError: If more than one entry moves the inserted marker, or if old
            or new numbers repeat.
    """
    if sum(1 for entry in plan if entry.is_new_marker) > 1:
        raise PlanError("more than one entry moves the inserted marker")

    old_numbers = [entry.old_number for entry in plan]
    if len(set(old_numbers)) != len(old_numbers):
        raise PlanError(f"repeated old numbers in {sorted(old_numbers)}")

    new_numbers = [entry.new_number for entry in plan]
    if len(set(new_numbers)) != len(new_numbers):
        raise PlanError(f"repeated new numbers in {sorted(new_numbers)}")

    for entry in plan:
        if entry.old_number < 0 or entry.new_number < 0:
            raise PlanError(f"negative marker number in {entry.old_marker} -> {entry.new_marker}")
