"""Textual application of rename plans."""

from __future__ import annotations

import logging
import re

from .constants import PLACEHOLDER_CLOSE, PLACEHOLDER_OPEN, PLACEHOLDER_PATTERN
from .exceptions import PlanError
from .models import RenamePlanEntry, RewriteEntryResult, RewriteResult
from .planner import check_plan
from .scanner import format_marker

logger = logging.getLogger(__name__)


def _old_marker_pattern(number: int) -> re.Pattern[str]:
    return re.compile(rf"\[0*{number}\]")


def _placeholder(number: int) -> str:
    return f"{PLACEHOLDER_OPEN}{number}{PLACEHOLDER_CLOSE}"


def rewrite_content(text: object, plan: object) -> RewriteResult:
    """Apply a rename plan to a text.

    Entries run in descending order of old number. Each one replaces every
    occurrence of its old marker, stray duplicates included, with a
    placeholder that no later entry can match; placeholders become the new
    markers once all entries ran. A marker written by one entry is therefore
    never renamed again by another.

    An entry whose old marker does not occur is recorded as unprocessed with a
    warning; the rest of the plan still applies.

    Args:
        text: Text to rewrite. Never mutated.
        plan: Rename entries, in any order.

    Returns:
        RewriteResult: The rewritten text with per-entry counts, or
            ``success=False`` and the original text when the input or the plan
            is unusable.

    Examples:
        rewrite_content("a [1] b [2]", plan_reindexing(markers, 0, 3))
    """
    if not isinstance(text, str):
        return RewriteResult(success=False, new_content="", error="Content must be a string")
    if not isinstance(plan, list) or not all(isinstance(e, RenamePlanEntry) for e in plan):
        return RewriteResult(success=False, new_content=text, error="Plan must be a list of entries")
    if not plan:
        return RewriteResult(success=True, new_content=text)
    if PLACEHOLDER_OPEN in text or PLACEHOLDER_CLOSE in text:
        return RewriteResult(
            success=False, new_content=text, error="Content contains reserved placeholder characters"
        )

    try:
        check_plan(plan)
    except PlanError as error:
        logger.error("Refusing to rewrite: %s", error)
        return RewriteResult(success=False, new_content=text, error=str(error))

    new_content = text
    results: list[RewriteEntryResult] = []
    total = 0

    for entry in sorted(plan, key=lambda entry: entry.old_number, reverse=True):
        new_content, count = _old_marker_pattern(entry.old_number).subn(
            _placeholder(entry.new_number), new_content
        )
        total += count
        if count:
            results.append(RewriteEntryResult(entry=entry, replacements=count, processed=True))
        else:
            warning = f"Marker {entry.old_marker} not found in content"
            logger.warning(warning)
            results.append(
                RewriteEntryResult(entry=entry, replacements=0, processed=False, warning=warning)
            )

    new_content = PLACEHOLDER_PATTERN.sub(
        lambda match: format_marker(int(match.group(1))), new_content
    )
    logger.debug("Rewrote %d marker occurrence(s) across %d entries", total, len(plan))
    return RewriteResult(success=True, new_content=new_content, replacements=total, entries=results)
