"""Insertion classification relative to existing markers."""

from __future__ import annotations

import logging

from .models import InsertionClassification, InsertionContext, InsertionType, Marker
from .scanner import extract_all_markers, find_new_marker, parse_marker_text

logger = logging.getLogger(__name__)


def classify_insertion(insertion_offset: int, markers: list[Marker]) -> InsertionClassification:
    """Classify an insertion against markers sorted by position.

    Rules are evaluated in order: no markers, before the first marker, after
    the last marker, strictly between two adjacent markers, inside a marker,
    and finally unclassified. Only ``before_first`` and ``between_markers``
    require reindexing; appending after the last marker never does.

    Args:
        insertion_offset: Offset where text was inserted.
        markers: Existing markers in text order.

    Returns:
        InsertionClassification: The category, the bracketing markers, and
            the markers whose number must increase.

    Examples:
        classify_insertion(0, extract_all_markers("a [1] b [2]")).type
        # InsertionType.BEFORE_FIRST
    """
    if not markers:
        return InsertionClassification(
            type=InsertionType.NO_MARKERS, description="No existing markers"
        )

    first, last = markers[0], markers[-1]

    if insertion_offset < first.position:
        return InsertionClassification(
            type=InsertionType.BEFORE_FIRST,
            needs_reindexing=True,
            after_marker=first,
            affected_markers=list(markers),
            description=f"Insertion before the first marker {first.text}",
        )

    if insertion_offset > last.end_position:
        return InsertionClassification(
            type=InsertionType.AFTER_LAST,
            before_marker=last,
            description=f"Insertion after the last marker {last.text}",
        )

    for index, (current, following) in enumerate(zip(markers, markers[1:])):
        if current.end_position < insertion_offset < following.position:
            return InsertionClassification(
                type=InsertionType.BETWEEN_MARKERS,
                needs_reindexing=True,
                before_marker=current,
                after_marker=following,
                affected_markers=list(markers[index + 1 :]),
                description=f"Insertion between {current.text} and {following.text}",
            )

    for marker in markers:
        if marker.position <= insertion_offset <= marker.end_position:
            return InsertionClassification(
                type=InsertionType.INSIDE_MARKER,
                before_marker=marker,
                after_marker=marker,
                description=f"Insertion inside marker {marker.text}",
                warning="Inserting inside a marker may corrupt it",
            )

    return InsertionClassification(
        type=InsertionType.UNCLASSIFIED, description="Insertion position not classified"
    )


def identify_reindexing_range(classification: InsertionClassification) -> tuple[int, int] | None:
    """Return the lowest and highest number among the affected markers."""
    if not classification.needs_reindexing or not classification.affected_markers:
        return None
    numbers = [marker.number for marker in classification.affected_markers]
    return min(numbers), max(numbers)


def detect_insertion_between_markers(
    content: object, insertion_position: object, new_marker: object
) -> InsertionContext | None:
    """Decide whether an insertion requires renumbering the markers after it.

    `content` is the text after the insertion. When it already contains
    `new_marker` at or after `insertion_position`, that occurrence is the
    inserted marker and is left out of the existing markers.

    Args:
        content: Full document text.
        insertion_position: Offset where the new content was inserted.
        new_marker: Provisional text of the inserted marker, e.g. ``"[19]"``.

    Returns:
        InsertionContext | None: The reindexing context, or None when the input
            is invalid or no renumbering is needed.

    Examples:
        detect_insertion_between_markers("a [1] b [3] c [2]", 6, "[3]")
    """
    if not isinstance(content, str) or not content:
        return None
    if isinstance(insertion_position, bool) or not isinstance(insertion_position, int):
        return None
    if insertion_position < 0:
        return None

    new_marker_number = parse_marker_text(new_marker)
    if new_marker_number is None:
        logger.debug("Ignoring insertion with malformed marker %r", new_marker)
        return None

    markers = extract_all_markers(content)
    inserted = find_new_marker(markers, new_marker_number, insertion_position)
    existing = [marker for marker in markers if marker is not inserted]
    if not existing:
        return None

    classification = classify_insertion(insertion_position, existing)
    logger.debug("Insertion at %d classified as %s", insertion_position, classification.type.value)
    if classification.warning:
        logger.warning(classification.warning)
    if not classification.needs_reindexing:
        return None

    affected_range = identify_reindexing_range(classification)
    if affected_range is None:
        return None

    return InsertionContext(
        insertion_position=insertion_position,
        new_marker=new_marker,
        new_marker_number=new_marker_number,
        existing_markers=existing,
        classification=classification,
        markers_to_reindex=classification.affected_markers,
        # The inserted marker takes the slot of the lowest shifted number
        new_marker_final_number=affected_range[0],
        affected_range=affected_range,
    )
