"""Marker scanning utilities."""

from __future__ import annotations

import logging

from .constants import MARKER_PATTERN
from .models import Marker

logger = logging.getLogger(__name__)


def format_marker(number: int) -> str:
    """Render the canonical bracketed form of a marker number."""
    return f"[{number}]"


def parse_marker_text(marker_text: object) -> int | None:
    """Extract the number from a bracketed marker such as ``"[17]"``.

    The whole string must be a single marker; surrounding text, signs, and
    non-ASCII digits are rejected.

    Args:
        marker_text: Candidate marker text.

    Returns:
        int | None: The marker number, or None when `marker_text` is not a
            marker.

    Examples:
        parse_marker_text("[17]")  # 17
        parse_marker_text("[abc]")  # None
    """
    if not isinstance(marker_text, str):
        return None
    match = MARKER_PATTERN.fullmatch(marker_text)
    if match is None:
        return None
    return int(match.group(1))


def is_marker_text(value: object) -> bool:
    return parse_marker_text(value) is not None


def extract_all_markers(text: object) -> list[Marker]:
    """Find every ``[n]`` marker in a text, left to right.

    Duplicate numbers are kept as separate entries. Bracketed content that is
    not made of ASCII digits (``[abc]``, ``[1a]``) is never a marker. `text`
    is always the canonical form, so ``[007]`` scans as ``[7]``.

    Args:
        text: Text to scan. Non-string input yields an empty list.

    Returns:
        list[Marker]: Markers sorted by `position` ascending.

    Examples:
        extract_all_markers("See [1] and [2].")
        extract_all_markers(None)  # []
    """
    if not isinstance(text, str) or not text:
        return []

    markers = []
    for match in MARKER_PATTERN.finditer(text):
        number = int(match.group(1))
        # Leading zeros carry no meaning: "[007]" is marker 7
        markers.append(
            Marker(
                number=number,
                text=format_marker(number),
                position=match.start(),
                end_position=match.end(),
            )
        )
    logger.debug("Scanned %d marker(s)", len(markers))
    return markers


def find_new_marker(
    markers: list[Marker], new_marker_number: int, insertion_position: int
) -> Marker | None:
    """Locate the occurrence of a freshly inserted marker.

    The inserted marker is the first marker numbered `new_marker_number` that starts
    at or after `insertion_position`.

    Args:
        markers: Markers in text order.
        new_marker_number: Provisional number of the inserted marker.
        insertion_position: Offset where the new content was inserted.

    Returns:
        Marker | None: The inserted marker, or None when the text does not
            contain it yet.
    """
    for marker in markers:
        if marker.position >= insertion_position and marker.number == new_marker_number:
            return marker
    return None
