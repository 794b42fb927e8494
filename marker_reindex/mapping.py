"""Title/marker reference mapping synchronization."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .models import ReferenceMapping, RenamePlanEntry
from .scanner import extract_all_markers, is_marker_text

logger = logging.getLogger(__name__)


def _find_title(mapping: Mapping[str, str], marker: str) -> str | None:
    for key, value in mapping.items():
        if value == marker and not is_marker_text(key):
            return key
    return None


def update_reference_mapping(
    old_mapping: object, plan: object
) -> ReferenceMapping:
    """Rewrite a bidirectional title/marker table after a rename plan.

    Titles are looked up in `old_mapping`, so entries never see each other's
    renames. All old pairs are removed before any new pair is written, which
    keeps chained renames (``[17]->[18]``, ``[18]->[19]``) from deleting each
    other's reverse entries. Entries whose old marker has no title yet, such as
    the freshly inserted marker, are skipped.

    Args:
        old_mapping: Current table; never mutated.
        plan: Rename entries.

    Returns:
        ReferenceMapping: A new table. Empty when `old_mapping` is not a
            mapping, an unchanged copy when `plan` is not a list of
            `RenamePlanEntry`.

    Examples:
        update_reference_mapping({"A": "[1]", "[1]": "A"}, plan)
    """
    if not isinstance(old_mapping, Mapping):
        return {}
    if not isinstance(plan, list) or not all(isinstance(e, RenamePlanEntry) for e in plan):
        logger.error("Invalid rename plan; mapping left unchanged")
        return dict(old_mapping)

    renames: list[tuple[str, RenamePlanEntry]] = []
    for entry in plan:
        title = _find_title(old_mapping, entry.old_marker)
        if title is None:
            logger.debug("No title for %s; skipping mapping update", entry.old_marker)
            continue
        renames.append((title, entry))

    new_mapping = dict(old_mapping)
    for title, entry in renames:
        new_mapping.pop(title, None)
        if new_mapping.get(entry.old_marker) == title:
            del new_mapping[entry.old_marker]

    renamed_titles = {title for title, _ in renames}
    for title, entry in renames:
        displaced = new_mapping.get(entry.new_marker)
        if displaced is not None and displaced not in renamed_titles:
            # Another title still claims the target marker; drop its stale pair
            logger.warning(
                "Marker %s was mapped to %r; reassigning it to %r",
                entry.new_marker,
                displaced,
                title,
            )
            if new_mapping.get(displaced) == entry.new_marker:
                del new_mapping[displaced]
        new_mapping[title] = entry.new_marker
        new_mapping[entry.new_marker] = title

    if logger.isEnabledFor(logging.DEBUG):
        changes = diff_reference_mapping(old_mapping, new_mapping)
        logger.debug(
            "Mapping updated: %d added, %d removed, %d changed",
            len(changes["added"]),
            len(changes["removed"]),
            len(changes["changed"]),
        )
    return new_mapping


def diff_reference_mapping(
    old_mapping: Mapping[str, str], new_mapping: Mapping[str, str]
) -> dict[str, list[str]]:
    """Describe the differences between two mappings.

    Returns:
        dict[str, list[str]]: ``added``, ``removed``, and ``changed`` entries
            rendered as ``"key -> value"`` strings.
    """
    added = [f"{key} -> {value}" for key, value in new_mapping.items() if key not in old_mapping]
    removed = [f"{key} -> {value}" for key, value in old_mapping.items() if key not in new_mapping]
    changed = [
        f"{key}: {value} -> {new_mapping[key]}"
        for key, value in old_mapping.items()
        if key in new_mapping and new_mapping[key] != value
    ]
    return {"added": added, "removed": removed, "changed": changed}


def sync_reference_mapping(content: str, mapping: Mapping[str, str]) -> ReferenceMapping:
    """Keep only the mapping entries whose marker occurs in `content`.

    The result is rebuilt from the title side of the table, so any broken
    reverse entries are repaired along the way.
    """
    content_markers = {marker.text for marker in extract_all_markers(content)}
    synced: ReferenceMapping = {}
    removed = 0

    for key, value in mapping.items():
        if is_marker_text(key) or not is_marker_text(value):
            continue
        if value in content_markers and value not in synced:
            synced[key] = value
            synced[value] = key
        else:
            removed += 1

    logger.debug("Synchronized mapping: kept %d title(s), removed %d", len(synced) // 2, removed)
    return synced


def build_reference_mapping(titles: Mapping[str, str]) -> ReferenceMapping:
    """Expand a ``title -> marker`` table into its bidirectional form.

    Examples:
        build_reference_mapping({"Intro": "[1]"})
        # {"Intro": "[1]", "[1]": "Intro"}
    """
    mapping: ReferenceMapping = {}
    for title, marker in titles.items():
        mapping[title] = marker
        mapping[marker] = title
    return mapping


def titles_only(mapping: Mapping[str, str]) -> dict[str, str]:
    """Return the ``title -> marker`` half of a bidirectional mapping."""
    return {
        key: value
        for key, value in mapping.items()
        if not is_marker_text(key) and is_marker_text(value)
    }
