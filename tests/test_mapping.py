from __future__ import annotations

import logging
from types import MappingProxyType

from marker_reindex.mapping import (
    build_reference_mapping,
    diff_reference_mapping,
    sync_reference_mapping,
    titles_only,
    update_reference_mapping,
)
from marker_reindex.models import RenamePlanEntry


def _entry(old: int, new: int, is_new: bool = False) -> RenamePlanEntry:
    return RenamePlanEntry(f"[{old}]", f"[{new}]", old, new, is_new_marker=is_new)


def test_build_reference_mapping_is_bidirectional():
    assert build_reference_mapping({"Intro": "[1]"}) == {"Intro": "[1]", "[1]": "Intro"}


def test_chained_renames_keep_every_title():
    mapping = build_reference_mapping({"Sixteen": "[16]", "Seventeen": "[17]", "Eighteen": "[18]"})
    plan = [_entry(19, 17, True), _entry(17, 18), _entry(18, 19)]

    updated = update_reference_mapping(mapping, plan)

    assert updated == build_reference_mapping(
        {"Sixteen": "[16]", "Seventeen": "[18]", "Eighteen": "[19]"}
    )


def test_entries_without_title_are_skipped():
    mapping = build_reference_mapping({"One": "[1]"})

    updated = update_reference_mapping(mapping, [_entry(5, 2, True)])

    assert updated == mapping


def test_input_mapping_is_never_mutated():
    mapping = build_reference_mapping({"One": "[1]", "Two": "[2]"})
    snapshot = dict(mapping)

    updated = update_reference_mapping(mapping, [_entry(2, 3)])

    assert mapping == snapshot
    assert updated is not mapping
    assert updated["Two"] == "[3]"
    assert "[2]" not in updated


def test_accepts_read_only_mappings():
    mapping = MappingProxyType(build_reference_mapping({"One": "[1]"}))

    assert update_reference_mapping(mapping, [_entry(1, 2)]) == {"One": "[2]", "[2]": "One"}


def test_displaced_title_loses_its_stale_pair(caplog):
    mapping = build_reference_mapping({"One": "[1]", "Two": "[2]"})

    with caplog.at_level(logging.WARNING, logger="marker_reindex.mapping"):
        updated = update_reference_mapping(mapping, [_entry(1, 2)])

    assert updated == {"One": "[2]", "[2]": "One"}
    assert "reassigning" in caplog.text


def test_invalid_arguments():
    mapping = build_reference_mapping({"One": "[1]"})

    assert update_reference_mapping(None, [_entry(1, 2)]) == {}
    assert update_reference_mapping(mapping, None) == mapping


def test_plan_with_foreign_entries_leaves_mapping_unchanged():
    mapping = build_reference_mapping({"A": "[1]"})
    plan = [{"oldMarker": "[1]", "newMarker": "[2]", "oldNumber": 1, "newNumber": 2}]

    updated = update_reference_mapping(mapping, plan)

    assert updated == mapping
    assert updated is not mapping
    assert update_reference_mapping(mapping, [_entry(1, 2), "[3]"]) == mapping


def test_diff_reference_mapping():
    old = {"A": "[1]", "B": "[2]"}
    new = {"A": "[2]", "C": "[3]"}

    assert diff_reference_mapping(old, new) == {
        "added": ["C -> [3]"],
        "removed": ["B -> [2]"],
        "changed": ["A: [1] -> [2]"],
    }


def test_sync_drops_absent_markers_and_repairs_reverse_entries():
    mapping = {"One": "[1]", "[1]": "Other", "Three": "[3]", "[3]": "Three"}

    synced = sync_reference_mapping("[1] a [2]", mapping)

    assert synced == {"One": "[1]", "[1]": "One"}


def test_titles_only():
    mapping = build_reference_mapping({"One": "[1]", "Two": "[2]"})

    assert titles_only(mapping) == {"One": "[1]", "Two": "[2]"}
