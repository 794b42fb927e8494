from __future__ import annotations

import pytest

from marker_reindex.models import RenamePlanEntry
from marker_reindex.planner import plan_reindexing
from marker_reindex.rewriter import rewrite_content
from marker_reindex.scanner import extract_all_markers


def _entry(old: int, new: int, is_new: bool = False) -> RenamePlanEntry:
    return RenamePlanEntry(f"[{old}]", f"[{new}]", old, new, is_new_marker=is_new)


def test_rewrites_inserted_marker_without_collisions():
    content = "Texto [16] meio [19] [17] final [18] fim"
    markers = [marker for marker in extract_all_markers(content) if marker.number != 19]

    result = rewrite_content(content, plan_reindexing(markers, 15, 19))

    assert result.success
    assert result.new_content == "Texto [16] meio [17] [18] final [19] fim"
    assert result.replacements == 3


def test_entries_run_in_descending_old_number():
    result = rewrite_content("[1] [2]", [_entry(1, 2), _entry(2, 3)])

    assert result.new_content == "[2] [3]"
    assert [item.entry.old_number for item in result.entries] == [2, 1]


def test_all_occurrences_are_replaced():
    result = rewrite_content("[2] a [2] b [2]", [_entry(2, 3)])

    assert result.new_content == "[3] a [3] b [3]"
    assert result.entries[0].replacements == 3


def test_leading_zero_markers_are_rewritten():
    result = rewrite_content("a [02] b", [_entry(2, 3)])

    assert result.new_content == "a [3] b"


def test_missing_marker_is_a_warning_not_a_failure():
    result = rewrite_content("[1] a [2]", [_entry(2, 3), _entry(7, 8)])

    assert result.success
    assert result.new_content == "[1] a [3]"
    missing = next(item for item in result.entries if item.entry.old_number == 7)
    assert missing.processed is False
    assert missing.replacements == 0
    assert missing.warning == "Marker [7] not found in content"


def test_empty_plan_returns_text_unchanged():
    result = rewrite_content("[1] a", [])

    assert result.success
    assert result.new_content == "[1] a"
    assert result.replacements == 0


@pytest.mark.parametrize("text", [None, 12, b"[1]"])
def test_non_text_input_fails(text):
    result = rewrite_content(text, [_entry(1, 2)])

    assert result.success is False
    assert result.error


@pytest.mark.parametrize("plan", [None, "plan", [("[1]", "[2]")]])
def test_invalid_plan_returns_original_text(plan):
    result = rewrite_content("[1] a", plan)

    assert result.success is False
    assert result.new_content == "[1] a"


def test_plan_with_repeated_numbers_is_refused():
    result = rewrite_content("[1] [2]", [_entry(1, 3), _entry(2, 3)])

    assert result.success is False
    assert result.new_content == "[1] [2]"
    assert "repeated new numbers" in result.error


def test_placeholder_characters_are_refused():
    text = "[1] \ue000 [2]"

    result = rewrite_content(text, [_entry(1, 2), _entry(2, 3)])

    assert result.success is False
    assert result.new_content == text


def test_input_text_is_not_mutated():
    text = "[1] a [2]"
    plan = [_entry(2, 3)]

    rewrite_content(text, plan)

    assert text == "[1] a [2]"
    assert plan == [_entry(2, 3)]
