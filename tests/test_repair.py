from __future__ import annotations

from marker_reindex.mapping import build_reference_mapping
from marker_reindex.repair import (
    fix_duplicate_markers,
    fix_sequence_gaps,
    validate_with_auto_recovery,
)


def test_fix_duplicates_keeps_first_occurrence():
    result = fix_duplicate_markers("a [1] b [2] c [1] d [2] e [1]")

    assert result.success
    assert result.new_content == "a [1] b [2] c  d  e "
    assert result.fixed == 2
    assert result.removed == 3


def test_fix_duplicates_without_duplicates_is_a_noop():
    result = fix_duplicate_markers("[1] [2]")

    assert result.new_content == "[1] [2]"
    assert result.removed == 0


def test_fix_duplicates_rejects_non_text():
    assert fix_duplicate_markers(None).success is False


def test_fix_gaps_renumbers_in_text_order():
    result = fix_sequence_gaps("x [3] y [7] z [10]")

    assert result.success
    assert result.new_content == "x [1] y [2] z [3]"
    assert result.fixed == 3
    assert result.renames == {3: 1, 7: 2, 10: 3}


def test_fix_gaps_follows_position_not_number():
    result = fix_sequence_gaps("[5] a [2] b [9]")

    assert result.new_content == "[1] a [2] b [3]"
    assert result.renames == {5: 1, 9: 3}


def test_fix_gaps_omits_renames_for_duplicated_numbers():
    result = fix_sequence_gaps("[2] a [2]")

    assert result.new_content == "[1] a [2]"
    assert result.renames == {}


def test_fix_gaps_on_text_without_markers():
    result = fix_sequence_gaps("nothing here")

    assert result.success
    assert result.new_content == "nothing here"
    assert result.fixed == 0


def test_recovery_strips_duplicates():
    mapping = build_reference_mapping({"One": "[1]", "Two": "[2]"})

    result = validate_with_auto_recovery("[1] a [2] b [2]", mapping)

    assert result.is_valid
    assert result.final_content == "[1] a [2] b "
    assert result.fixes_applied == ["duplicate_markers_removed"]
    assert result.fix_attempts == 1


def test_recovery_closes_gaps_only_when_asked():
    mapping = build_reference_mapping({"One": "[1]", "Three": "[3]"})

    untouched = validate_with_auto_recovery("[1] a [3]", mapping)
    fixed = validate_with_auto_recovery("[1] a [3]", mapping, fix_gaps=True)

    assert untouched.is_valid is False
    assert untouched.final_content == "[1] a [3]"
    assert untouched.fixes_applied == []
    assert fixed.is_valid
    assert fixed.final_content == "[1] a [2]"
    assert fixed.final_mapping == build_reference_mapping({"One": "[1]", "Three": "[2]"})
    assert fixed.fixes_applied == ["sequence_gaps_fixed"]


def test_recovery_synchronizes_stale_mapping_entries():
    mapping = build_reference_mapping({"One": "[1]", "Gone": "[5]"})

    result = validate_with_auto_recovery("[1] a", mapping)

    assert result.is_valid
    assert result.final_mapping == {"One": "[1]", "[1]": "One"}
    assert result.fixes_applied == ["mapping_synchronized"]


def test_recovery_repairs_broken_reverse_entries():
    mapping = {"One": "[1]", "[1]": "Someone else"}

    result = validate_with_auto_recovery("[1]", mapping)

    assert result.is_valid
    assert result.final_mapping == {"One": "[1]", "[1]": "One"}


def test_validation_only_when_auto_fix_disabled():
    result = validate_with_auto_recovery("[1] [1]", {}, attempt_auto_fix=False)

    assert result.is_valid is False
    assert result.final_content == "[1] [1]"
    assert result.fix_attempts == 0


def test_recovery_respects_attempt_budget():
    result = validate_with_auto_recovery("[1] [1]", {}, max_fix_attempts=0)

    assert result.is_valid is False
    assert result.fixes_applied == []
