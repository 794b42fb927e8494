"""Integrity checks for marker sequences and reference mappings."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping

from .constants import BRACKET_PATTERN, MARKER_PATTERN
from .models import CheckResult, IntegrityReport, RenamePlanEntry, SequenceGap, ValidationResult
from .scanner import extract_all_markers, format_marker, is_marker_text

logger = logging.getLogger(__name__)


def validate_sequential_integrity(text: object, strict_mode: bool = True) -> ValidationResult:
    """Check a text's markers for duplicates, gaps, and ordering.

    Duplicate numbers are errors in both modes. In strict mode the sequence
    must also start at 1 and have no gaps; in lenient mode gaps are warnings
    that list the missing numbers. A larger number appearing before a smaller
    one in the text is always just a warning.

    Args:
        text: Text to validate.
        strict_mode: Whether start and gap violations are errors.

    Returns:
        ValidationResult: Validity, errors, warnings, and sequence statistics.

    Examples:
        validate_sequential_integrity("[1] a [3] b", strict_mode=False).is_valid  # True
        validate_sequential_integrity("[1] a [3] b").is_valid  # False
    """
    if not isinstance(text, str):
        return ValidationResult(is_valid=False, errors=["Content must be a string"])

    markers = extract_all_markers(text)
    if not markers:
        return ValidationResult(is_valid=True, message="No markers found")

    errors: list[str] = []
    warnings: list[str] = []

    sequence = sorted(marker.number for marker in markers)
    counts = Counter(sequence)
    duplicates = sorted(number for number, count in counts.items() if count > 1)
    for number in duplicates:
        errors.append(f"Marker {format_marker(number)} appears {counts[number]} times")

    unique_sequence = sorted(counts)
    first, last = unique_sequence[0], unique_sequence[-1]
    if strict_mode and first != 1:
        if first > 1:
            errors.append(f"Sequence must start at [1] but starts at {format_marker(first)}")
        else:
            errors.append(f"Invalid marker {format_marker(first)}: numbers must be >= 1")

    gaps: list[SequenceGap] = []
    for current, following in zip(unique_sequence, unique_sequence[1:]):
        if following == current + 1:
            continue
        gap = SequenceGap(start=current, end=following, missing=tuple(range(current + 1, following)))
        gaps.append(gap)
        if strict_mode:
            errors.append(
                f"Gap in sequence: expected {format_marker(current + 1)} after "
                f"{format_marker(current)}, found {format_marker(following)}"
            )
        else:
            missing = ", ".join(format_marker(number) for number in gap.missing)
            warnings.append(f"Gap in sequence: missing {missing}")

    for current, following in zip(markers, markers[1:]):
        if current.number > following.number:
            warnings.append(
                f"Text order: {current.text} (pos {current.position}) appears before "
                f"{following.text} (pos {following.position})"
            )

    if errors:
        logger.debug("Sequential validation failed: %s", "; ".join(errors))

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        marker_count=len(markers),
        sequence=sequence,
        unique_sequence=unique_sequence,
        duplicates=duplicates,
        gaps=gaps,
        first_marker=first,
        last_marker=last,
    )


def validate_reference_mapping_consistency(content: str, mapping: object) -> CheckResult:
    """Compare the markers in a text with those in a reference mapping.

    Markers present only in the text (orphaned) or only in the mapping
    (missing) are warnings. A title whose marker does not map back to it is an
    error.

    Args:
        content: Text whose markers are compared.
        mapping: Bidirectional title/marker table.

    Returns:
        CheckResult: Findings, with orphaned, missing, and broken entries in
            `stats`.
    """
    result = CheckResult()
    if not isinstance(mapping, Mapping):
        result.error("Reference mapping must be a mapping")
        return result

    content_markers = list(dict.fromkeys(marker.text for marker in extract_all_markers(content)))
    mapping_markers: list[str] = []
    for key, value in mapping.items():
        if is_marker_text(key):
            mapping_markers.append(key)
        elif is_marker_text(value):
            mapping_markers.append(value)
    mapping_markers = list(dict.fromkeys(mapping_markers))

    orphaned = [marker for marker in content_markers if marker not in mapping_markers]
    missing = [marker for marker in mapping_markers if marker not in content_markers]
    for marker in orphaned:
        result.warnings.append(f"Marker {marker} is in the content but not in the mapping")
    for marker in missing:
        result.warnings.append(f"Marker {marker} is in the mapping but not in the content")

    broken = []
    for key, value in mapping.items():
        if is_marker_text(key) or not is_marker_text(value):
            continue
        reverse = mapping.get(value)
        if reverse != key:
            broken.append((key, value, reverse))
            result.error(
                f"Broken bidirectional mapping: {key!r} -> {value}, but {value} -> {reverse!r}"
            )

    result.stats = {
        "markers_in_content": len(content_markers),
        "markers_in_mapping": len(mapping_markers),
        "orphaned_markers": orphaned,
        "missing_markers": missing,
        "bidirectional_errors": broken,
    }
    return result


def validate_rewrite_accuracy(content: str, plan: list[RenamePlanEntry]) -> CheckResult:
    """Verify that a rename plan is reflected in a rewritten text.

    Every planned new marker must be present. Every planned old marker must be
    gone, unless another entry of the same plan writes that number back.

    Args:
        content: Rewritten text.
        plan: Plan that produced it.

    Returns:
        CheckResult: Errors for each rename that did not take effect.
    """
    result = CheckResult()
    if not plan:
        return result

    counts = Counter(marker.number for marker in extract_all_markers(content))
    written = {entry.new_number for entry in plan}
    renamed = {entry.old_number for entry in plan}
    failed = []
    applied = 0

    for entry in plan:
        leftover = counts.get(entry.old_number, 0)
        if entry.old_number not in written and leftover:
            failed.append((entry, "old_marker_still_exists"))
            result.error(f"Old marker {entry.old_marker} still present ({leftover} occurrences)")
        if counts.get(entry.new_number, 0) == 0:
            failed.append((entry, "new_marker_not_found"))
            result.error(f"New marker {entry.new_marker} not found in content")
        else:
            applied += 1

    result.stats = {
        "expected_changes": len(plan),
        "applied_changes": applied,
        "failed_changes": failed,
        "untouched_markers": sorted(
            format_marker(number) for number in counts if number not in written | renamed
        ),
    }
    return result


def validate_content_integrity(content: object) -> CheckResult:
    """Check a text for malformed and duplicated markers.

    Bracketed content that is not a number (``[abc]``) is reported as a
    warning; a marker number that occurs more than once is an error.
    """
    result = CheckResult()
    if not isinstance(content, str):
        result.error("Content must be a string")
        return result

    if not content:
        result.warnings.append("Content is empty")

    malformed = [
        match.group(0)
        for match in BRACKET_PATTERN.finditer(content)
        if MARKER_PATTERN.fullmatch(match.group(0)) is None
    ]
    for token in malformed:
        result.warnings.append(f"Malformed marker found: {token}")

    counts = Counter(marker.text for marker in extract_all_markers(content))
    duplicated = [(marker, count) for marker, count in counts.items() if count > 1]
    for marker, count in duplicated:
        result.error(f"Duplicate marker: {marker} appears {count} times")

    result.stats = {
        "content_length": len(content),
        "marker_count": sum(counts.values()),
        "malformed_markers": malformed,
        "duplicate_markers": duplicated,
    }
    return result


def validate_post_reindexing_integrity(
    content: str,
    mapping: Mapping[str, str],
    plan: list[RenamePlanEntry],
    strict_mode: bool = True,
) -> IntegrityReport:
    """Run every integrity check on the outcome of a reindex.

    Args:
        content: Rewritten text.
        mapping: Synchronized reference mapping.
        plan: Plan that was applied.
        strict_mode: Passed to the sequential check.

    Returns:
        IntegrityReport: Combined findings; invalid if any check has errors.

    Examples:
        report = validate_post_reindexing_integrity(text, mapping, plan)
        report.checks["sequential_integrity"].gaps
    """
    checks: dict[str, ValidationResult | CheckResult] = {
        "sequential_integrity": validate_sequential_integrity(content, strict_mode),
        "mapping_consistency": validate_reference_mapping_consistency(content, mapping),
        "reindexing_accuracy": validate_rewrite_accuracy(content, plan),
        "content_integrity": validate_content_integrity(content),
    }

    report = IntegrityReport(is_valid=True, checks=checks)
    for check in checks.values():
        report.errors.extend(check.errors)
        report.warnings.extend(check.warnings)
    report.is_valid = not report.errors

    logger.debug(
        "Post-reindex validation: %d error(s), %d warning(s)",
        len(report.errors),
        len(report.warnings),
    )
    return report
