"""Transactional marker reindexing.

Each reindex runs as a small state machine::

    BACKUP -> PLAN -> REWRITE -> APPLY -> REMAP -> VALIDATE -> COMMIT | ROLLBACK

Public entry points never raise. Failures come back as structured results,
with the editor and mapping restored from the backup whenever possible.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import replace
from types import MappingProxyType

from .config import ReindexConfig, apply_overrides, validate_config
from .constants import FALLBACK_RECOMMENDATIONS
from .editor import EditorAdapter
from .exceptions import EditorError, ReindexError, RollbackError
from .mapping import update_reference_mapping
from .models import (
    EditorState,
    FallbackState,
    InsertionContext,
    ReindexResult,
    ReindexState,
    RollbackableResult,
    StateBackup,
)
from .planner import plan_reindexing
from .repair import validate_with_auto_recovery
from .rewriter import rewrite_content
from .validator import validate_post_reindexing_integrity, validate_sequential_integrity

logger = logging.getLogger(__name__)

SetMapping = Callable[[dict[str, str]], None]


def new_operation_id(prefix: str = "reindex") -> str:
    """Return a unique identifier such as ``reindex_1700000000000_3f9a1c2b``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _transition(operation_id: str, state: ReindexState) -> None:
    logger.debug("[%s] %s", operation_id, state.name)


def create_state_backup(
    editor: EditorAdapter | None,
    mapping: Mapping[str, str] | None,
    operation_id: str | None = None,
    fallback_content: str | None = None,
) -> StateBackup:
    """Snapshot the editor and the mapping before a reindex.

    Reading the editor is best effort: cursor and view state fall back to
    defaults when unavailable. If the content itself cannot be read,
    `fallback_content` is recorded instead; without it the backup is flagged
    with `is_error_backup` and a rollback can only restore the mapping.

    Args:
        editor: Editor to snapshot, or None when there is none.
        mapping: Current reference mapping; copied, never kept by reference.
        operation_id: Identifier to record; generated when omitted.
        fallback_content: Text known to be in the editor, used when it cannot be read.

    Returns:
        StateBackup: Immutable snapshot.
    """
    operation_id = operation_id or new_operation_id()
    content = ""
    cursor_position = 0
    editor_state = EditorState()
    is_error_backup = False

    if editor is not None:
        try:
            content = editor.get_content()
        except Exception as error:
            logger.warning("[%s] Could not read editor content for backup: %s", operation_id, error)
            if isinstance(fallback_content, str):
                content = fallback_content
            else:
                is_error_backup = True
        try:
            cursor_position = editor.get_cursor_position()
            editor_state = editor.get_view_state()
        except Exception as error:
            logger.warning("[%s] Could not read editor state for backup: %s", operation_id, error)

    mapping_copy = dict(mapping) if isinstance(mapping, Mapping) else {}
    backup = StateBackup(
        operation_id=operation_id,
        timestamp=time.time(),
        original_content=content,
        original_reference_mapping=MappingProxyType(mapping_copy),
        cursor_position=cursor_position,
        editor_state=editor_state,
        is_error_backup=is_error_backup,
    )
    logger.debug(
        "[%s] Backup: %d characters, %d mapping entries, cursor at %d",
        operation_id,
        len(content),
        len(mapping_copy),
        cursor_position,
    )
    return backup


def _restore(backup: StateBackup, editor: EditorAdapter | None, set_mapping: SetMapping | None):
    failures: list[str] = []

    if backup.is_error_backup:
        failures.append("backup holds no editor content")
    elif editor is not None:
        try:
            if not editor.replace_content(backup.original_content):
                failures.append("editor rejected the original content")
        except Exception as error:
            failures.append(f"content restore failed: {error}")

    if set_mapping is not None:
        try:
            set_mapping(dict(backup.original_reference_mapping))
        except Exception as error:
            failures.append(f"mapping restore failed: {error}")

    if editor is not None:
        # Cursor and viewport are cosmetic; failures there do not fail the rollback
        try:
            editor.set_cursor_position(backup.cursor_position)
            editor.restore_view_state(backup.editor_state)
        except Exception as error:
            logger.warning("[%s] Could not restore cursor or view: %s", backup.operation_id, error)

    if failures:
        raise RollbackError(failures)


def execute_rollback(
    backup: StateBackup | None,
    editor: EditorAdapter | None,
    set_mapping: SetMapping | None,
) -> bool:
    """Restore content, mapping, cursor, and view state from a backup.

    Args:
        backup: Snapshot taken before the reindex.
        editor: Editor to restore.
        set_mapping: Callback receiving the restored mapping.

    Returns:
        bool: True when content and mapping were both restored. A backup
            without editor content still restores the mapping and returns False.
    """
    if backup is None:
        logger.error("Cannot roll back: no backup")
        return False

    _transition(backup.operation_id, ReindexState.ROLLBACK)
    try:
        _restore(backup, editor, set_mapping)
    except RollbackError as error:
        logger.error("[%s] Partial rollback: %s", backup.operation_id, error)
        return False

    logger.warning("[%s] Rolled back to the state before reindexing", backup.operation_id)
    return True


def apply_reindexing_to_editor(editor: EditorAdapter | None, new_content: object) -> bool:
    """Push reindexed text into the editor.

    Returns:
        bool: False when there is no editor, the text is invalid, or the
            editor rejected it.
    """
    if editor is None:
        logger.error("No editor available to apply reindexed content")
        return False
    if not isinstance(new_content, str) or not new_content:
        logger.error("Refusing to apply empty or non-text content")
        return False
    try:
        accepted = editor.replace_content(new_content)
    except Exception as error:
        logger.error("Editor failed to apply reindexed content: %s", error)
        return False
    if not accepted:
        logger.error("Editor rejected reindexed content")
    return bool(accepted)


def reindex_markers_after_insertion(
    content: object, context: InsertionContext | None, strict_mode: bool = True
) -> ReindexResult | None:
    """Compute the reindexed text for an insertion, without touching any editor.

    Args:
        content: Text after the insertion.
        context: Result of `detect_insertion_between_markers`.
        strict_mode: Passed to the sequential validation of the new text.

    Returns:
        ReindexResult | None: The new text and the applied plan, or None when
            the input is unusable or the rewrite failed. A failed sequential
            validation is reported in `validation` but does not fail the
            result; the orchestrator decides what to do with it.

    Examples:
        context = detect_insertion_between_markers(text, 15, "[19]")
        reindex_markers_after_insertion(text, context).new_content
    """
    if not isinstance(content, str) or not content:
        return None
    if context is None or not context.needs_reindexing:
        return None

    plan = plan_reindexing(
        context.existing_markers, context.insertion_position, context.new_marker_number
    )
    if not plan:
        logger.info("No reindexing needed")
        return ReindexResult(
            success=True,
            new_content=content,
            validation=validate_sequential_integrity(content, strict_mode),
        )

    rewrite = rewrite_content(content, plan)
    if not rewrite.success:
        logger.error("Could not rewrite markers: %s", rewrite.error)
        return None

    validation = validate_sequential_integrity(rewrite.new_content, strict_mode)
    if not validation.is_valid:
        logger.warning("Reindexed sequence has problems: %s", "; ".join(validation.errors))

    logger.info(
        "Reindexed %d marker(s) with %d replacement(s)", len(plan), rewrite.replacements
    )
    return ReindexResult(
        success=True,
        new_content=rewrite.new_content,
        reindexing_map=plan,
        affected_markers_count=len(plan),
        total_replacements=rewrite.replacements,
        rewrite=rewrite,
        validation=validation,
    )


def reindex_with_error_handling(
    content: str,
    context: InsertionContext | None,
    editor: EditorAdapter | None,
    mapping: Mapping[str, str],
    set_mapping: SetMapping | None,
    strict_mode: bool = True,
    operation_id: str | None = None,
) -> RollbackableResult:
    """Reindex under backup, validation, and rollback protection.

    Args:
        content: Text after the insertion.
        context: Result of `detect_insertion_between_markers`.
        editor: Editor that receives the new text.
        mapping: Current reference mapping; never mutated.
        set_mapping: Callback receiving the new (or restored) mapping.
        strict_mode: Whether sequence start and gaps are validation errors.
        operation_id: Identifier for logs and the backup.

    Returns:
        RollbackableResult: On success the new content and mapping plus a
            `rollback` callable; on failure the error and whether the
            automatic rollback succeeded.

    Examples:
        result = reindex_with_error_handling(text, context, editor, mapping, store.update)
        if result.success:
            result.rollback()  # manual undo
    """
    operation_id = operation_id or new_operation_id()
    backup: StateBackup | None = None

    def rollback() -> bool:
        return execute_rollback(backup, editor, set_mapping)

    def failure(error: BaseException, validation=None) -> RollbackableResult:
        logger.error("[%s] Reindex failed: %s", operation_id, error)
        return RollbackableResult(
            success=False,
            operation_id=operation_id,
            error=error,
            backup=backup,
            validation=validation,
            rollback_executed=rollback(),
            rollback=rollback,
        )

    try:
        _transition(operation_id, ReindexState.BACKUP)
        backup = create_state_backup(
            editor, mapping, operation_id, content if isinstance(content, str) else None
        )
        if editor is not None and backup.is_error_backup:
            return failure(EditorError("get_content", "editor content could not be backed up"))

        _transition(operation_id, ReindexState.PLAN)
        _transition(operation_id, ReindexState.REWRITE)
        result = reindex_markers_after_insertion(content, context, strict_mode)
        if result is None or not result.success:
            return failure(ReindexError("Marker reindexing failed"))

        _transition(operation_id, ReindexState.APPLY)
        if not apply_reindexing_to_editor(editor, result.new_content):
            return failure(EditorError("replace_content", "reindexed content was not applied"))

        _transition(operation_id, ReindexState.REMAP)
        new_mapping = update_reference_mapping(mapping, result.reindexing_map)
        if set_mapping is not None:
            set_mapping(new_mapping)

        _transition(operation_id, ReindexState.VALIDATE)
        validation = validate_post_reindexing_integrity(
            result.new_content, new_mapping, result.reindexing_map, strict_mode
        )
        if not validation.is_valid:
            return failure(
                ReindexError("Validation failed: " + "; ".join(validation.errors)), validation
            )
    except Exception as error:
        logger.exception("[%s] Unexpected error during reindexing", operation_id)
        return failure(error)

    _transition(operation_id, ReindexState.COMMIT)
    return RollbackableResult(
        success=True,
        operation_id=operation_id,
        result=result,
        new_reference_mapping=new_mapping,
        backup=backup,
        validation=validation,
        rollback=rollback,
    )


def preserve_basic_functionality(
    error: BaseException | None,
    editor: EditorAdapter | None = None,
    context: Mapping[str, object] | None = None,
) -> FallbackState:
    """Put the editor in a degraded mode where only plain editing is kept.

    Automatic reindexing is switched off on the editor; if that fails, plain
    editing is reported as unavailable. The state is ``critical_failure`` only
    when the fallback state itself cannot be assembled.

    Args:
        error: Last error seen before giving up.
        editor: Editor whose reindexing should be disabled.
        context: Details about the failed operation.

    Returns:
        FallbackState: What still works and what the user should do next.
    """
    message = str(error) if error is not None else "unknown error"
    logger.warning("Entering fallback mode after: %s", message)
    try:
        state = FallbackState(
            mode="fallback",
            original_error=message,
            preserved_functions={
                "basic_editing": True,
                "marker_detection": False,
                "reindexing": False,
            },
            recommendations=list(FALLBACK_RECOMMENDATIONS),
            context=dict(context or {}),
        )
    except Exception:
        logger.exception("Could not build the fallback state")
        return FallbackState(
            mode="critical_failure",
            original_error=message,
            preserved_functions={
                "basic_editing": False,
                "marker_detection": False,
                "reindexing": False,
            },
            recommendations=[FALLBACK_RECOMMENDATIONS[0]],
        )

    if editor is not None:
        try:
            editor.set_reindexing_enabled(False)
        except Exception as preservation_error:
            logger.error("Could not disable reindexing: %s", preservation_error)
            state.preserved_functions["basic_editing"] = False
    return state


def _resolve_config(config: ReindexConfig | None, options: dict[str, object]) -> ReindexConfig:
    config = apply_overrides(config or ReindexConfig(), **options)
    validate_config(config)
    return config


def _run_recovery(
    outcome: RollbackableResult,
    editor: EditorAdapter | None,
    set_mapping: SetMapping | None,
    config: ReindexConfig,
) -> None:
    result = outcome.result
    recovery = validate_with_auto_recovery(
        result.new_content,
        outcome.new_reference_mapping,
        strict_mode=config.strict_mode,
        attempt_auto_fix=True,
        fix_gaps=config.auto_fix_gaps,
        max_fix_attempts=config.max_fix_attempts,
    )
    if not recovery.fixes_applied:
        return

    logger.info("[%s] Auto-recovery applied: %s", outcome.operation_id, ", ".join(recovery.fixes_applied))
    if recovery.final_content != result.new_content:
        apply_reindexing_to_editor(editor, recovery.final_content)
    if recovery.final_mapping != outcome.new_reference_mapping and set_mapping is not None:
        set_mapping(recovery.final_mapping)

    outcome.result = replace(result, new_content=recovery.final_content)
    outcome.new_reference_mapping = recovery.final_mapping
    outcome.auto_recovery_applied = recovery.fixes_applied
    outcome.validation = validate_post_reindexing_integrity(
        recovery.final_content, recovery.final_mapping, [], config.strict_mode
    )


def execute_reindexing_with_full_error_handling(
    content: str,
    context: InsertionContext | None,
    editor: EditorAdapter | None,
    mapping: Mapping[str, str],
    set_mapping: SetMapping | None,
    config: ReindexConfig | None = None,
    **options: object,
) -> RollbackableResult:
    """Reindex with retries, optional auto-recovery, and a fallback mode.

    Each attempt is a full `reindex_with_error_handling` transaction, so a
    failed attempt is rolled back before the next one starts. Attempts are
    separated by ``retry_delay * attempt`` seconds.

    Args:
        content: Text after the insertion.
        context: Result of `detect_insertion_between_markers`.
        editor: Editor that receives the new text.
        mapping: Current reference mapping; never mutated.
        set_mapping: Callback receiving the new (or restored) mapping.
        config: Base configuration; defaults apply when omitted.
        options: Overrides for `ReindexConfig` fields, e.g. ``max_retries=0``.

    Returns:
        RollbackableResult: The committed result, or the last failure with a
            `fallback_state` when `preserve_functionality` is enabled.

    Examples:
        execute_reindexing_with_full_error_handling(
            text, context, editor, mapping, store.update, max_retries=1
        )
    """
    operation_id = new_operation_id("full_reindex")
    try:
        config = _resolve_config(config, options)
    except (TypeError, ValueError) as error:
        logger.error("[%s] Invalid reindex options: %s", operation_id, error)
        return RollbackableResult(success=False, operation_id=operation_id, error=error)

    total_attempts = config.max_retries + 1
    last: RollbackableResult | None = None
    last_error: BaseException | None = None

    for attempt in range(1, total_attempts + 1):
        logger.debug("[%s] Attempt %d/%d", operation_id, attempt, total_attempts)
        outcome = reindex_with_error_handling(
            content,
            context,
            editor,
            mapping,
            set_mapping,
            strict_mode=config.strict_mode,
            operation_id=f"{operation_id}_{attempt}",
        )
        outcome.attempt = attempt
        outcome.total_attempts = total_attempts

        if outcome.success:
            if config.enable_auto_recovery:
                try:
                    _run_recovery(outcome, editor, set_mapping, config)
                except Exception:
                    logger.exception("[%s] Auto-recovery failed; keeping committed result", operation_id)
            return outcome

        last, last_error = outcome, outcome.error
        logger.warning("[%s] Attempt %d failed: %s", operation_id, attempt, last_error)
        if attempt < total_attempts and config.retry_delay:
            time.sleep(config.retry_delay * attempt)

    logger.error("[%s] All %d attempt(s) failed", operation_id, total_attempts)
    if config.preserve_functionality:
        last.fallback_state = preserve_basic_functionality(
            last_error,
            editor,
            {
                "operation_id": operation_id,
                "attempts": total_attempts,
                "insertion_position": getattr(context, "insertion_position", None),
            },
        )
    return last
