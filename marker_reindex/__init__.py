"""
marker-reindex: keeps inline reference markers sequential after insertions.

This package can be used both as a CLI tool and as a library.

CLI Usage:
    marker-reindex insert notes.md --at 42 --marker "[7]" --text "New claim"

Library Usage:
    from marker_reindex import (
        TextBufferEditor,
        detect_insertion_between_markers,
        execute_reindexing_with_full_error_handling,
    )

    content = "Intro [1] body [3] middle [2] end"
    context = detect_insertion_between_markers(content, 15, "[3]")
    editor = TextBufferEditor(content)
    result = execute_reindexing_with_full_error_handling(
        content, context, editor, mapping={}, set_mapping=None
    )
    editor.get_content()  # "Intro [1] body [2] middle [3] end"
"""

from .classifier import classify_insertion, detect_insertion_between_markers
from .config import ConfigError, ReindexConfig, build_config, load_config
from .editor import EditorAdapter, TextBufferEditor, adapt_editor
from .engine import (
    create_state_backup,
    execute_reindexing_with_full_error_handling,
    execute_rollback,
    reindex_markers_after_insertion,
    reindex_with_error_handling,
)
from .exceptions import EditorError, PlanError, ReindexError, RollbackError
from .mapping import sync_reference_mapping, update_reference_mapping
from .models import (
    InsertionContext,
    InsertionType,
    Marker,
    RenamePlanEntry,
    RollbackableResult,
    ValidationResult,
)
from .planner import plan_reindexing
from .repair import fix_duplicate_markers, fix_sequence_gaps, validate_with_auto_recovery
from .rewriter import rewrite_content
from .scanner import extract_all_markers
from .validator import validate_post_reindexing_integrity, validate_sequential_integrity

__version__ = "0.1.0"

__all__ = [
    # Core functionality
    "extract_all_markers",
    "classify_insertion",
    "detect_insertion_between_markers",
    "plan_reindexing",
    "rewrite_content",
    "validate_sequential_integrity",
    "update_reference_mapping",
    # Orchestration
    "reindex_markers_after_insertion",
    "reindex_with_error_handling",
    "execute_reindexing_with_full_error_handling",
    "create_state_backup",
    "execute_rollback",
    # Repair and checks
    "fix_duplicate_markers",
    "fix_sequence_gaps",
    "sync_reference_mapping",
    "validate_post_reindexing_integrity",
    "validate_with_auto_recovery",
    # Editor integration
    "EditorAdapter",
    "TextBufferEditor",
    "adapt_editor",
    # Data models
    "InsertionContext",
    "InsertionType",
    "Marker",
    "RenamePlanEntry",
    "RollbackableResult",
    "ValidationResult",
    # Configuration
    "ReindexConfig",
    "ConfigError",
    "build_config",
    "load_config",
    # Exceptions
    "EditorError",
    "PlanError",
    "ReindexError",
    "RollbackError",
    # Version
    "__version__",
]
