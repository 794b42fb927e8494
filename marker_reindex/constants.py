"""Constants used across the marker-reindex package."""

from __future__ import annotations

import re

from .config import ReindexConfig

DEFAULT_CONFIG = ReindexConfig()

# Marker patterns
MARKER_PATTERN = re.compile(r"\[([0-9]+)\]")
BRACKET_PATTERN = re.compile(r"\[[^\]]*\]")

# Private-use code points cannot appear in a marker, so a placeholder built
# from them is never matched by MARKER_PATTERN.
PLACEHOLDER_OPEN = "\ue000"
PLACEHOLDER_CLOSE = "\ue001"
PLACEHOLDER_PATTERN = re.compile(f"{PLACEHOLDER_OPEN}([0-9]+){PLACEHOLDER_CLOSE}")

# Retry and recovery defaults
MAX_RETRY_ATTEMPTS = DEFAULT_CONFIG.max_retries
MAX_FIX_ATTEMPTS = DEFAULT_CONFIG.max_fix_attempts
DEFAULT_MAX_FILE_SIZE = DEFAULT_CONFIG.max_file_size

FALLBACK_RECOMMENDATIONS = (
    "Reload the document to restore full functionality",
    "Check the application log for error details",
    "Save your current work before continuing",
)

TEXT_EXTENSIONS = (".md", ".markdown", ".txt", ".text", ".rst")
