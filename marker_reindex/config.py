"""Configuration loading and management."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
import tomllib


@dataclass
class ReindexConfig:
    """Configuration for reindexing runs.

    Attributes:
        strict_mode: Treat a sequence that does not start at 1, or has gaps, as
            invalid.
        max_retries: Extra attempts made by the full error handling wrapper.
        retry_delay: Base pause in seconds between attempts; multiplied by the
            attempt number.
        enable_auto_recovery: Run the duplicate and mapping repair passes after
            a committed reindex.
        auto_fix_gaps: Also close sequence gaps during recovery.
        preserve_functionality: Return a fallback state instead of a bare
            failure once every attempt failed.
        max_fix_attempts: Upper bound on auto-repair rounds.
        max_file_size: Maximum document size in bytes accepted by the CLI.

    Examples:
        ReindexConfig(strict_mode=False, max_retries=0)
    """

    # Validation
    strict_mode: bool = True

    # Retry and recovery
    max_retries: int = 2
    retry_delay: float = 0.05
    enable_auto_recovery: bool = False
    auto_fix_gaps: bool = False
    preserve_functionality: bool = True
    max_fix_attempts: int = 3

    # Limits
    max_file_size: int = 10 * 1024 * 1024


class ConfigError(ValueError):
    """Exception raised when configuration values are invalid.

    Examples:
        raise ConfigError("`max_retries` must be >= 0")
    """


def load_config(search_path: Path) -> ReindexConfig:
    """Load configuration from the nearest config file.

    Walks parent directories from `search_path` to the filesystem root, reading
    the ``[tool.marker-reindex]`` table from `pyproject.toml` and the
    ``[marker-reindex]`` or ``[tool.marker-reindex]`` table from
    `.marker-reindex.toml` when present. Returns default values when no
    configuration is found. TOML files that cannot be read or decoded are
    skipped.

    Args:
        search_path: Directory used as the starting point for configuration lookup.

    Returns:
        ReindexConfig: Loaded configuration with defaults applied when necessary.

    Raises:
        ConfigError: If the table is present but not a mapping or contains
            unsupported keys.

    Examples:
        load_config(Path("docs"))
    """
    current = search_path.resolve()

    while True:
        pyproject_config = _load_from_file(
            current / "pyproject.toml", table_paths=[("tool", "marker-reindex")]
        )
        if pyproject_config is not None:
            return pyproject_config

        dotfile_config = _load_from_file(
            current / ".marker-reindex.toml",
            table_paths=[("marker-reindex",), ("tool", "marker-reindex")],
        )
        if dotfile_config is not None:
            return dotfile_config

        parent = current.parent
        if parent == current:
            break
        current = parent

    return ReindexConfig()


_MISSING = object()


def _load_from_file(
    config_file: Path, table_paths: list[tuple[str, ...]]
) -> ReindexConfig | None:
    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as stream:
            data = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError):
        return None

    for table_path in table_paths:
        raw_config = _extract_table(data, table_path)
        if raw_config is _MISSING:
            continue
        return _build_config_from_raw(raw_config, config_file, table_path)

    return None


def _extract_table(data: object, table_path: tuple[str, ...]) -> object:
    current = data
    for key in table_path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _build_config_from_raw(
    raw_config: object, config_file: Path, table_path: tuple[str, ...]
) -> ReindexConfig:
    table_display = ".".join(table_path)

    if raw_config is None or raw_config == {}:
        return ReindexConfig()

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}")

    # TOML keys may use dashes; dataclass fields use underscores
    normalized = {key.replace("-", "_"): value for key, value in raw_config.items()}
    try:
        return ReindexConfig(**normalized)
    except TypeError as error:
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}") from error


def validate_config(config: ReindexConfig) -> None:
    """Validate a `ReindexConfig` instance.

    Args:
        config: Configuration to validate.

    Raises:
        ConfigError: If flags are not booleans, counts are not integers, or
            numeric limits are out of range.

    Examples:
        validate_config(ReindexConfig(max_retries=1))
    """
    _ensure_booleans(
        {
            "strict_mode": config.strict_mode,
            "enable_auto_recovery": config.enable_auto_recovery,
            "auto_fix_gaps": config.auto_fix_gaps,
            "preserve_functionality": config.preserve_functionality,
        }
    )
    _ensure_integers(
        {
            "max_retries": config.max_retries,
            "max_fix_attempts": config.max_fix_attempts,
            "max_file_size": config.max_file_size,
        }
    )

    if config.max_retries < 0:
        raise ConfigError("`max_retries` must be >= 0")
    if config.max_fix_attempts < 0:
        raise ConfigError("`max_fix_attempts` must be >= 0")
    if config.max_file_size <= 0:
        raise ConfigError("`max_file_size` must be a positive integer")

    delay = config.retry_delay
    if isinstance(delay, bool) or not isinstance(delay, (int, float)):
        raise ConfigError("`retry_delay` must be a number")
    if delay < 0 or delay > 1:
        raise ConfigError("`retry_delay` must be between 0 and 1 second")


def apply_overrides(config: ReindexConfig, **overrides: object) -> ReindexConfig:
    """Apply override values to a `ReindexConfig`.

    Args:
        config: Base configuration to update.
        overrides: Override values keyed by configuration field name; values set
            to None are ignored.

    Returns:
        ReindexConfig: New configuration with the overrides applied. The
        original configuration is returned when no changes are supplied.

    Raises:
        TypeError: If an override name is not defined on `ReindexConfig`.

    Examples:
        updated = apply_overrides(config, strict_mode=False)
    """
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, **changes)


def build_config(search_path: Path, **overrides: object) -> ReindexConfig:
    """Load, override, and validate configuration.

    Args:
        search_path: Directory where configuration files are resolved.
        overrides: Override values keyed by configuration attributes; None
            values are ignored.

    Returns:
        ReindexConfig: Validated configuration.

    Raises:
        ConfigError: If configuration loading or validation fails.

    Examples:
        config = build_config(Path.cwd(), max_retries=0)
    """
    config = load_config(search_path)
    config = apply_overrides(config, **overrides)
    validate_config(config)
    return config


def _ensure_booleans(values: dict[str, object]) -> None:
    for key, value in values.items():
        if not isinstance(value, bool):
            raise ConfigError(f"`{key}` must be a boolean")


def _ensure_integers(values: dict[str, object]) -> None:
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"`{key}` must be an integer")
