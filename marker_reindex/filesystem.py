"""Guarded reads and atomic rewrites of text documents and mapping files.

Every file is fingerprinted when it is read and again right before it is
replaced; a write is refused when the two disagree.
"""

from __future__ import annotations

import json
import os
import stat
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .constants import DEFAULT_MAX_FILE_SIZE, TEXT_EXTENSIONS
from .scanner import is_marker_text

MAX_FILE_SIZE_ENV_VAR = "MARKER_REINDEX_MAX_FILE_SIZE"

Warn = Callable[[str], None]


def get_max_file_size(default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """Return the size limit in bytes, honouring ``MARKER_REINDEX_MAX_FILE_SIZE``.

    Raises:
        ValueError: If the environment value is not a positive integer.

    Examples:
        os.environ["MARKER_REINDEX_MAX_FILE_SIZE"] = "204800"
        get_max_file_size(default=102400)  # 204800
    """
    raw = os.environ.get(MAX_FILE_SIZE_ENV_VAR)
    if raw is None:
        return default
    if not raw.strip().isdigit() or int(raw) <= 0:
        raise ValueError(
            f"Invalid value for {MAX_FILE_SIZE_ENV_VAR}: {raw} (expected positive integer)"
        )
    return int(raw)


@dataclass(frozen=True)
class FileFingerprint:
    """Identity and metadata of a regular file at one point in time.

    Attributes:
        inode: Inode number.
        device: Device holding the inode.
        size: Size in bytes.
        mtime_ns: Modification time.
        atime_ns: Access time, restored after a rewrite.
        mode: Permission bits, copied onto the replacement file.
        uid: Owner, copied when privileges allow.
        gid: Group, copied when privileges allow.
    """

    inode: int
    device: int
    size: int
    mtime_ns: int
    atime_ns: int
    mode: int
    uid: int | None = None
    gid: int | None = None

    @classmethod
    def of(cls, path: Path) -> FileFingerprint:
        """Fingerprint `path` without following symlinks.

        Raises:
            IOError: If the path is inaccessible, a symlink, or not a regular file.
        """
        try:
            info = os.lstat(path)
        except OSError as error:
            raise IOError(f"Error accessing {path}: {error}") from error
        if stat.S_ISLNK(info.st_mode):
            raise IOError(f"Symlinks are not supported: {path}.")
        if not stat.S_ISREG(info.st_mode):
            raise IOError(f"{path} is not a regular file.")
        return cls(
            inode=info.st_ino,
            device=info.st_dev,
            size=info.st_size,
            mtime_ns=info.st_mtime_ns,
            atime_ns=info.st_atime_ns,
            mode=stat.S_IMODE(info.st_mode),
            uid=getattr(info, "st_uid", None),
            gid=getattr(info, "st_gid", None),
        )

    def same_content_as(self, other: FileFingerprint) -> bool:
        return (self.inode, self.device, self.size, self.mtime_ns) == (
            other.inode,
            other.device,
            other.size,
            other.mtime_ns,
        )


def _ensure_unchanged(expected: FileFingerprint, path: Path) -> FileFingerprint:
    current = FileFingerprint.of(path)
    if not expected.same_content_as(current):
        raise IOError(f"{path} changed during processing; refusing to overwrite.")
    return current


def resolve_document_path(
    raw_path: str, base_dir: Path, extensions: tuple[str, ...] = TEXT_EXTENSIONS
) -> Path:
    """Turn a user-supplied path into an absolute file path under `base_dir`.

    Args:
        raw_path: Absolute or relative path.
        base_dir: Directory the file must live in.
        extensions: Accepted lowercase suffixes.

    Returns:
        Path: The resolved file.

    Raises:
        ValueError: If any component is a symlink, the file is missing or not
            a regular file, it lies outside `base_dir`, or its suffix is not
            in `extensions`.

    Examples:
        resolve_document_path("notes/draft.md", Path.cwd())
        resolve_document_path("refs.json", Path.cwd(), extensions=(".json",))
    """
    path = Path(raw_path).expanduser()
    for component in (path, *path.parents):
        if component.is_symlink():
            raise ValueError(f"Symlinks are not supported for security reasons: {path}")

    if not path.exists():
        raise ValueError(f"{path} does not exist.")
    resolved = path.resolve()
    if not resolved.is_file():
        raise ValueError(f"{resolved} is not a regular file.")
    if not resolved.is_relative_to(base_dir):
        raise ValueError(f"{resolved} is outside of the working directory {base_dir}.")
    if resolved.suffix.lower() not in extensions:
        raise ValueError(
            f"{resolved} has an unsupported extension.\n"
            f"Supported extensions are: {', '.join(extensions)}"
        )
    return resolved


def read_text_file(path: Path, max_size: int) -> tuple[str, FileFingerprint]:
    """Read a whole UTF-8 file, keeping its line endings.

    Returns:
        tuple[str, FileFingerprint]: The text and the fingerprint to pass to
            `replace_text_file`.

    Raises:
        IOError: If the file is too large, unreadable, not UTF-8, or changed
            while it was being read.
    """
    before = FileFingerprint.of(path)
    if before.size > max_size:
        raise IOError(f"{path} exceeds the maximum allowed size of {max_size} bytes.")

    try:
        with open(path, encoding="UTF-8", newline="") as handle:
            text = handle.read()
    except UnicodeDecodeError as error:
        raise IOError(f"{path} is not valid UTF-8: {error}") from error
    except OSError as error:
        raise IOError(f"Error accessing {path}: {error}") from error

    return text, _ensure_unchanged(before, path)


def replace_text_file(
    path: Path, text: str, expected: FileFingerprint, warn: Warn | None = None
):
    """Atomically replace a file that was read with `read_text_file`.

    The replacement keeps the permission bits, the owner when possible, and
    the access time of the original.

    Raises:
        IOError: If the file changed since `expected` was taken or cannot be
            replaced.

    Examples:
        text, fingerprint = read_text_file(path, get_max_file_size())
        replace_text_file(path, text.replace("[3]", "[4]"), fingerprint)
    """
    _ensure_unchanged(expected, path)

    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="UTF-8", newline="") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_path, expected.mode)
        if expected.uid is not None and expected.gid is not None and hasattr(os, "chown"):
            try:
                os.chown(temp_path, expected.uid, expected.gid)
            except PermissionError:
                if warn is not None:
                    warn(
                        f"Warning: Could not preserve file ownership for {path.name} "
                        "(requires elevated privileges)"
                    )
        os.replace(temp_path, path)
    except OSError as error:
        raise IOError(f"Could not replace {path}: {error}") from error
    finally:
        temp_path.unlink(missing_ok=True)

    os.utime(path, ns=(expected.atime_ns, path.stat().st_mtime_ns))


def load_title_mapping(
    path: Path, max_size: int = DEFAULT_MAX_FILE_SIZE
) -> tuple[dict[str, str], FileFingerprint]:
    """Load a ``{"title": "[n]"}`` JSON object.

    Returns:
        tuple[dict[str, str], FileFingerprint]: The titles and the fingerprint
            to pass to `write_title_mapping`.

    Raises:
        IOError: If the file cannot be read.
        ValueError: If the file is not a JSON object of titles to markers.
    """
    text, fingerprint = read_text_file(path, max_size)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as error:
        raise ValueError(f"{path} is not valid JSON: {error}") from error

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object of titles to markers.")
    for title, marker in data.items():
        if not is_marker_text(marker):
            raise ValueError(f"Invalid marker for {title!r} in {path}: {marker!r}")
    return data, fingerprint


def write_title_mapping(
    path: Path, titles: dict[str, str], expected: FileFingerprint, warn: Warn | None = None
):
    """Replace a mapping file with `titles` as indented JSON."""
    text = json.dumps(titles, indent=2, ensure_ascii=False) + "\n"
    replace_text_file(path, text, expected, warn)
