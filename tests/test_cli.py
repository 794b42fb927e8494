from __future__ import annotations

import json
import os
import textwrap
import uuid
from pathlib import Path

import pytest

from marker_reindex.cli import cli


def _write(tmp_path: Path, filename: str, content: str) -> Path:
    path = tmp_path / filename
    path.write_text(content, encoding="utf-8")
    return path


def _write_json(tmp_path: Path, filename: str, data: dict) -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _write_pyproject(base: Path, body: str) -> Path:
    path = base / "pyproject.toml"
    path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
    return path


def _error_text(result) -> str:
    """Return combined output and exception text for assertions."""
    return f"{result.output}{result.exception}"


def test_insert_between_markers_renumbers_following_markers(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "Intro [1] body. Middle [2] end\n")

    result = cli_runner.invoke(cli, ["insert", str(target), "--at", "14", "--marker", "[3]"])

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8") == "Intro [1] body [2]. Middle [3] end\n"
    assert "[3] -> [2] (inserted)" in result.output
    assert "[2] -> [3]" in result.output


def test_insert_with_text_updates_mapping_and_title(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "Intro [1] body. Middle [2] end\n")
    refs = _write_json(tmp_path, "refs.json", {"One": "[1]", "Two": "[2]"})

    result = cli_runner.invoke(
        cli,
        [
            "insert",
            str(target),
            "--at",
            "14",
            "--marker",
            "[3]",
            "--text",
            "see",
            "--mapping",
            str(refs),
            "--title",
            "New",
        ],
    )

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8") == "Intro [1] body see [2]. Middle [3] end\n"
    assert json.loads(refs.read_text(encoding="utf-8")) == {
        "One": "[1]",
        "Two": "[3]",
        "New": "[2]",
    }


def test_insert_title_requires_mapping(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "Intro [1] body. Middle [2] end\n")

    result = cli_runner.invoke(
        cli, ["insert", str(target), "--at", "14", "--marker", "[3]", "--title", "New"]
    )

    assert result.exit_code == 2
    assert "--title requires --mapping" in result.output
    assert target.read_text(encoding="utf-8") == "Intro [1] body. Middle [2] end\n"


def test_insert_after_last_marker_needs_no_reindexing(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "Intro [1] body [2] end")

    result = cli_runner.invoke(cli, ["insert", str(target), "--at", "22", "--marker", "[3]"])

    assert result.exit_code == 0
    assert "No reindexing needed." in result.output
    assert target.read_text(encoding="utf-8") == "Intro [1] body [2] end [3]"


def test_insert_rejects_invalid_marker(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] text\n")

    result = cli_runner.invoke(cli, ["insert", str(target), "--at", "0", "--marker", "3"])

    assert result.exit_code == 2
    assert "is not a marker" in result.output
    assert target.read_text(encoding="utf-8") == "[1] text\n"


def test_insert_rejects_offset_out_of_range(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] text\n")

    result = cli_runner.invoke(cli, ["insert", str(target), "--at", "100", "--marker", "[2]"])

    assert result.exit_code == 2
    assert "Offset must be between 0 and 9" in result.output


def test_insert_strict_failure_leaves_file_untouched(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[2] a [3] b")

    result = cli_runner.invoke(
        cli, ["insert", str(target), "--at", "5", "--marker", "[4]", "--retries", "0"]
    )

    assert result.exit_code == 1
    assert "Reindexing failed" in result.output
    assert "must start at [1]" in result.output
    assert target.read_text(encoding="utf-8") == "[2] a [3] b"


def test_insert_lenient_accepts_sequence_not_starting_at_one(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[2] a [3] b")

    result = cli_runner.invoke(
        cli, ["insert", str(target), "--at", "5", "--marker", "[4]", "--lenient"]
    )

    assert result.exit_code == 0, result.output
    assert target.read_text(encoding="utf-8") == "[2] a [3] [4] b"


def test_insert_rejects_mapping_with_wrong_extension(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] a [2]")
    refs = _write(tmp_path, "refs.txt", "{}")

    result = cli_runner.invoke(
        cli,
        ["insert", str(target), "--at", "5", "--marker", "[3]", "--mapping", str(refs)],
    )

    assert result.exit_code == 2
    assert "--mapping" in result.output
    assert target.read_text(encoding="utf-8") == "[1] a [2]"


def test_validate_reports_clean_sequence(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] a [2] b [3]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 0
    assert "notes.md: 3 marker(s), sequence OK" in result.output


def test_validate_strict_fails_on_gap(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] a [3]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 1
    assert "error: Gap in sequence" in result.output
    assert "1 problem(s) found in notes.md" in result.output


def test_validate_lenient_only_warns_on_gap(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] a [3]\n")

    result = cli_runner.invoke(cli, ["validate", "--lenient", str(target)])

    assert result.exit_code == 0
    assert "warning: Gap in sequence: missing" in result.output
    assert "2 marker(s), sequence OK" in result.output


def test_validate_reads_strictness_from_pyproject(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_pyproject(
        tmp_path,
        """
        [tool.marker-reindex]
        strict_mode = false
        """,
    )
    target = _write(tmp_path, "notes.md", "[1] a [3]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 0


def test_validate_rejects_invalid_configuration(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_pyproject(
        tmp_path,
        """
        [tool.marker-reindex]
        max_retries = -1
        """,
    )
    target = _write(tmp_path, "notes.md", "[1]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 2
    assert "max_retries" in result.output


def test_validate_with_mapping_warns_about_mismatches(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] a [2]\n")
    refs = _write_json(tmp_path, "refs.json", {"One": "[1]", "Gone": "[5]"})

    result = cli_runner.invoke(cli, ["validate", str(target), "--mapping", str(refs)])

    assert result.exit_code == 0
    assert "warning: Marker [2] is in the content but not in the mapping" in result.output
    assert "warning: Marker [5] is in the mapping but not in the content" in result.output


def test_fix_requires_a_repair_flag(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] [1]\n")

    result = cli_runner.invoke(cli, ["fix", str(target)])

    assert result.exit_code == 2
    assert "--duplicates or --gaps" in result.output


def test_fix_duplicates_and_gaps_rewrites_file_and_mapping(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "a [1] b [3] c [3]\n")
    refs = _write_json(tmp_path, "refs.json", {"One": "[1]", "Three": "[3]"})

    result = cli_runner.invoke(
        cli, ["fix", str(target), "--duplicates", "--gaps", "--mapping", str(refs)]
    )

    assert result.exit_code == 0, result.output
    assert "Removed 1 duplicate marker(s)." in result.output
    assert "Renumbered 1 marker(s)." in result.output
    assert target.read_text(encoding="utf-8") == "a [1] b [2] c \n"
    assert json.loads(refs.read_text(encoding="utf-8")) == {"One": "[1]", "Three": "[2]"}


def test_fix_dry_run_prints_without_writing(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "x [4] y [9]\n")

    result = cli_runner.invoke(cli, ["fix", str(target), "--gaps", "--dry-run"])

    assert result.exit_code == 0
    assert "x [1] y [2]\n" in result.output
    assert target.read_text(encoding="utf-8") == "x [4] y [9]\n"


def test_fix_preserves_permissions(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "[1] [1]\n")
    os.chmod(target, 0o640)

    result = cli_runner.invoke(cli, ["fix", str(target), "--duplicates"])

    assert result.exit_code == 0
    assert target.read_text(encoding="utf-8") == "[1] \n"
    assert target.stat().st_mode & 0o777 == 0o640


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="Symlink support is required")
def test_symlink_rejected(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    source = _write(tmp_path, "source.md", "[1]\n")
    link = tmp_path / "alias.md"
    try:
        os.symlink(source, link, target_is_directory=False)
    except OSError as error:  # pragma: no cover - platform dependent
        pytest.skip(f"Unable to create symlink: {error}")

    result = cli_runner.invoke(cli, ["validate", str(link)])

    assert result.exit_code != 0
    assert "Symlinks" in result.output


def test_path_outside_working_directory_rejected(cli_runner, tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    outside = _write(tmp_path, f"outside-{uuid.uuid4().hex}.md", "[1]\n")

    result = cli_runner.invoke(cli, ["validate", str(outside)])

    assert result.exit_code != 0
    assert "outside of the working directory" in result.output


def test_unsupported_extension_rejected(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "script.py", "x = [1]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 2
    assert "unsupported extension" in result.output


def test_file_size_limit_enforced(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MARKER_REINDEX_MAX_FILE_SIZE", "5")
    target = _write(tmp_path, "large.md", "[1] " * 10)

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 1
    assert "maximum allowed size" in _error_text(result)


def test_invalid_file_size_env_var(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MARKER_REINDEX_MAX_FILE_SIZE", "lots")
    target = _write(tmp_path, "notes.md", "[1]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 1
    assert "Invalid value for MARKER_REINDEX_MAX_FILE_SIZE" in result.output


def test_non_utf8_file_rejected(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "latin.md"
    target.write_bytes(b"caf\xe9 [1]\n")

    result = cli_runner.invoke(cli, ["validate", str(target)])

    assert result.exit_code == 1
    assert "not valid UTF-8" in result.output
