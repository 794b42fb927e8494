"""
Keeps inline reference markers (`[1]`, `[2]`, ...) sequential in a text file.
Inserting annotated text between existing markers renumbers every marker after it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
from .classifier import detect_insertion_between_markers
from .config import ConfigError, ReindexConfig, build_config
from .editor import TextBufferEditor
from .engine import execute_reindexing_with_full_error_handling
from .filesystem import (
    FileFingerprint,
    get_max_file_size,
    load_title_mapping,
    read_text_file,
    replace_text_file,
    resolve_document_path,
    write_title_mapping,
)
from .mapping import (
    build_reference_mapping,
    sync_reference_mapping,
    titles_only,
    update_reference_mapping,
)
from .models import RenamePlanEntry
from .repair import fix_duplicate_markers, fix_sequence_gaps
from .scanner import format_marker, parse_marker_text
from .validator import validate_reference_mapping_consistency, validate_sequential_integrity

__all__ = ["cli"]


class Document:
    """A text file read under the filesystem safety checks."""

    def __init__(self, raw_path: str, **overrides: object):
        base_dir = Path.cwd().resolve()
        try:
            self.path = resolve_document_path(raw_path, base_dir)
        except ValueError as error:
            raise click.BadParameter(str(error)) from error

        try:
            self.config: ReindexConfig = build_config(self.path.parent, **overrides)
        except ConfigError as error:
            raise click.BadParameter(str(error)) from error

        try:
            self.max_file_size = get_max_file_size(default=self.config.max_file_size)
            self.content, self.fingerprint = read_text_file(self.path, self.max_file_size)
        except (ValueError, IOError) as error:
            raise click.ClickException(str(error)) from error

    def save(self, content: str):
        try:
            replace_text_file(self.path, content, self.fingerprint, warn=_warn)
        except IOError as error:
            raise click.ClickException(str(error)) from error


class MappingFile:
    """Optional JSON table of titles to markers kept in step with a document."""

    def __init__(self, raw_path: str | None):
        self.path: Path | None = None
        self.fingerprint: FileFingerprint | None = None
        self.mapping: dict[str, str] = {}
        if raw_path is None:
            return

        try:
            self.path = resolve_document_path(
                raw_path, Path.cwd().resolve(), extensions=(".json",)
            )
            titles, self.fingerprint = load_title_mapping(self.path, get_max_file_size())
        except (ValueError, IOError) as error:
            raise click.BadParameter(str(error), param_hint="--mapping") from error
        self.mapping = build_reference_mapping(titles)

    def save(self, mapping: dict[str, str]):
        if self.path is None:
            return
        try:
            write_title_mapping(self.path, titles_only(mapping), self.fingerprint, warn=_warn)
        except IOError as error:
            raise click.ClickException(str(error)) from error


def _warn(message: str):
    click.echo(message, err=True)


def _echo_plan(plan: list[RenamePlanEntry]):
    for entry in plan:
        suffix = " (inserted)" if entry.is_new_marker else ""
        click.echo(f"{entry.old_marker} -> {entry.new_marker}{suffix}")


@click.group()
@click.version_option(package_name="marker-reindex")
@click.option("-v", "--verbose", is_flag=True, help="Log every reindexing step")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
def cli(verbose: bool = False, quiet: bool = False):
    """
    Keep inline reference markers sequential in text files.

    Examples:
        marker-reindex insert notes.md --at 42 --marker "[7]" --text "New claim"
        marker-reindex validate notes.md --lenient
    """
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("--at", "offset", type=int, required=True, help="Character offset of the insertion")
@click.option("--marker", required=True, help='Marker to insert, e.g. "[19]"')
@click.option("--text", default="", help="Annotated text inserted before the marker")
@click.option("--mapping", "mapping_path", help="JSON file of titles to markers to keep in sync")
@click.option("--title", help="Title recorded in the mapping for the inserted marker")
@click.option("--strict/--lenient", default=None, help="Treat gaps and a start other than [1] as errors")
@click.option("--retries", type=int, help="Extra attempts when reindexing fails")
def insert(
    filepath: str,
    offset: int,
    marker: str,
    text: str = "",
    mapping_path: str | None = None,
    title: str | None = None,
    strict: bool | None = None,
    retries: int | None = None,
):
    """
    Insert annotated text with a marker and renumber the markers after it.

    Args:
        filepath: Path to the text file to update.
        offset: Character offset where the text is inserted.
        marker: Provisional marker of the inserted text.
        text: Text placed before the marker.
        mapping_path: Optional JSON title table updated alongside the file.
        title: Title recorded for the inserted marker.
        strict: Override for `strict_mode`.
        retries: Override for `max_retries`.

    Raises:
        click.UsageError: If `--title` is given without `--mapping`.
        click.BadParameter: If the offset, marker, paths, or configuration are invalid.
        click.ClickException: If reindexing fails or the file cannot be updated.

    Examples:
        marker-reindex insert notes.md --at 42 --marker "[7]" --text "New claim"
    """
    if title and mapping_path is None:
        raise click.UsageError("--title requires --mapping.")

    marker_number = parse_marker_text(marker)
    if marker_number is None:
        raise click.BadParameter(f"{marker!r} is not a marker such as [1].", param_hint="--marker")

    document = Document(filepath, strict_mode=strict, max_retries=retries)
    if not 0 <= offset <= len(document.content):
        raise click.BadParameter(
            f"Offset must be between 0 and {len(document.content)}.", param_hint="--at"
        )

    mapping_file = MappingFile(mapping_path)
    mapping = mapping_file.mapping
    snippet = f" {text} {marker}" if text else f" {marker}"
    content = document.content[:offset] + snippet + document.content[offset:]
    editor = TextBufferEditor(content, cursor_position=offset + len(snippet))

    context = detect_insertion_between_markers(content, offset, marker)
    final_number = marker_number
    if context is None:
        click.echo("No reindexing needed.", err=True)
    else:
        current = {"mapping": mapping}
        outcome = execute_reindexing_with_full_error_handling(
            content,
            context,
            editor,
            mapping,
            lambda new_mapping: current.update(mapping=new_mapping),
            document.config,
        )
        if not outcome.success:
            raise click.ClickException(f"Reindexing failed: {outcome.error}")
        _echo_plan(outcome.result.reindexing_map)
        mapping = current["mapping"]
        final_number = context.new_marker_final_number

    if title:
        titles = titles_only(mapping)
        titles[title] = format_marker(final_number)
        mapping = build_reference_mapping(titles)

    document.save(editor.get_content())
    mapping_file.save(mapping)


@cli.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("--mapping", "mapping_path", help="JSON file of titles to markers to check")
@click.option("--strict/--lenient", default=None, help="Treat gaps and a start other than [1] as errors")
def validate(filepath: str, mapping_path: str | None = None, strict: bool | None = None):
    """
    Check a file's markers for duplicates, gaps, and ordering.

    Examples:
        marker-reindex validate notes.md --lenient
    """
    document = Document(filepath, strict_mode=strict)
    result = validate_sequential_integrity(document.content, document.config.strict_mode)
    errors, warnings = list(result.errors), list(result.warnings)

    if mapping_path is not None:
        mapping = MappingFile(mapping_path).mapping
        consistency = validate_reference_mapping_consistency(document.content, mapping)
        errors.extend(consistency.errors)
        warnings.extend(consistency.warnings)

    for warning in warnings:
        click.echo(f"warning: {warning}", err=True)
    for error in errors:
        click.echo(f"error: {error}", err=True)
    if errors:
        raise click.ClickException(f"{len(errors)} problem(s) found in {document.path.name}")
    click.echo(f"{document.path.name}: {result.marker_count} marker(s), sequence OK")


@cli.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("--duplicates", is_flag=True, help="Remove repeated markers, keeping the first")
@click.option("--gaps", is_flag=True, help="Renumber markers consecutively from [1]")
@click.option("--mapping", "mapping_path", help="JSON file of titles to markers to keep in sync")
@click.option("--dry-run", is_flag=True, help="Print the repaired text instead of writing it")
def fix(
    filepath: str,
    duplicates: bool = False,
    gaps: bool = False,
    mapping_path: str | None = None,
    dry_run: bool = False,
):
    """
    Repair a file's marker sequence.

    Examples:
        marker-reindex fix notes.md --duplicates --gaps --dry-run
    """
    if not duplicates and not gaps:
        raise click.UsageError("Choose at least one of --duplicates or --gaps.")

    document = Document(filepath)
    mapping_file = MappingFile(mapping_path)
    mapping = mapping_file.mapping
    content = document.content

    if duplicates:
        result = fix_duplicate_markers(content)
        content = result.new_content
        click.echo(f"Removed {result.removed} duplicate marker(s).", err=True)
    if gaps:
        result = fix_sequence_gaps(content)
        content = result.new_content
        plan = [
            RenamePlanEntry(format_marker(old), format_marker(new), old, new)
            for old, new in sorted(result.renames.items())
        ]
        mapping = update_reference_mapping(mapping, plan)
        click.echo(f"Renumbered {result.fixed} marker(s).", err=True)

    if dry_run:
        click.echo(content, nl=False)
        return

    if content != document.content:
        document.save(content)
    if mapping_file.path is not None:
        mapping_file.save(sync_reference_mapping(content, mapping))


if __name__ == "__main__":
    cli()
