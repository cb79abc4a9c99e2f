"""aptsoname command line interface."""

import asyncio
import hashlib
import json
import logging
import re
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from aptsoname.constants import DEFAULT_ARCHITECTURE, DEFAULT_LINE_FILTER, REPOS_DIR
from aptsoname.contents import iter_contents
from aptsoname.errors import AptSonameError
from aptsoname.fetcher import SkipMode, fetch_contents
from aptsoname.filters import AcceptAllFilter, LineFilter, RegexFilter, SubstringFilter
from aptsoname.models import HardcodeTable, Lib, build_lookup_table
from aptsoname.reducer import LibraryReducer, reduce_contents_file, reduce_contents_files
from aptsoname.sources import wrap_stream
from aptsoname.utils import compile_pattern

logger = logging.getLogger(__name__)

cli = typer.Typer(help="Extract shared library sonames from APT Contents indexes.", no_args_is_help=True)
console = Console()


def _line_filter(pattern: str | None, all_lines: bool) -> LineFilter:
    if all_lines:
        return AcceptAllFilter()
    if pattern:
        try:
            return RegexFilter(pattern)
        except re.error as e:
            raise typer.BadParameter(f"Invalid line filter {pattern!r}: {e}") from e
    return SubstringFilter(DEFAULT_LINE_FILTER)


def _name_filter(pattern: str | None):
    try:
        return compile_pattern(pattern)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _print_libs(libs: list[Lib], as_json: bool) -> None:
    libs = sorted(libs, key=lambda lib: lib.library_name)
    if as_json:
        typer.echo(json.dumps([lib.model_dump(mode="json") for lib in libs], indent=2))
        return

    table = Table(title=f"{len(libs)} shared libraries")
    table.add_column("Library")
    table.add_column("Soname version")
    table.add_column("Runtime package")
    table.add_column("Development package")
    table.add_column("Provided by")
    for lib in libs:
        table.add_row(
            lib.library_name,
            lib.sover_str or "-",
            lib.translated_lib_name,
            lib.translated_dev_name,
            ", ".join(lib.packages),
        )
    console.print(table)


def _write_lookup_table(libs: list[Lib], output: Path, hardcode: list[Path]) -> None:
    tables = [HardcodeTable.from_toml(path) for path in hardcode]
    lookup = build_lookup_table(libs, tables)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(lookup.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"Wrote {len(lookup)} lookup entries to {output}")


@cli.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
def entries(
    path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, allow_dash=True, help="Contents or Contents.gz file, - for stdin"
    ),
    gzip_input: bool = typer.Option(False, "--gzip", help="Standard input is gzip compressed"),
    so_only: bool = typer.Option(False, "--so-only", help="Only emit shared library entries"),
    line_filter: str | None = typer.Option(None, "--line-filter", help="Regex a raw line must match"),
):
    """Print every parsed entry as a JSON line."""
    filter_ = _line_filter(line_filter, all_lines=line_filter is None)
    source = wrap_stream(sys.stdin.buffer, gzip_input) if str(path) == "-" else path
    for entry in iter_contents(source, filter_, shared_libraries_only=so_only):
        typer.echo(entry.model_dump_json())


@cli.command()
def libs(
    paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Contents (.gz) files"),
    name_filter: str | None = typer.Option(None, "--name-filter", "-n", help="Regex a library must match"),
    line_filter: str | None = typer.Option(None, "--line-filter", help="Regex a raw line must match"),
    all_lines: bool = typer.Option(False, "--all-lines", help="Parse every line, not only usr/lib ones"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
    workers: int | None = typer.Option(None, "--workers", "-j", help="Number of files parsed in parallel"),
    sha256: bool = typer.Option(False, "--sha256", help="Log the SHA256 of the decompressed input"),
):
    """Reduce Contents files to one record per shared library."""
    filter_ = _line_filter(line_filter, all_lines)
    pattern = _name_filter(name_filter)
    if sha256:
        reducer = LibraryReducer(pattern)
        for path in paths:
            digest = hashlib.sha256()
            reducer.merge(reduce_contents_file(path, pattern, filter_, digest))
            logger.info(f"SHA256 of {path}: {digest.hexdigest()}")
    else:
        reducer = reduce_contents_files(paths, pattern, filter_, max_workers=workers)
    _print_libs(reducer.libraries(), as_json)


@cli.command()
def lut(
    paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Contents (.gz) files"),
    output: Path = typer.Option(Path("lookup.json"), "--output", "-o", help="Lookup table JSON to write"),
    hardcode: list[Path] = typer.Option([], "--hardcode", help="TOML table of hardcoded names, repeatable"),
    name_filter: str | None = typer.Option(None, "--name-filter", "-n", help="Regex a library must match"),
    workers: int | None = typer.Option(None, "--workers", "-j", help="Number of files parsed in parallel"),
):
    """Write a translated-name -> library-name lookup table."""
    reducer = reduce_contents_files(paths, _name_filter(name_filter), _line_filter(None, False), workers)
    try:
        _write_lookup_table(reducer.libraries(), output, hardcode)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to write lookup table: {e}")
        raise typer.Exit(1) from e


@cli.command()
def fetch(
    repo_url: str = typer.Argument(..., help="Repository base URL, e.g. https://deb.debian.org/debian"),
    dist: str = typer.Argument(..., help="Distribution, e.g. bookworm"),
    architecture: str = typer.Option(DEFAULT_ARCHITECTURE, "--arch", "-a", help="Architecture"),
    component: str | None = typer.Option(None, "--component", "-c", help="Component, e.g. main"),
    verify: bool = typer.Option(True, help="Verify the download against the Release file"),
    skip_mode: SkipMode = typer.Option(SkipMode.CHECK, "--skip", help="When to skip re-downloading"),
    cache_dir: Path = typer.Option(REPOS_DIR, "--cache-dir", help="Where downloaded indexes are kept"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write a lookup table JSON instead"),
    name_filter: str | None = typer.Option(None, "--name-filter", "-n", help="Regex a library must match"),
):
    """Download a repository's Contents index and reduce it."""
    try:
        path = asyncio.run(
            fetch_contents(repo_url, dist, architecture, component, verify, skip_mode, repos_dir=cache_dir)
        )
    except AptSonameError as e:
        logger.error(str(e))
        raise typer.Exit(1) from e

    reducer = reduce_contents_file(path, _name_filter(name_filter), _line_filter(None, False))
    if output is None:
        _print_libs(reducer.libraries(), as_json=False)
        return
    try:
        _write_lookup_table(reducer.libraries(), output, [])
    except (OSError, ValueError) as e:
        logger.error(f"Failed to write lookup table: {e}")
        raise typer.Exit(1) from e


def main() -> None:
    """Main entry point for the aptsoname CLI."""
    cli()


if __name__ == "__main__":
    main()
