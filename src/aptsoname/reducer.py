"""Fold shared library observations into one record per library name."""

import logging
import re
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from aptsoname.contents import AsyncContentsIterator, ContentsIterator
from aptsoname.filters import LineFilter
from aptsoname.models.contents import ContentsEntry, SharedLibrary
from aptsoname.models.library import Lib
from aptsoname.sources import open_contents

logger = logging.getLogger(__name__)


class Digest(Protocol):
    def update(self, data: bytes, /) -> None: ...


class Verdict(StrEnum):
    """Outcome of comparing a new soname observation against the retained one."""

    REPLACE = "replace"
    KEEP = "keep"


def compare_sover(current: Sequence[int], candidate: Sequence[int]) -> Verdict:
    """Decide whether ``candidate`` is more specific than ``current``.

    More version components win. An empty sequence (no version suffix) loses to
    any non-empty one. Ties keep the earlier observation.
    """
    if len(candidate) > len(current):
        return Verdict.REPLACE
    return Verdict.KEEP


class LibraryReducer:
    """Keep the most specific soname seen for every normalized library name.

    One reducer belongs to one reduction pass and is not thread safe. To shard
    work, give each worker its own reducer and :meth:`merge` them afterwards on
    a single thread.
    """

    def __init__(self, name_filter: re.Pattern[str] | str | None = None):
        if isinstance(name_filter, str):
            name_filter = re.compile(name_filter)
        self.name_filter = name_filter
        self._libs: dict[str, Lib] = {}

    def add(self, lib: Lib) -> bool:
        """Offer ``lib`` to the reducer. Returns True if it became the retained record."""
        current = self._libs.get(lib.library_name)
        if current is not None and compare_sover(current.sover, lib.sover) is Verdict.KEEP:
            return False
        self._libs[lib.library_name] = lib
        return True

    def observe(self, entry: ContentsEntry) -> bool:
        """Offer a parsed Contents entry; entries that are not shared libraries are ignored."""
        file = entry.path.file
        if not isinstance(file, SharedLibrary):
            return False
        return self.add(Lib(library_name=file.name, sover=file.sover, packages=entry.package_names))

    def consume(self, entries: Iterable[ContentsEntry]) -> "LibraryReducer":
        for entry in entries:
            self.observe(entry)
        return self

    def merge(self, other: "LibraryReducer") -> "LibraryReducer":
        """Fold another reducer's records into this one; on ties this reducer's records stay."""
        for lib in other._libs.values():
            self.add(lib)
        return self

    def matches(self, lib: Lib) -> bool:
        if self.name_filter is None:
            return True
        return any(
            self.name_filter.search(name)
            for name in (lib.translated_lib_name, lib.translated_dev_name, lib.library_name)
        )

    def libraries(self) -> list[Lib]:
        """Return the retained records that pass the name filter."""
        return [lib for lib in self._libs.values() if self.matches(lib)]

    def get(self, library_name: str) -> Lib | None:
        return self._libs.get(library_name)

    def __contains__(self, library_name: object) -> bool:
        return library_name in self._libs

    def __len__(self) -> int:
        return len(self._libs)


def reduce_contents(
    entries: Iterable[ContentsEntry],
    name_filter: re.Pattern[str] | str | None = None,
) -> list[Lib]:
    """Reduce a stream of Contents entries to one Lib per library name."""
    return LibraryReducer(name_filter).consume(entries).libraries()


def reduce_contents_file(
    path: Path | str,
    name_filter: re.Pattern[str] | str | None = None,
    line_filter: LineFilter | None = None,
    digest: Digest | None = None,
) -> LibraryReducer:
    """Run one reduction pass over a Contents or Contents.gz file.

    Args:
        path: The Contents index to read
        name_filter: Optional pattern a library must match to be returned
        line_filter: Optional cheap prefilter applied to raw lines
        digest: Optional hashlib object fed with every raw line read

    Returns:
        The populated reducer
    """
    reducer = LibraryReducer(name_filter)
    on_line = digest.update if digest is not None else None
    with open_contents(path) as stream:
        entries = ContentsIterator(stream, line_filter, shared_libraries_only=True, on_line=on_line)
        reducer.consume(entries)
    if entries.error is not None:
        logger.warning(f"Contents file {path} may be truncated, results are partial")
    logger.info(f"Found {len(reducer)} shared libraries in {path}")
    return reducer


async def reduce_contents_file_async(
    path: Path | str,
    name_filter: re.Pattern[str] | str | None = None,
    line_filter: LineFilter | None = None,
    digest: Digest | None = None,
) -> LibraryReducer:
    """Asynchronous counterpart of :func:`reduce_contents_file`."""
    reducer = LibraryReducer(name_filter)
    on_line = digest.update if digest is not None else None
    entries = AsyncContentsIterator(path, line_filter, shared_libraries_only=True, on_line=on_line)
    async for entry in entries:
        reducer.observe(entry)
    if entries.error is not None:
        logger.warning(f"Contents file {path} may be truncated, results are partial")
    logger.info(f"Found {len(reducer)} shared libraries in {path}")
    return reducer


def reduce_contents_files(
    paths: Sequence[Path | str],
    name_filter: re.Pattern[str] | str | None = None,
    line_filter: LineFilter | None = None,
    max_workers: int | None = None,
) -> LibraryReducer:
    """Reduce several Contents files in parallel, one worker per file.

    Results are merged in the order of ``paths``, so ties between files go to
    the earlier one.
    """
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        reducers = list(executor.map(lambda p: reduce_contents_file(p, name_filter, line_filter), paths))

    combined = LibraryReducer(name_filter)
    for reducer in reducers:
        combined.merge(reducer)
    return combined
