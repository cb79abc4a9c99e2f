"""Parser for the Contents-{arch} index inside an APT repository.

Each line maps one file path to the packages that ship it::

    usr/lib/x86_64-linux-gnu/libnuma.so.1.0.0               libs/libnuma1
    usr/share/doc/zsh/README                                shells/zsh,shells/zsh-common

The format has no quoting. The path and the package list are told apart by
the last run of whitespace on the line, so file names with embedded
whitespace are only handled as far as that rule allows.

All grammar functions work on raw bytes, take a start offset and return the
parsed value together with the offset just past it. They raise
:class:`~aptsoname.errors.ContentsParseError` on mismatch; the iterators at the
bottom of this module swallow those and move on to the next line.
"""

import errno
import logging
import re
import zlib
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Iterator
from pathlib import Path
from typing import BinaryIO, TypeAlias

from aptsoname.errors import ContentsParseError
from aptsoname.filters import AcceptAllFilter, LineFilter
from aptsoname.models.contents import (
    ContentsEntry,
    ContentsPath,
    File,
    NormalFile,
    PackageName,
    SharedLibrary,
)
from aptsoname.sources import aiter_lines, open_contents

logger = logging.getLogger(__name__)

LINE_END = b" \t\r\n"
LIST_SEPARATOR = b","

_DIRECTORY_SEGMENT = re.compile(rb"([^\t/]*)/")
_SHARED_LIBRARY = re.compile(rb"([A-Za-z0-9+_-]+)\.so((?:\.[0-9]+)*)[ \t]+")
_NORMAL_FILE = re.compile(rb"([^\t/]*[^\t/ ])[ \t]*")
_SEPARATOR = re.compile(rb"[ \t]*")
_QUALIFIER = re.compile(rb"([A-Za-z0-9-]+)/")
_PACKAGE_NAME = re.compile(rb"[a-z0-9+_.-]+")

MAX_QUALIFIERS = 2

Terminal: TypeAlias = Callable[[bytes, int], tuple[File, int]]


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def split_line(line: bytes) -> int:
    """Return the offset of the whitespace byte separating the path from the package list.

    This is the last space or tab on the line. Callers are expected to strip
    the line terminator first.
    """
    index = max(line.rfind(b" "), line.rfind(b"\t"))
    if index < 0:
        raise ContentsParseError("no whitespace between path and package list", line)
    return index


def parse_parent(data: bytes, pos: int = 0) -> tuple[tuple[str, ...], int]:
    """Consume every ``segment/`` at ``pos`` and return the segments in order."""
    segments = []
    while match := _DIRECTORY_SEGMENT.match(data, pos):
        segments.append(_decode(match.group(1)))
        pos = match.end()
    return tuple(segments), pos


def parse_shared_library(data: bytes, pos: int) -> tuple[File, int]:
    """Parse ``<soname>.so[.<n>]*`` followed by whitespace up to the end of ``data``."""
    match = _SHARED_LIBRARY.fullmatch(data, pos)
    if match is None:
        raise ContentsParseError("not a shared library", data, pos)
    sover = tuple(int(n) for n in match.group(2).split(b".")[1:])
    return SharedLibrary(name=_decode(match.group(1)), sover=sover), match.end()


def parse_normal_file(data: bytes, pos: int) -> tuple[File, int]:
    match = _NORMAL_FILE.fullmatch(data, pos)
    if match is None:
        raise ContentsParseError("invalid file name", data, pos)
    return NormalFile(name=_decode(match.group(1))), match.end()


# candidate terminals, tried in order; the first one that matches wins
GENERAL_TERMINALS: tuple[Terminal, ...] = (parse_shared_library, parse_normal_file)
SHARED_LIBRARY_TERMINALS: tuple[Terminal, ...] = (parse_shared_library,)


def parse_path(data: bytes, terminals: tuple[Terminal, ...] = GENERAL_TERMINALS) -> ContentsPath:
    """Parse the path column (including its trailing whitespace) into a ContentsPath.

    Args:
        data: The path column, ending with at least one whitespace byte
        terminals: Candidate parsers for the file name, in priority order

    Returns:
        The parsed path
    """
    parent, pos = parse_parent(data)
    for terminal in terminals:
        try:
            file, _ = terminal(data, pos)
        except ContentsParseError:
            continue
        return ContentsPath(parent=parent, file=file)
    raise ContentsParseError("no file name candidate matched", data, pos)


def parse_path_so(data: bytes) -> ContentsPath:
    return parse_path(data, SHARED_LIBRARY_TERMINALS)


def parse_package(data: bytes, pos: int) -> tuple[PackageName, int]:
    """Parse one ``[area/][section/]name`` package reference."""
    qualifiers = []
    while len(qualifiers) < MAX_QUALIFIERS and (qualifier := _QUALIFIER.match(data, pos)):
        qualifiers.append(_decode(qualifier.group(1)))
        pos = qualifier.end()

    token = _PACKAGE_NAME.match(data, pos)
    if token is None:
        raise ContentsParseError("invalid package name", data, pos)
    pos = token.end()
    if data[pos : pos + 1] == b"/":
        raise ContentsParseError(f"more than {MAX_QUALIFIERS} package qualifiers", data, pos)

    name = _decode(token.group())
    match qualifiers:
        case []:
            package = PackageName(name=name)
        case [section]:
            package = PackageName(section=section, name=name)
        case [area, section]:
            package = PackageName(area=area, section=section, name=name)
    return package, pos


def parse_packages(data: bytes, pos: int) -> tuple[tuple[PackageName, ...], int]:
    """Parse a comma separated list of at least one package, after optional whitespace."""
    pos = _SEPARATOR.match(data, pos).end()
    package, pos = parse_package(data, pos)
    packages = [package]
    while data[pos : pos + 1] == LIST_SEPARATOR:
        package, pos = parse_package(data, pos + 1)
        packages.append(package)
    return tuple(packages), pos


def _parse_line(line: bytes, path_parser: Callable[[bytes], ContentsPath]) -> ContentsEntry:
    data = line.rstrip(LINE_END)
    split = split_line(data)
    path = path_parser(data[: split + 1])
    packages, end = parse_packages(data, split)
    if end != len(data):
        raise ContentsParseError("trailing data after package list", line, end)
    return ContentsEntry(path=path, packages=packages)


def parse_line(line: bytes) -> ContentsEntry:
    """Parse one Contents line, accepting any kind of file."""
    return _parse_line(line, parse_path)


def parse_line_so(line: bytes) -> ContentsEntry:
    """Parse one Contents line, accepting only shared libraries."""
    return _parse_line(line, parse_path_so)


def _parse_filtered(
    line: bytes,
    line_filter: LineFilter,
    parser: Callable[[bytes], ContentsEntry],
) -> ContentsEntry | None:
    if not line_filter.filter_bytes(line):
        return None
    try:
        return parser(line)
    except ContentsParseError:
        return None


class ContentsIterator(Iterator[ContentsEntry]):
    """Stream ContentsEntry objects out of a binary Contents source.

    Lines rejected by ``line_filter`` or that fail to parse are skipped. A read
    error ends the iteration like a clean end of input would; the exception is
    kept in :attr:`error` so callers can tell the two apart.
    """

    def __init__(
        self,
        source: BinaryIO,
        line_filter: LineFilter | None = None,
        shared_libraries_only: bool = False,
        on_line: Callable[[bytes], object] | None = None,
    ):
        self.source = source
        self.line_filter = line_filter or AcceptAllFilter()
        self.on_line = on_line
        self.error: BaseException | None = None
        self.exhausted = False
        self._parser = parse_line_so if shared_libraries_only else parse_line

    def __iter__(self) -> "ContentsIterator":
        return self

    def __next__(self) -> ContentsEntry:
        while not self.exhausted:
            try:
                line = self.source.readline()
            except (OSError, EOFError, zlib.error) as e:
                logger.warning(f"Stopped reading Contents source after read error: {e}")
                self.error = e
                line = b""

            if not line:
                self.exhausted = True
                break
            if self.on_line is not None:
                self.on_line(line)

            if (entry := _parse_filtered(line, self.line_filter, self._parser)) is not None:
                return entry
        raise StopIteration


def iter_contents(
    source: Path | str | BinaryIO,
    line_filter: LineFilter | None = None,
    shared_libraries_only: bool = False,
    on_line: Callable[[bytes], object] | None = None,
) -> Iterator[ContentsEntry]:
    """Stream entries from a Contents file path or an already open binary stream."""
    if isinstance(source, (str, Path)):
        with open_contents(source) as stream:
            yield from ContentsIterator(stream, line_filter, shared_libraries_only, on_line)
    else:
        yield from ContentsIterator(source, line_filter, shared_libraries_only, on_line)


def iter_shared_libraries(
    source: Path | str | BinaryIO,
    line_filter: LineFilter | None = None,
    on_line: Callable[[bytes], object] | None = None,
) -> Iterator[ContentsEntry]:
    """Stream only the shared library entries of a Contents file."""
    return iter_contents(source, line_filter, shared_libraries_only=True, on_line=on_line)


class AsyncContentsIterator(AsyncIterator[ContentsEntry]):
    """Asynchronous counterpart of :class:`ContentsIterator` over a Contents file path.

    Like the sync iterator, a read or decompression error ends the iteration
    and is kept in :attr:`error`. A missing file is reported up front.
    """

    def __init__(
        self,
        path: Path | str,
        line_filter: LineFilter | None = None,
        shared_libraries_only: bool = False,
        on_line: Callable[[bytes], object] | None = None,
    ):
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(errno.ENOENT, "Contents file not found", str(self.path))
        self.line_filter = line_filter or AcceptAllFilter()
        self.on_line = on_line
        self.error: BaseException | None = None
        self.exhausted = False
        self._parser = parse_line_so if shared_libraries_only else parse_line
        self._lines: AsyncGenerator[bytes, None] | None = None

    def __aiter__(self) -> "AsyncContentsIterator":
        return self

    async def __anext__(self) -> ContentsEntry:
        if self._lines is None:
            self._lines = aiter_lines(self.path)
        while not self.exhausted:
            try:
                line = await anext(self._lines)
            except StopAsyncIteration:
                self.exhausted = True
                break
            except (OSError, EOFError, zlib.error) as e:
                logger.warning(f"Stopped reading {self.path} after read error: {e}")
                self.error = e
                self.exhausted = True
                break

            if self.on_line is not None:
                self.on_line(line)
            if (entry := _parse_filtered(line, self.line_filter, self._parser)) is not None:
                return entry
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Close the underlying file when iteration is abandoned early."""
        self.exhausted = True
        if self._lines is not None:
            await self._lines.aclose()


def aiter_contents(
    path: Path | str,
    line_filter: LineFilter | None = None,
    shared_libraries_only: bool = False,
    on_line: Callable[[bytes], object] | None = None,
) -> AsyncContentsIterator:
    """Asynchronously stream entries from a Contents or Contents.gz file."""
    return AsyncContentsIterator(path, line_filter, shared_libraries_only, on_line)
