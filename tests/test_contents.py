import asyncio
import gzip
import hashlib
import io
import zlib

import pytest

from aptsoname.contents import (
    GENERAL_TERMINALS,
    SHARED_LIBRARY_TERMINALS,
    AsyncContentsIterator,
    ContentsIterator,
    aiter_contents,
    iter_contents,
    iter_shared_libraries,
    parse_line,
    parse_line_so,
    parse_normal_file,
    parse_package,
    parse_packages,
    parse_parent,
    parse_path,
    parse_path_so,
    parse_shared_library,
    split_line,
)
from aptsoname.errors import ContentsParseError
from aptsoname.filters import RegexFilter, SubstringFilter
from aptsoname.models import ContentsPath, NormalFile, PackageName, SharedLibrary
from aptsoname.sources import open_contents, wrap_stream

DUMMY_ENTRIES = 17
DUMMY_SHARED_LIBRARY_ENTRIES = 12


def test_split_line_uses_last_whitespace():
    assert split_line(b"usr/bin/bash   shells/bash") == 14
    assert split_line(b"usr/lib/libz.so.1\tlibs/zlib1g") == 17
    with pytest.raises(ContentsParseError):
        split_line(b"nowhitespace")


def test_parse_parent():
    assert parse_parent(b"/usr/bin/bash ") == (("", "usr", "bin"), 9)
    assert parse_parent(b"./usr/bin ") == ((".", "usr"), 6)
    assert parse_parent(b"bash ") == ((), 0)


def test_parse_shared_library():
    file, _ = parse_shared_library(b"libnuma.so.1.1.4 ", 0)
    assert file == SharedLibrary(name="libnuma", sover=(1, 1, 4))

    file, _ = parse_shared_library(b"libnuma.so.1.1.4.5.1.4 ", 0)
    assert file.sover == (1, 1, 4, 5, 1, 4)

    file, _ = parse_shared_library(b"libnuma.so ", 0)
    assert file == SharedLibrary(name="libnuma", sover=())

    file, _ = parse_shared_library(b"libstdc++.so.6.0.32 ", 0)
    assert file == SharedLibrary(name="libstdc++", sover=(6, 0, 32))


@pytest.mark.parametrize(
    "data",
    [b"bash ", b"libnuma.so.sign ", b"libnuma.so.1", b"libSDL2-2.0.so.0 ", b"libfoo.so.1a "],
)
def test_parse_shared_library_rejects(data):
    with pytest.raises(ContentsParseError):
        parse_shared_library(data, 0)


def test_parse_shared_library_reads_numeric_value():
    file, _ = parse_shared_library(b"libfoo.so.007 ", 0)
    assert file.sover == (7,)


def test_parse_normal_file():
    assert parse_normal_file(b"bash ", 0)[0] == NormalFile(name="bash")
    assert parse_normal_file(b"my file.txt  ", 0)[0] == NormalFile(name="my file.txt")
    with pytest.raises(ContentsParseError):
        parse_normal_file(b"   ", 0)


def test_shared_library_terminal_takes_priority():
    assert GENERAL_TERMINALS[0] is parse_shared_library
    assert SHARED_LIBRARY_TERMINALS == (parse_shared_library,)


def test_parse_path():
    assert parse_path(b"./usr/lib/libnuma.so.1.1.4 ") == ContentsPath(
        parent=(".", "usr", "lib"),
        file=SharedLibrary(name="libnuma", sover=(1, 1, 4)),
    )
    assert parse_path(b"./usr/lib/libnuma.so ") == ContentsPath(
        parent=(".", "usr", "lib"),
        file=SharedLibrary(name="libnuma", sover=()),
    )
    assert parse_path(b"./usr/lib/libnuma.so.sign ") == ContentsPath(
        parent=(".", "usr", "lib"),
        file=NormalFile(name="libnuma.so.sign"),
    )
    assert parse_path(b"./usr/bin/bash ") == ContentsPath(
        parent=(".", "usr", "bin"),
        file=NormalFile(name="bash"),
    )


def test_parse_path_so_requires_shared_library():
    assert parse_path_so(b"usr/lib/libz.so.1 ").file == SharedLibrary(name="libz", sover=(1,))
    with pytest.raises(ContentsParseError):
        parse_path_so(b"./usr/bin/bash ")


@pytest.mark.parametrize(
    "data,expected",
    [
        (b"zsh\n", PackageName(name="zsh")),
        (b"shells/zsh\n", PackageName(section="shells", name="zsh")),
        (b"non-free/devel/cuda\n", PackageName(area="non-free", section="devel", name="cuda")),
        (b"libs/libstdc++6\n", PackageName(section="libs", name="libstdc++6")),
    ],
)
def test_parse_package(data, expected):
    package, pos = parse_package(data, 0)
    assert package == expected
    assert data[pos:] == b"\n"


@pytest.mark.parametrize("data", [b"a/b/c/cuda", b"shells/Zsh", b"shells/", b""])
def test_parse_package_rejects(data):
    with pytest.raises(ContentsParseError):
        parse_package(data, 0)


def test_parse_packages():
    packages, _ = parse_packages(b"   shells/bash,shells/zsh", 0)
    assert packages == (
        PackageName(section="shells", name="bash"),
        PackageName(section="shells", name="zsh"),
    )


def test_parse_line_shared_library():
    entry = parse_line(b"./usr/lib/libnuma.so.1.1.4   admin/numactl\n")
    assert entry.path.parent_path == "./usr/lib"
    assert entry.path.file == SharedLibrary(name="libnuma", sover=(1, 1, 4))
    assert entry.packages == (PackageName(section="admin", name="numactl"),)
    assert entry.is_shared_library


def test_parse_line_normal():
    entry = parse_line(b"./usr/bin/bash   shells/bash\n")
    assert entry.path.parent_path == "./usr/bin"
    assert entry.path.file == NormalFile(name="bash")
    assert entry.packages == (PackageName(section="shells", name="bash"),)
    assert not entry.is_shared_library


def test_parse_line_without_trailing_newline():
    assert parse_line(b"usr/bin/bash shells/bash").path.file == NormalFile(name="bash")


@pytest.mark.parametrize(
    "line",
    [
        b"nowhitespace\n",
        b"\n",
        b"usr/bin/bash shells/bash,\n",
        b"usr/share/doc/bash/FAQ    a/b/c/bash\n",
        b"FILE                      LOCATION\n",
    ],
)
def test_parse_line_rejects(line):
    with pytest.raises(ContentsParseError):
        parse_line(line)


def test_parse_line_so_rejects_normal_file():
    with pytest.raises(ContentsParseError):
        parse_line_so(b"usr/bin/bash   shells/bash\n")


@pytest.mark.parametrize(
    "path",
    [
        "usr/bin/bash",
        "./usr/lib/libnuma.so.1.1.4",
        "usr/lib/x86_64-linux-gnu/libnuma.so",
        "/usr/lib/x86_64-linux-gnu/libz.so.1.2.13",
        "usr/lib/x86_64-linux-gnu/libSDL2-2.0.so.0.2800.5",
        "usr/share/doc/a b/README",
        "README",
    ],
)
def test_path_round_trip(path):
    entry = parse_line(f"{path}      misc/pkg\n".encode())
    assert str(entry.path) == path


@pytest.mark.parametrize(
    "parent,file",
    [
        (("usr", "lib"), SharedLibrary(name="libfoo", sover=(1, 2, 3))),
        ((".", "usr", "lib", "x86_64-linux-gnu"), SharedLibrary(name="libc++abi", sover=())),
        (("usr", "share", "doc"), NormalFile(name="changelog.Debian.gz")),
    ],
)
def test_rendered_path_parses_back(parent, file):
    path = ContentsPath(parent=parent, file=file)
    assert parse_path(f"{path} ".encode()) == path


def test_iterator_on_dummy(contents_path):
    with contents_path.open("rb") as f:
        entries = list(ContentsIterator(f))
    assert len(entries) == DUMMY_ENTRIES


def test_iterator_shared_libraries_only(contents_path):
    entries = list(iter_shared_libraries(contents_path))
    assert len(entries) == DUMMY_SHARED_LIBRARY_ENTRIES
    assert all(entry.is_shared_library for entry in entries)


def test_iterator_reads_gzip(contents_gz_path):
    assert len(list(iter_contents(contents_gz_path))) == DUMMY_ENTRIES


def test_iterator_reads_open_gzip_stream(contents_path):
    stream = wrap_stream(io.BytesIO(gzip.compress(contents_path.read_bytes())), compressed=True)
    assert len(list(iter_contents(stream, shared_libraries_only=True))) == DUMMY_SHARED_LIBRARY_ENTRIES


def test_iterator_skips_malformed_lines():
    source = io.BytesIO(b"usr/bin/a  misc/a\nbroken\nusr/bin/b  misc/b\n")
    entries = list(ContentsIterator(source))
    assert [entry.path.file.name for entry in entries] == ["a", "b"]


def test_iterator_handles_missing_final_newline():
    entries = list(ContentsIterator(io.BytesIO(b"usr/bin/a  misc/a\nusr/bin/b  misc/b")))
    assert len(entries) == 2


def test_iterator_applies_filter_before_parsing(contents_path):
    assert len(list(iter_contents(contents_path, SubstringFilter(b"usr/lib")))) == 14
    assert len(list(iter_contents(contents_path, RegexFilter(rb"libnuma")))) == 4
    assert len(list(iter_shared_libraries(contents_path, RegexFilter("libnuma")))) == 3


def test_iterator_reports_every_line(contents_path):
    seen = []
    list(iter_contents(contents_path, RegexFilter(rb"^$"), on_line=seen.append))
    assert b"".join(seen) == contents_path.read_bytes()


def test_iterator_is_single_pass():
    iterator = ContentsIterator(io.BytesIO(b"usr/bin/a  misc/a\n"))
    assert iter(iterator) is iterator
    assert len(list(iterator)) == 1
    assert list(iterator) == []
    assert iterator.exhausted
    assert iterator.error is None


class _FailingSource:
    def __init__(self, lines):
        self.lines = list(lines)

    def readline(self):
        if self.lines:
            return self.lines.pop(0)
        raise OSError("connection reset")


def test_iterator_stops_on_read_error():
    iterator = ContentsIterator(_FailingSource([b"usr/bin/a  misc/a\n"]))
    assert len(list(iterator)) == 1
    assert isinstance(iterator.error, OSError)
    with pytest.raises(StopIteration):
        next(iterator)


def test_iterator_stops_on_truncated_gzip(tmp_path, contents_path):
    data = gzip.compress(contents_path.read_bytes())
    path = tmp_path / "Contents-amd64.gz"
    path.write_bytes(data[: len(data) // 2])
    with open_contents(path) as f:
        iterator = ContentsIterator(f)
        entries = list(iterator)
    assert len(entries) < DUMMY_ENTRIES
    assert isinstance(iterator.error, (EOFError, OSError))


async def _collect(aiterable):
    return [item async for item in aiterable]


def test_aiter_contents(contents_path, contents_gz_path):
    assert len(asyncio.run(_collect(aiter_contents(contents_path)))) == DUMMY_ENTRIES
    entries = asyncio.run(_collect(aiter_contents(contents_gz_path, shared_libraries_only=True)))
    assert len(entries) == DUMMY_SHARED_LIBRARY_ENTRIES


def test_aiter_contents_stops_on_truncated_gzip(tmp_path, contents_path):
    data = gzip.compress(contents_path.read_bytes())
    path = tmp_path / "Contents-amd64.gz"
    path.write_bytes(data[: len(data) // 2])
    iterator = aiter_contents(path)
    entries = asyncio.run(_collect(iterator))
    assert len(entries) < DUMMY_ENTRIES
    assert isinstance(iterator.error, (OSError, EOFError, zlib.error))
    assert iterator.exhausted


def test_aiter_contents_clean_end(contents_path):
    iterator = AsyncContentsIterator(contents_path, shared_libraries_only=True)
    assert len(asyncio.run(_collect(iterator))) == DUMMY_SHARED_LIBRARY_ENTRIES
    assert iterator.error is None
    assert iterator.exhausted


def test_aiter_contents_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        aiter_contents(tmp_path / "Contents-amd64.gz")


def test_aiter_contents_can_stop_early(contents_gz_path):
    async def first_entry():
        iterator = aiter_contents(contents_gz_path)
        entry = await anext(iterator)
        await iterator.aclose()
        return entry, iterator

    entry, iterator = asyncio.run(first_entry())
    assert entry.path.file == NormalFile(name="bash")
    assert iterator.exhausted


def test_sync_and_async_see_the_same_bytes(tmp_path):
    raw = b"usr/lib/libz.so.1   libs/zlib1g\r\nusr/lib/libfoo\rbar.so.1   libs/foo\n"
    path = tmp_path / "Contents-amd64.gz"
    path.write_bytes(gzip.compress(raw))

    sync_digest = hashlib.sha256()
    sync_entries = list(iter_contents(path, on_line=sync_digest.update))
    async_digest = hashlib.sha256()
    async_entries = asyncio.run(_collect(aiter_contents(path, on_line=async_digest.update)))

    assert sync_digest.hexdigest() == hashlib.sha256(raw).hexdigest()
    assert async_digest.hexdigest() == sync_digest.hexdigest()
    assert async_entries == sync_entries
    assert sync_entries[0].path.file == SharedLibrary(name="libz", sover=(1,))
