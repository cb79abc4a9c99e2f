"""Byte sources for Contents indexes, with transparent gzip decompression."""

import gzip
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import BinaryIO

import aiofiles
import aiogzip

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def is_gzip(path: Path) -> bool:
    """Check the file magic rather than trusting the suffix."""
    with path.open("rb") as f:
        return f.read(len(GZIP_MAGIC)) == GZIP_MAGIC


def open_contents(path: Path | str) -> BinaryIO:
    """Open a Contents or Contents.gz file for binary line reading.

    Args:
        path: Path to the index; gzip compression is detected from the file magic

    Returns:
        A binary file object positioned at the first line
    """
    path = Path(path)
    if is_gzip(path):
        logger.debug("Opening %s as gzip stream", path)
        return gzip.open(path, "rb")
    return path.open("rb")


def wrap_stream(stream: BinaryIO, compressed: bool = False) -> BinaryIO:
    """Wrap an already open byte stream, e.g. standard input or an HTTP response body."""
    if compressed:
        return gzip.GzipFile(fileobj=stream, mode="rb")
    return stream


async def aiter_lines(path: Path | str) -> AsyncIterator[bytes]:
    """Asynchronously stream raw lines from a Contents or Contents.gz file.

    Lines are split on LF bytes only and yielded unchanged, like ``readline()`` on
    the stream returned by :func:`open_contents`.
    """
    path = Path(path)
    if is_gzip(path):
        async with aiogzip.AsyncGzipBinaryFile(path, "rb") as f:
            async for line in f:
                yield line
        return
    async with aiofiles.open(path, "rb") as f:
        async for line in f:
            yield line
