"""Cheap line predicates applied before the Contents grammar runs."""

import re
from typing import Protocol, runtime_checkable


@runtime_checkable
class LineFilter(Protocol):
    """Decide whether a raw Contents line is worth parsing."""

    def filter_bytes(self, line: bytes) -> bool: ...


class AcceptAllFilter:
    """Accept every line."""

    def filter_bytes(self, line: bytes) -> bool:
        return True

    def __repr__(self) -> str:
        return "AcceptAllFilter()"


class RegexFilter:
    """Accept lines in which ``pattern`` matches anywhere."""

    def __init__(self, pattern: bytes | str | re.Pattern[bytes]):
        if isinstance(pattern, str):
            pattern = pattern.encode()
        if isinstance(pattern, bytes):
            pattern = re.compile(pattern)
        self.pattern: re.Pattern[bytes] = pattern

    def filter_bytes(self, line: bytes) -> bool:
        return self.pattern.search(line) is not None

    def __repr__(self) -> str:
        return f"RegexFilter({self.pattern.pattern!r})"


class SubstringFilter:
    """Accept lines containing a literal byte string, e.g. ``b"usr/lib"``."""

    def __init__(self, needle: bytes | str):
        self.needle = needle.encode() if isinstance(needle, str) else needle

    def filter_bytes(self, line: bytes) -> bool:
        return self.needle in line

    def __repr__(self) -> str:
        return f"SubstringFilter({self.needle!r})"
