"""Exception types raised by aptsoname."""


class AptSonameError(Exception):
    """Base class for all aptsoname errors."""


class ContentsParseError(AptSonameError, ValueError):
    """A single Contents line did not match the grammar.

    Raised by the grammar functions in :mod:`aptsoname.contents`. The streaming
    iterators catch it and skip the offending line.
    """

    def __init__(self, message: str, line: bytes | None = None, offset: int | None = None):
        super().__init__(message)
        self.line = line
        self.offset = offset


class FetchError(AptSonameError):
    """No Contents index could be downloaded from a repository."""


class ChecksumMismatchError(AptSonameError):
    """A downloaded file does not match the checksum listed in the Release file."""

    def __init__(self, path, expected: str, actual: str):
        super().__init__(f"Checksum mismatch for {path}: expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual
