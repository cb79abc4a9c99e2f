import logging
import re

from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date

logger = logging.getLogger(__name__)


def try_parse_timestamp(header: str | None) -> float | None:
    """Parse an HTTP date header (e.g. Last-Modified) into a POSIX timestamp.

    Returns None when the header is missing or unparseable.
    """
    if not header:
        return None
    try:
        return parse_date(header).timestamp()
    except (ParserError, OverflowError, ValueError) as e:
        logger.debug(f"Failed to parse date '{header}': {e}")
        return None


def compile_pattern(pattern: str | None, flags: int = 0) -> re.Pattern[str] | None:
    """Compile an optional user supplied regex, raising ValueError with context on bad input."""
    if not pattern:
        return None
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ValueError(f"Invalid regular expression {pattern!r}: {e}") from e
