"""aptsoname: shared library soname extraction from APT Contents indexes."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from aptsoname.constants import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
