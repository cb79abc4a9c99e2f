from os import getenv
from pathlib import Path

# ensure data dir exists
# this will run every time constants.py is imported but that's acceptable
DATA_DIR = Path(getenv("APTSONAME_DATA_DIR", "data")).resolve()
DATA_DIR.mkdir(parents=True, exist_ok=True)

# local mirror of downloaded Release/Contents files
REPOS_DIR = DATA_DIR / "repos"

LOG_LEVEL = getenv("APTSONAME_LOG_LEVEL", "INFO").upper()

DEFAULT_ARCHITECTURE = getenv("APTSONAME_ARCHITECTURE", "amd64")

# cheap substring prefilter for library lookups, applied before the grammar runs
DEFAULT_LINE_FILTER = b"usr/lib"
