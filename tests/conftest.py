import gzip
import os
import tempfile
from pathlib import Path

import pytest

# keep the data dir and log noise out of the working tree; must happen before aptsoname is imported
os.environ.setdefault("APTSONAME_DATA_DIR", tempfile.mkdtemp(prefix="aptsoname-test-"))
os.environ.setdefault("APTSONAME_LOG_LEVEL", "WARNING")

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def contents_path() -> Path:
    return DATA_DIR / "Contents-amd64-dummy"


@pytest.fixture
def contents_gz_path(tmp_path: Path, contents_path: Path) -> Path:
    path = tmp_path / "Contents-amd64.gz"
    path.write_bytes(gzip.compress(contents_path.read_bytes()))
    return path


@pytest.fixture
def hardcode_toml(tmp_path: Path) -> Path:
    path = tmp_path / "hardcode.toml"
    path.write_text('[entries]\nzlib = ["libz1", "zlib1g", "zlib1g-dev"]\n', encoding="utf-8")
    return path
