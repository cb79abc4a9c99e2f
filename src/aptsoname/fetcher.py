"""Fetch Release and Contents indexes from APT repositories."""

import hashlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum
from os import utime
from pathlib import Path
from urllib.parse import urljoin, urlparse

import httpx
from debian import deb822

from aptsoname.constants import REPOS_DIR
from aptsoname.errors import ChecksumMismatchError, FetchError
from aptsoname.utils import try_parse_timestamp

logger = logging.getLogger(__name__)

CONTENTS_SUFFIXES = (".gz", "")
PART_SUFFIX = ".part"


def url_to_local_path(url: str, repos_dir: Path = REPOS_DIR) -> Path:
    """Convert a repository URL to a local file path that mirrors the source structure.

    Examples:
        >>> url_to_local_path("https://deb.debian.org/debian/dists/bookworm/Release", Path("data/repos"))
        PosixPath('data/repos/deb.debian.org/debian/dists/bookworm/Release')
    """
    parsed = urlparse(url)
    return repos_dir / parsed.netloc / parsed.path.lstrip("/")


class SkipMode(str, Enum):
    """File download skip modes.
    FAST: Skip download if local file exists.
    CHECK: Check Last-Modified and Content-Length headers to decide.
    NONE: Always download.
    """

    FAST = "fast"
    CHECK = "check"
    NONE = "none"


@asynccontextmanager
async def _client_context(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as owned:
        yield owned


async def download_file(
    url: str,
    output_path: Path,
    skip_mode: SkipMode = SkipMode.CHECK,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Download a file from a URL to a local path.

    Args:
        url: The URL to download from
        output_path: Where to save the downloaded file
        skip_mode: The mode for skipping downloads if the file exists
        client: Optional shared HTTP client

    Returns:
        True if successful, False if download failed
    """
    part_path = output_path.with_name(output_path.name + PART_SUFFIX)
    try:
        existing = output_path.is_file()
        if existing and skip_mode == SkipMode.FAST:
            logger.debug(f"Skipping download, file already exists: {output_path}")
            return True

        async with _client_context(client) as http:
            if existing and skip_mode != SkipMode.NONE:
                try:
                    response = await http.head(url)
                    response.raise_for_status()
                    if remote_ts := try_parse_timestamp(response.headers.get("last-modified")):
                        # allow a second for fs granularity
                        if remote_ts <= output_path.stat().st_mtime + 1:
                            logger.debug(f"Skipping download, local file mtime matches: {output_path}")
                            return True

                    elif remote_size := response.headers.get("content-length"):
                        if int(remote_size) == output_path.stat().st_size:
                            logger.debug(f"Skipping download, local file size matches remote: {output_path}")
                            return True

                except Exception as e:
                    logger.warning(f"Unable to check remote mtime or size for {url}: {e}")

            output_path.parent.mkdir(parents=True, exist_ok=True)
            # only a complete body ever lands on output_path
            async with http.stream("GET", url) as response:
                response.raise_for_status()
                with part_path.open("wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                if remote_ts := try_parse_timestamp(response.headers.get("last-modified")):
                    utime(part_path, (remote_ts, remote_ts))
            part_path.replace(output_path)

        logger.debug(f"Downloaded {url} to {output_path}")
        return True

    except httpx.HTTPStatusError as e:
        msg = f"Failed to download {url}: {e}"
        if e.response.status_code == 404:
            logger.debug(msg)
        else:
            logger.warning(msg)
        return False
    except httpx.TransportError as e:
        logger.warning(f"Transfer of {url} failed: {e}")
        return False
    except Exception as e:
        logger.exception(f"Unexpected error downloading {url}: {e}")
        return False
    finally:
        part_path.unlink(missing_ok=True)


async def fetch_release_file(
    repo_url: str,
    dist: str,
    repos_dir: Path = REPOS_DIR,
    client: httpx.AsyncClient | None = None,
) -> tuple[Path | None, dict | None]:
    """Download and parse a Release file for a distribution.

    Args:
        repo_url: Base URL of the repository
        dist: Distribution name (e.g., "bookworm")

    Returns:
        Tuple of (local_path, parsed_data) or (None, None) if failed
    """
    if not repo_url.endswith("/"):
        repo_url += "/"

    release_url = urljoin(repo_url, f"dists/{dist}/Release")
    local_path = url_to_local_path(release_url, repos_dir)

    success = await download_file(release_url, local_path, client=client)
    if not success:
        return None, None

    try:
        release_text = local_path.read_text(encoding="utf-8")
        parsed = dict(deb822.Release(release_text))
        logger.debug(f"Parsed Release file for {dist}: {parsed.get('Codename', dist)}")
        return local_path, parsed

    except Exception as e:
        logger.error(f"Failed to parse Release file for {dist}: {e}")
        return local_path, None


def release_checksums(release: dict) -> dict[str, str]:
    """Map each file named in a parsed Release file's SHA256 list to its digest."""
    return {item["name"]: item["sha256"] for item in release.get("SHA256", [])}


def contents_index_names(architecture: str, component: str | None = None) -> list[str]:
    """Candidate Contents index names relative to ``dists/<dist>/``, most preferred first.

    Debian keeps one index per component, Ubuntu one per suite.
    """
    names = []
    prefixes = [f"{component}/", ""] if component else [""]
    for prefix in prefixes:
        for suffix in CONTENTS_SUFFIXES:
            names.append(f"{prefix}Contents-{architecture}{suffix}")
    return names


def build_contents_url(repo_url: str, dist: str, name: str) -> str:
    """Construct a Contents index URL from a name returned by :func:`contents_index_names`."""
    repo_prefix = repo_url if repo_url.endswith("/") else f"{repo_url}/"
    return urljoin(repo_prefix, f"dists/{dist}/{name}")


def file_sha256(path: Path) -> str:
    with path.open("rb") as f:
        return hashlib.file_digest(f, "sha256").hexdigest()


def verify_checksum(path: Path, expected: str) -> None:
    actual = file_sha256(path)
    if actual != expected.lower():
        raise ChecksumMismatchError(path, expected, actual)


async def download_contents_index(
    repo_url: str,
    dist: str,
    architecture: str,
    component: str | None = None,
    skip_mode: SkipMode = SkipMode.CHECK,
    repos_dir: Path = REPOS_DIR,
    client: httpx.AsyncClient | None = None,
) -> tuple[str, Path] | None:
    """Download the first available Contents index for an architecture.

    Returns:
        Tuple of (index name relative to the dist, local_path), or None if nothing was found
    """
    for name in contents_index_names(architecture, component):
        url = build_contents_url(repo_url, dist, name)
        local_path = url_to_local_path(url, repos_dir)
        if await download_file(url, local_path, skip_mode=skip_mode, client=client):
            return name, local_path
    return None


async def fetch_contents(
    repo_url: str,
    dist: str,
    architecture: str,
    component: str | None = None,
    verify: bool = True,
    skip_mode: SkipMode = SkipMode.CHECK,
    repos_dir: Path = REPOS_DIR,
    client: httpx.AsyncClient | None = None,
) -> Path:
    """Download a Contents index and check it against the distribution's Release file.

    Raises:
        FetchError: If no Contents index (or, when verifying, no Release file) is available
        ChecksumMismatchError: If the downloaded index does not match the Release checksum
    """
    async with _client_context(client) as http:
        release = None
        if verify:
            _, release = await fetch_release_file(repo_url, dist, repos_dir, client=http)
            if release is None:
                raise FetchError(f"Unable to fetch Release file for {dist} from {repo_url}")

        result = await download_contents_index(
            repo_url, dist, architecture, component, skip_mode, repos_dir, client=http
        )
    if result is None:
        raise FetchError(f"No Contents-{architecture} index found for {dist} at {repo_url}")

    name, local_path = result
    if release is not None:
        if (expected := release_checksums(release).get(name)) is not None:
            verify_checksum(local_path, expected)
            logger.debug(f"Verified SHA256 of {local_path}")
        else:
            logger.warning(f"Release file for {dist} lists no SHA256 for {name}, not verified")

    logger.info(f"Fetched {name} for {dist} into {local_path}")
    return local_path
