"""
Network helpers: streaming downloads, release metadata, checksum manifests.

This module provides:
- Streaming HTTP downloads written to disk chunk by chunk with a
  ``(bytes_so_far, total_bytes)`` progress callback
- SHA-256 verification of downloaded files
- Time-bounded JSON fetches for vendor release indexes
- Parsing of SHASUMS-style checksum manifests

Metadata calls always carry a timeout. Bulk downloads only bound the
connection phase; their size is unpredictable and progress is observable.
"""

import hashlib
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import requests
from requests.exceptions import ConnectionError, RequestException, Timeout

from templatr_setup.core.exceptions import ChecksumError, DownloadError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

CHUNK_SIZE = 32 * 1024
CONNECT_TIMEOUT = 30
METADATA_TIMEOUT = 30
USER_AGENT = "templatr-setup"


def download_file(
    url: str,
    destination: Path,
    progress_callback: Optional[ProgressCallback] = None,
    connect_timeout: float = CONNECT_TIMEOUT,
    max_retries: int = 3,
) -> Path:
    """
    Download a file from URL to destination, streaming to disk.

    Connection failures are retried with exponential backoff. A non-success
    HTTP status is not retried.

    Args:
        url: URL to download from
        destination: Local path to save file
        progress_callback: Called with (bytes_so_far, total_bytes) after every
            chunk; total_bytes is 0 when the server sends no Content-Length
        connect_timeout: Seconds allowed to establish the connection
        max_retries: Maximum number of connection attempts

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If the status is not 2xx, the URL is unusable or the
            transfer fails

    Example:
        >>> download_file(
        ...     "https://nodejs.org/dist/v20.11.1/node-v20.11.1-linux-x64.tar.gz",
        ...     Path("/tmp/node.tar.gz"),
        ...     progress_callback=lambda done, total: print(done, total),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    for attempt in range(max_retries):
        try:
            return _stream_to_file(url, destination, progress_callback, connect_timeout)
        except (ConnectionError, Timeout) as e:
            destination.unlink(missing_ok=True)
            if attempt == max_retries - 1:
                raise DownloadError(
                    f"Download of {url} failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)
        except RequestException as e:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Download of {url} failed: {e}") from e

    raise DownloadError(f"Download of {url} failed for unknown reason")


def _stream_to_file(
    url: str,
    destination: Path,
    progress_callback: Optional[ProgressCallback],
    connect_timeout: float,
) -> Path:
    """
    Perform one streaming download attempt.

    Raises:
        DownloadError: On non-success status or a mid-transfer failure
        ConnectionError, Timeout: If the connection cannot be established
    """
    logger.info(f"Downloading {url}")

    response = requests.get(
        url,
        stream=True,
        timeout=(connect_timeout, None),
        allow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
    with response:
        if not 200 <= response.status_code < 300:
            raise DownloadError(
                f"Download failed: HTTP {response.status_code} for {url}"
            )

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0

        downloaded = 0
        try:
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded += len(chunk)
                    if progress_callback:
                        progress_callback(downloaded, total_size)
        except (RequestException, OSError) as e:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Error while downloading {url}: {e}") from e

    logger.debug(f"Downloaded {downloaded} bytes to {destination}")
    return destination


def compute_sha256(file_path: Path) -> str:
    """Compute the SHA-256 hex digest of a file."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify_checksum(file_path: Path, expected_sha256: str) -> None:
    """
    Verify file SHA-256 checksum.

    Args:
        file_path: Path to file to verify
        expected_sha256: Expected SHA-256 hash (hex string, any case)

    Raises:
        ChecksumError: If the digest does not match
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    actual = compute_sha256(file_path)
    expected = expected_sha256.strip().lower()
    if actual.lower() != expected:
        raise ChecksumError(
            f"checksum mismatch for {file_path.name}: "
            f"expected {expected}, got {actual}"
        )
    logger.debug(f"Checksum verified for {file_path.name}")


def fetch_json(
    url: str,
    timeout: float = METADATA_TIMEOUT,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """
    Fetch and decode a JSON document.

    Args:
        url: URL of the JSON document
        timeout: Request timeout in seconds
        headers: Extra request headers

    Returns:
        Decoded JSON value

    Raises:
        DownloadError: On network failure, non-success status or invalid JSON
    """
    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)

    logger.debug(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout, headers=request_headers)
    except RequestException as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e

    if not 200 <= response.status_code < 300:
        raise DownloadError(f"Failed to fetch {url}: HTTP {response.status_code}")

    try:
        return response.json()
    except ValueError as e:
        raise DownloadError(f"Invalid JSON from {url}: {e}") from e


def fetch_text(url: str, timeout: float = METADATA_TIMEOUT) -> str:
    """Fetch a small text document such as a checksum manifest."""
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}
        )
    except RequestException as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e

    if not 200 <= response.status_code < 300:
        raise DownloadError(f"Failed to fetch {url}: HTTP {response.status_code}")
    return response.text


def parse_checksum_manifest(content: str, filename: str) -> Optional[str]:
    """
    Find the hash for ``filename`` in a SHASUMS-style manifest.

    Lines look like ``<hash>  <name>`` or, in binary mode, ``<hash> *<name>``.

    Returns:
        Lowercase hex digest, or None if the file is not listed
    """
    for line in content.splitlines():
        parts = line.strip().split()
        if len(parts) < 2:
            continue
        name = parts[-1].lstrip("*")
        if name == filename:
            return parts[0].lower()
    return None


def fetch_checksum_from_url(
    url: str, filename: str, timeout: float = METADATA_TIMEOUT
) -> str:
    """
    Download a checksum manifest and return the entry for ``filename``.

    Raises:
        DownloadError: If the manifest cannot be fetched
        ChecksumError: If the manifest has no entry for filename
    """
    checksum = parse_checksum_manifest(fetch_text(url, timeout=timeout), filename)
    if checksum is None:
        raise ChecksumError(f"checksum for {filename} not found in {url}")
    return checksum


def format_progress(downloaded: int, total: int) -> str:
    """
    Format download progress for display.

    Example:
        >>> format_progress(52428800, 104857600)
        '50.0/100.0 MB (50%)'
        >>> format_progress(1048576, 0)
        '1.0 MB'
    """
    mb_downloaded = downloaded / 1024 / 1024
    if total > 0:
        mb_total = total / 1024 / 1024
        return f"{mb_downloaded:.1f}/{mb_total:.1f} MB ({downloaded * 100 // total}%)"
    return f"{mb_downloaded:.1f} MB"


__all__ = [
    "ProgressCallback",
    "download_file",
    "compute_sha256",
    "verify_checksum",
    "fetch_json",
    "fetch_text",
    "parse_checksum_manifest",
    "fetch_checksum_from_url",
    "format_progress",
]
