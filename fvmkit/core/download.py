"""
HTTP access for fvmkit: small documents and streamed archive downloads.

This module provides:
- Fetching small text/JSON documents (release manifest, engine.version)
- Streaming large files to disk with progress reporting
- Timeout handling

Requests are never retried: a failure is surfaced immediately as a
NetworkError carrying the URL and, when available, the HTTP status code.
Partial downloads are not resumed.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import requests
from requests.exceptions import HTTPError, RequestException

from fvmkit.core.exceptions import DownloadError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


def _status_of(error: RequestException) -> Optional[int]:
    response = getattr(error, "response", None)
    return response.status_code if response is not None else None


def _get(url: str, timeout: int, stream: bool = False) -> requests.Response:
    try:
        response = requests.get(
            url, stream=stream, timeout=timeout, allow_redirects=True
        )
        response.raise_for_status()
    except HTTPError as e:
        raise NetworkError(f"Request to {url} failed: {e}", _status_of(e)) from e
    except RequestException as e:
        raise NetworkError(f"Request to {url} failed: {e}") from e
    return response


def fetch_text(url: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """
    Fetch a small text document.

    Args:
        url: URL to fetch
        timeout: Request timeout in seconds

    Returns:
        Response body decoded as text

    Raises:
        NetworkError: If the request fails or returns an error status
    """
    logger.debug(f"Fetching {url}")
    return _get(url, timeout).text


def fetch_json(url: str, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """
    Fetch and decode a JSON document.

    Raises:
        NetworkError: If the request fails or the body is not valid JSON
    """
    logger.debug(f"Fetching JSON from {url}")
    response = _get(url, timeout)
    try:
        return response.json()
    except ValueError as e:
        raise NetworkError(f"Invalid JSON received from {url}: {e}") from e


def download_file(
    url: str,
    destination: Path,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Path:
    """
    Stream a file from URL to destination.

    The destination is overwritten. On failure the partial file is removed.

    Args:
        url: URL to download from
        destination: Local path to save file
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If the download fails
        ValueError: If URL or destination is invalid

    Example:
        >>> download_file(
        ...     "https://storage.googleapis.com/.../dart-sdk-linux-x64.zip",
        ...     Path("/tmp/dart-sdk.zip"),
        ...     progress_callback=lambda p: print(p),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Downloading from {url}")

    try:
        response = _get(url, timeout, stream=True)
    except NetworkError as e:
        raise DownloadError(str(e), e.status_code) from e

    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length else 0

    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    try:
        with response, open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)

                # Report progress (max once per 0.5 seconds to avoid spam)
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    speed = downloaded / elapsed if elapsed > 0 else 0
                    remaining = total_size - downloaded if total_size > 0 else 0
                    eta = remaining / speed if speed > 0 else 0

                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=speed,
                            eta_seconds=eta,
                        )
                    )
                    last_progress_time = current_time
    except (RequestException, OSError) as e:
        logger.error(f"Error during download: {e}")
        destination.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} failed: {e}") from e

    logger.debug(f"Download complete: {destination} ({downloaded} bytes)")
    return destination


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        return f"{mb_downloaded:.1f} MB " f"at {speed_mbps:.1f} MB/s"


__all__ = [
    "DownloadProgress",
    "download_file",
    "fetch_text",
    "fetch_json",
    "format_progress",
]
