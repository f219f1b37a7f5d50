"""
Download helper for tool sources and the rustup bootstrap binary.

Downloads stream to a ``.part`` file next to the destination and are only
moved into place once complete, so an interrupted transfer never leaves a
truncated artifact where the installer expects a finished one.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import requests
from requests.exceptions import RequestException

from .exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def download_file(
    url: str,
    destination: Path,
    *,
    insecure: bool = False,
    proxies: Optional[dict[str, str]] = None,
    timeout: int = 30,
    max_retries: int = 3,
) -> Path:
    """
    Download file from URL to destination with retry logic.

    Args:
        url: URL to download from
        destination: Local path to save file
        insecure: Skip TLS certificate verification
        proxies: Optional requests-style proxy mapping
        timeout: Request timeout in seconds
        max_retries: Maximum number of retry attempts

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If download fails after retries
        ValueError: If URL is empty
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    if insecure:
        logger.warning(f"TLS verification disabled for {url}")

    for attempt in range(max_retries):
        try:
            return _stream_to_file(url, destination, insecure, proxies, timeout)
        except RequestException as e:
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

    raise DownloadError(f"Download of {url} failed")


def _stream_to_file(
    url: str,
    destination: Path,
    insecure: bool,
    proxies: Optional[dict[str, str]],
    timeout: int,
) -> Path:
    partial = destination.with_name(destination.name + ".part")

    logger.info(f"Downloading {url}")
    response = requests.get(
        url,
        stream=True,
        timeout=timeout,
        allow_redirects=True,
        verify=not insecure,
        proxies=proxies,
    )
    response.raise_for_status()

    try:
        with open(partial, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    partial.replace(destination)
    logger.debug(f"Download complete: {destination}")
    return destination


def filename_from_url(url: str) -> str:
    """Return the last path segment of ``url`` (without query string)."""
    path = url.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    name = path.rsplit("/", 1)[-1]
    return name or "download"
