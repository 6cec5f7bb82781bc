"""Download a file from a URL to disk, reporting progress as it goes."""

from __future__ import annotations

import logging
import sys
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

USER_AGENT = "ZLauncher/1.0.0"
MAX_REDIRECTS = 10
_CHUNK_SIZE = 1 << 16
_BAR_WIDTH = 60

ProgressCallback = Callable[[int, int], Optional[int]]


class DownloadError(Exception):
    """Raised when a file could not be downloaded or written."""


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    max_redirections = MAX_REDIRECTS


def file_name_from_url(url: str) -> str:
    """Return the part of ``url`` after its last slash."""
    slash = url.rfind("/")
    if slash < 0:
        raise ValueError(f"Invalid URL (no slash): {url!r}")
    return url[slash + 1:]


def format_progress_bar(percentage: int, downloaded: int) -> str:
    """Render a 60-column progress bar followed by the amount downloaded."""
    pos = int(_BAR_WIDTH * percentage / 100.0)
    bar = "".join(
        "=" if i < pos else ">" if i == pos else " " for i in range(_BAR_WIDTH)
    )
    mib = downloaded / 1048576.0
    size = f"{mib:0.2f} MiB   " if mib > 1.0 else f"{downloaded / 1024.0:0.2f} KiB   "
    return f"\r[{bar}] {size}"


def print_transfer_info(total: int, now: int) -> int:
    """Default progress reporter: draw the bar on stdout. Returns 0 to continue."""
    percentage = 0 if total == 0 else int(now / total * 100)
    sys.stdout.write(format_progress_bar(percentage, now))
    sys.stdout.flush()
    return 0


class FileDownloader:
    """Fetch ``url`` into ``dest_path``.

    ``progress`` is called as ``progress(total, now)`` after each chunk;
    ``total`` is 0 when the size is unknown. A non-zero return aborts the
    transfer.
    """

    def __init__(
        self,
        url: str,
        dest_path: Union[str, Path],
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.url = url
        self.dest_path = Path(dest_path)
        self.progress: ProgressCallback = progress or print_transfer_info

    def download(self) -> int:
        """Perform the transfer and return the number of bytes written."""
        try:
            dest = open(self.dest_path, "wb")
        except OSError as exc:
            logger.critical(
                'Error opening file "%s" to write download data: %s',
                self.dest_path,
                exc.strerror or exc,
            )
            raise DownloadError(f"Cannot open {self.dest_path} for writing: {exc}") from exc

        opener = urllib.request.build_opener(_LimitedRedirectHandler)
        request = urllib.request.Request(self.url, headers={"User-Agent": USER_AGENT})
        written = 0
        with dest:
            try:
                with opener.open(request) as response:
                    length = response.headers.get("Content-Length")
                    total = int(length) if length and length.isdigit() else 0
                    while chunk := response.read(_CHUNK_SIZE):
                        dest.write(chunk)
                        written += len(chunk)
                        if self.progress(total, written):
                            raise DownloadError("Transfer aborted by progress callback")
            except DownloadError:
                logger.critical("Download of %s aborted", self.url)
                raise
            except (urllib.error.URLError, OSError, ValueError) as exc:
                logger.critical("Download of %s failed: %s", self.url, exc)
                raise DownloadError(f"Download of {self.url} failed: {exc}") from exc
        return written