"""MD5 checksums of files, used to verify downloaded patches."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

_BUFFER_SIZE = 1 << 16


def md5_file(path: Union[str, Path]) -> str:
    """Return the MD5 digest of the file at ``path`` as 32 lower-case hex digits.

    Raises ``OSError`` if the file cannot be opened or read.
    """
    digest = hashlib.md5()
    try:
        with open(path, "rb") as handle:
            while chunk := handle.read(_BUFFER_SIZE):
                digest.update(chunk)
    except OSError as exc:
        logger.critical(
            'Error opening file "%s" to calculate MD5 Hash: %s',
            path,
            exc.strerror or exc,
        )
        raise
    return digest.hexdigest()


def md5_matches(actual: str, expected: str) -> bool:
    """Compare two hex digests, ignoring letter case."""
    return actual.casefold() == expected.casefold()