"""Fetch the update manifest, download the chosen patches and apply them."""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Callable, List, Sequence, Tuple, Union

from .checksum import md5_file, md5_matches
from .downloader import FileDownloader
from .manifest import (
    UpdateError,
    UpdateManifest,
    choose_patch_path,
    parse_update_manifest,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
ApplyPatch = Callable[[Path, Path, int], bool]

_VERSION_FORMAT = "<Q"
_VERSION_SIZE = struct.calcsize(_VERSION_FORMAT)
_VERSION_MAX = (1 << 64) - 1


def _file_name(url: str) -> str:
    slash = url.rfind("/")
    if slash < 0:
        logger.critical("Invalid Update URL: %s", url)
        raise UpdateError(f"Invalid Update URL: {url!r}")
    return url[slash + 1:]


def read_current_version(path: PathLike) -> int:
    """Return the build number stored in ``path``.

    A missing file means a fresh installation and gives 0.
    """
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        return 0
    except OSError as exc:
        logger.critical(
            'Error opening version file "%s" to read version information: %s',
            path,
            exc.strerror or exc,
        )
        raise UpdateError(f"Cannot read version file {path}: {exc}") from exc

    if len(data) < _VERSION_SIZE:
        logger.critical('Error reading config file "%s"', path)
        raise UpdateError(f"Version file {path} is too short")
    return struct.unpack_from(_VERSION_FORMAT, data)[0]


def save_version(path: PathLike, version: int) -> None:
    """Store ``version`` in ``path`` as an unsigned 64-bit little-endian number."""
    if not 0 <= version <= _VERSION_MAX:
        raise ValueError(f"version out of range: {version}")
    try:
        Path(path).write_bytes(struct.pack(_VERSION_FORMAT, version))
    except OSError as exc:
        logger.critical(
            'Error opening version file "%s" to write version information: %s',
            path,
            exc.strerror or exc,
        )
        raise UpdateError(f"Cannot write version file {path}: {exc}") from exc


def simple_download_file(url: str, target_dir: PathLike = "./") -> Path:
    """Download ``url`` into ``target_dir`` under the name after its last slash."""
    file_name = _file_name(url)
    dest = Path(target_dir) / file_name
    print(f"Downloading File: {file_name} to {target_dir}")
    FileDownloader(url, dest).download()
    print()
    return dest


def check_for_updates(
    update_url: str, current_build: int, download_dir: PathLike = "./"
) -> Tuple[UpdateManifest, List[int]]:
    """Download and parse the manifest, then choose the patches to apply.

    Returns the manifest and the indices of its patches in the order to
    apply them.
    """
    _file_name(update_url)
    local = simple_download_file(update_url, download_dir)
    try:
        xml_text = local.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise UpdateError(f"Cannot read manifest {local}: {exc}") from exc
    manifest = parse_update_manifest(xml_text, update_url, current_build)
    path, _size = choose_patch_path(manifest, current_build)
    return manifest, path


def _has_expected_md5(local: Path, file_name: str, expected: str) -> bool:
    if not local.exists():
        return False
    print(f"\nChecking if MD5 of the file {file_name} matches the required by the patch...")
    actual = md5_file(local)
    print(f"Required MD5:\t{expected}")
    print(f"File MD5:\t{actual}")
    if md5_matches(actual, expected):
        print("Matches!")
        return True
    print("Does not match! :(")
    return False


def download_and_apply(
    manifest: UpdateManifest,
    path: Sequence[int],
    target_dir: PathLike,
    version_file: PathLike,
    current_version: int,
    apply_patch: ApplyPatch,
    updates_dir: PathLike = "updates",
) -> int:
    """Download each patch on ``path`` until its MD5 matches, then apply it.

    ``apply_patch(patch_file, target_dir, current_version)`` returns whether
    the patch was applied. After each patch the new version is saved to
    ``version_file``. Returns the version reached.
    """
    updates = Path(updates_dir)
    target = Path(target_dir)
    for index in path:
        patch = manifest.patches[index]
        try:
            updates.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.critical(
                "An error occurred while attempting to create the directory structure: %s",
                updates,
            )
            raise UpdateError(f"Cannot create {updates}: {exc}") from exc

        file_name = _file_name(patch.file_url)
        local = updates / file_name
        while not _has_expected_md5(local, file_name, patch.file_md5):
            simple_download_file(patch.file_url, updates)
            print()

        print(f"\nApplying patch: {file_name} ")
        if not apply_patch(local, target, current_version):
            logger.critical("Failed to apply patch %s", local)
            raise UpdateError(f"Failed to apply patch {file_name}")
        save_version(version_file, patch.target_build)
        current_version = patch.target_build
    return current_version