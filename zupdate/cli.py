"""Command line updater: check for updates, download and apply them."""

from __future__ import annotations

import argparse
import logging
import shlex
import struct
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from .downloader import DownloadError
from .manifest import UpdateError
from .updater import (
    ApplyPatch,
    check_for_updates,
    download_and_apply,
    read_current_version,
)

logger = logging.getLogger(__name__)


def _command_applier(tokens: List[str]) -> ApplyPatch:
    def apply(patch_file: Path, target_dir: Path, version: int) -> bool:
        args = [
            token.replace("{patch}", str(patch_file))
            .replace("{target}", str(target_dir))
            .replace("{version}", str(version))
            for token in tokens
        ]
        try:
            result = subprocess.run(args, check=False)
        except OSError as exc:
            logger.critical("Cannot run patch command %s: %s", args[0], exc)
            return False
        return result.returncode == 0

    return apply


def _no_applier(patch_file: Path, target_dir: Path, version: int) -> bool:
    raise UpdateError("No patch applier configured; pass --apply-command")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zupdate",
        description="Download and apply the patches that bring an application up to date.",
    )
    parser.add_argument("update_url", help="URL of the update manifest")
    parser.add_argument("--target-dir", default="./", help="directory to patch")
    parser.add_argument(
        "--version-file",
        default="zpatcher_test.zversion",
        help="file holding the installed build number",
    )
    parser.add_argument(
        "--download-dir", default="./", help="where the manifest is saved"
    )
    parser.add_argument(
        "--updates-dir", default="updates", help="where patch files are saved"
    )
    parser.add_argument(
        "--apply-command",
        help="command that applies a patch; {patch}, {target} and {version} are substituted",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the updater and return the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.apply_command is None:
        apply_patch: ApplyPatch = _no_applier
    else:
        tokens = shlex.split(args.apply_command)
        if not tokens:
            parser.error("--apply-command must not be empty")
        apply_patch = _command_applier(tokens)

    bits = struct.calcsize("P") * 8
    print(f"\nZUpdater Command Line : ZPatcher [{bits}] v2.0 beta\n")

    try:
        current = read_current_version(args.version_file)
    except UpdateError as exc:
        print("An error occurred while getting current application version.", file=sys.stderr)
        print(exc, file=sys.stderr)
        return 1

    print(f"\nCurrent version: {current}\n")

    try:
        manifest, path = check_for_updates(args.update_url, current, args.download_dir)
    except (UpdateError, DownloadError) as exc:
        print("An error occurred while checking for updates.", file=sys.stderr)
        print(exc, file=sys.stderr)
        return 1

    print(f"\nLatest version available for download: {manifest.latest_version}")

    try:
        download_and_apply(
            manifest,
            path,
            args.target_dir,
            args.version_file,
            current,
            apply_patch,
            args.updates_dir,
        )
    except (UpdateError, DownloadError, OSError) as exc:
        print(exc, file=sys.stderr)
        return 1

    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())