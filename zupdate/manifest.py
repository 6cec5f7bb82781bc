"""Parse the update manifest and pick the cheapest chain of patches."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class UpdateError(Exception):
    """Raised when the update URL or the manifest is malformed."""


@dataclass(frozen=True)
class Patch:
    """One downloadable patch taking ``source_build`` to ``target_build``.

    A ``source_build`` of 0 means a full installation rather than a patch.
    """

    source_build: int
    target_build: int
    file_url: str
    file_length: int
    file_md5: str


@dataclass
class UpdateManifest:
    """What the update manifest says about available builds and patches."""

    base_url: str
    latest_version: int = 0
    num_updates: int = 0
    description: str = ""
    patches: List[Patch] = field(default_factory=list)


def _split_url(url: str) -> Tuple[str, str]:
    slash = url.rfind("/")
    if slash < 0:
        raise UpdateError(f"Invalid Update URL: {url!r}")
    return url[: slash + 1], url[slash + 1 :]


def _leading_int(text: Optional[str]) -> int:
    """Read a leading integer the way the C library does; 0 if there is none."""
    if text is None:
        return 0
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _required_text(element: ET.Element, tag: str) -> str:
    if element.text is None:
        raise UpdateError(f"Malformed manifest: <{tag}> has no text")
    return element.text


def _required_child(parent: ET.Element, tag: str) -> ET.Element:
    child = parent.find(tag)
    if child is None:
        raise UpdateError(f"Malformed manifest: <{parent.tag}> lacks <{tag}>")
    return child


def _siblings_from(parent: ET.Element, tag: str) -> List[ET.Element]:
    """Elements of ``parent`` starting at its first ``tag`` child."""
    children = list(parent)
    for index, child in enumerate(children):
        if child.tag == tag:
            return children[index:]
    return []


def parse_update_manifest(
    xml_text: str, update_url: str, current_build: int
) -> UpdateManifest:
    """Parse the manifest fetched from ``update_url``.

    Builds are read newest first and reading stops at the first build not
    newer than ``current_build``. Patches that do not upgrade are dropped;
    relative patch file names are resolved against the manifest's URL.
    """
    base_url, _ = _split_url(update_url)
    manifest = UpdateManifest(base_url=base_url)

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise UpdateError(
            f"An error occured while attempting to parse the XML file: {exc}"
        ) from exc

    builds = root.find("builds") if root.tag == "zupdater" else None
    if builds is None:
        raise UpdateError("An error occured while attempting to parse the XML file")

    descriptions: List[str] = []
    for build in _siblings_from(builds, "build"):
        version = _required_child(build, "version")
        desc = _required_child(build, "desc")
        build_number = _leading_int(_required_text(version, "version"))
        manifest.latest_version = max(manifest.latest_version, build_number)
        if build_number <= current_build:
            break
        manifest.num_updates += 1
        descriptions.append(desc.text or "")
    manifest.description = "<br/>".join(descriptions)

    patches = root.find("patches")
    if patches is not None:
        for element in _siblings_from(patches, "patch"):
            dst = _required_child(element, "destination_version")
            src = element.find("source_version")
            file_el = _required_child(element, "file")
            size_el = _required_child(element, "size")
            md5_el = _required_child(element, "md5")

            source_build = _leading_int(src.text) if src is not None else 0
            target_build = _leading_int(dst.text)
            if source_build >= target_build:
                # Downgrades are not supported; this also keeps the graph acyclic.
                continue

            file_url = _required_text(file_el, "file")
            if not file_url.startswith(("http://", "https://")):
                file_url = base_url + file_url

            manifest.patches.append(
                Patch(
                    source_build=source_build,
                    target_build=target_build,
                    file_url=file_url,
                    file_length=_leading_int(size_el.text),
                    file_md5=_required_text(md5_el, "md5"),
                )
            )
    return manifest


def smallest_update_path(
    patches: Sequence[Patch], source_build: int, target_build: int
) -> Optional[Tuple[List[int], int]]:
    """Find the chain of patches with the smallest total download size.

    Returns the indices into ``patches`` in the order to apply them and the
    total size, or ``None`` if ``target_build`` cannot be reached. On equal
    sizes the chain found first wins.
    """
    if source_build == target_build:
        return [], 0

    best: Optional[Tuple[List[int], int]] = None
    for index, patch in enumerate(patches):
        if patch.source_build != source_build or patch.target_build <= source_build:
            continue
        rest = smallest_update_path(patches, patch.target_build, target_build)
        if rest is None:
            continue
        size = patch.file_length + rest[1]
        if best is None or size < best[1]:
            best = ([index] + rest[0], size)
    return best


def choose_patch_path(
    manifest: UpdateManifest, current_build: int
) -> Tuple[List[int], int]:
    """Pick the patches to take ``current_build`` to the latest version.

    Falls back to a full installation (a patch from build 0) when no chain of
    patches reaches the latest version. Returns an empty path when nothing
    applies.
    """
    found = smallest_update_path(
        manifest.patches, current_build, manifest.latest_version
    )
    if found is not None:
        return found
    for index, patch in enumerate(manifest.patches):
        if patch.source_build == 0 and patch.target_build == manifest.latest_version:
            return [index], patch.file_length
    return [], 0