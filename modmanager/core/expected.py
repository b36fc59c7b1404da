"""Expected release file list."""

import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from .model import CONTENT_KINDS, ArtifactRecord, Group, Kind

log = logging.getLogger(__name__)

MOD_FOLDERS = {
    Group.REQUIRED: "mods",
    Group.OPTIONAL: "mods/optional",
    Group.BLOCK: "mods/block",
}


def targets_version(record: ArtifactRecord, target_version: str) -> bool:
    """True when the record is in use at, or known to support, target_version."""
    return (record.current_game_version == target_version
            or target_version in record.available_game_versions)


def release_folder(record: ArtifactRecord, file_name: str,
                   include_blocked: bool = False) -> Optional[str]:
    """
    Folder a file of this record belongs in, relative to the release root.

    Returns:
        Folder path with '/' separators, or None if the record is not shipped
    """
    kind = record.kind
    suffix = file_name.lower().rsplit(".", 1)[-1] if "." in file_name else ""

    if kind is Kind.DATAPACK and suffix == "zip":
        return "datapacks"
    if kind is Kind.SHADERPACK:
        return "shaderpacks"
    if kind is Kind.MOD or (kind is Kind.DATAPACK and suffix == "jar"):
        return _mod_folder(record, include_blocked)
    return None


def _mod_folder(record: ArtifactRecord, include_blocked: bool) -> Optional[str]:
    if record.group is Group.BLOCK and not include_blocked:
        return None
    return MOD_FOLDERS.get(record.group)


def iter_expected(records: Iterable[ArtifactRecord], target_version: str,
                  include_blocked: bool = False) -> Iterator[Tuple[ArtifactRecord, Optional[str]]]:
    """
    Yield (record, path) for every shippable record targeting the version.

    path is None when the record would ship but has no file name yet.
    """
    for record in records:
        if record.kind not in CONTENT_KINDS:
            continue
        if not targets_version(record, target_version):
            continue
        if not record.file_name:
            if record.kind is not Kind.MOD or _mod_folder(record, include_blocked):
                yield record, None
            continue
        folder = release_folder(record, record.file_name, include_blocked)
        if folder:
            yield record, f"{folder}/{record.file_name}"


def build_expected_files(records: Iterable[ArtifactRecord], target_version: str,
                         include_blocked: bool = False) -> List[str]:
    """
    Relative paths a correct release for target_version contains.

    Output is sorted and de-duplicated; identical input always gives identical output.
    """
    seen = set()
    paths = []
    skipped = 0
    for record, path in iter_expected(records, target_version, include_blocked):
        if path is None:
            skipped += 1
            continue
        if path not in seen:
            seen.add(path)
            paths.append(path)
    if skipped:
        log.debug("%d records for %s have no file name", skipped, target_version)
    return sorted(paths)


def records_without_file_name(records: Iterable[ArtifactRecord], target_version: str,
                              include_blocked: bool = False) -> List[ArtifactRecord]:
    """Records that would be expected but were skipped for lacking a file name."""
    return [record for record, path in iter_expected(records, target_version, include_blocked)
            if path is None]
