"""Release and cache directory scanning."""

from pathlib import Path
from typing import List

ARTIFACT_SUFFIXES = (".jar", ".zip")


def list_actual_files(root_dir: Path) -> List[str]:
    """
    List artifact files under a directory.

    Args:
        root_dir: Download cache or assembled release directory

    Returns:
        Sorted paths relative to root_dir with '/' separators;
        empty if the directory does not exist
    """
    root_dir = Path(root_dir)
    if not root_dir.exists() or not root_dir.is_dir():
        return []

    files = []
    for file in root_dir.rglob("*"):
        if file.is_file() and file.suffix.lower() in ARTIFACT_SUFFIXES:
            files.append(file.relative_to(root_dir).as_posix())

    files.sort()  # Sort for consistent ordering
    return files


def count_artifacts(root_dir: Path, folder: str = "mods") -> int:
    """Count artifact files directly inside one folder of a release."""
    target = Path(root_dir) / folder
    if not target.exists():
        return 0

    count = 0
    for file in target.iterdir():
        if file.is_file() and file.suffix.lower() in ARTIFACT_SUFFIXES:
            count += 1

    return count
