"""Minecraft game version parsing and comparison."""

from typing import Iterable, List, Optional

from packaging.version import InvalidVersion, Version


def parse_game_version(value: Optional[str]) -> Optional[Version]:
    """
    Parse a game version leniently.

    Release and pre-release strings ("1.21.5", "1.21.5-pre1", "1.21.5-rc1")
    parse; snapshots such as "25w14a" and other free text return None.
    """
    if not value:
        return None
    try:
        return Version(value.strip())
    except InvalidVersion:
        return None


def compare_game_versions(a: str, b: str) -> Optional[int]:
    """Return -1/0/1 comparing a to b, or None if either is unparseable."""
    va, vb = parse_game_version(a), parse_game_version(b)
    if va is None or vb is None:
        return None
    return (va > vb) - (va < vb)


def next_patch(version: str) -> str:
    """
    Compute the next patch release: "1.21.8" -> "1.21.9", "1.21" -> "1.21.1".

    Unparseable input is returned unchanged.
    """
    parsed = parse_game_version(version)
    if parsed is None:
        return version
    parts = list(parsed.release)
    while len(parts) < 3:
        parts.append(0)
    major, minor, patch = parts[:3]
    return f"{major}.{minor}.{patch + 1}"


def parseable_versions(versions: Iterable[str]) -> List[str]:
    """Filter to the entries that take part in numeric comparisons."""
    return [v for v in versions if parse_game_version(v) is not None]


def _pick_highest(candidates: List[str]) -> Optional[str]:
    if not candidates:
        return None
    finals = [v for v in candidates if not parse_game_version(v).is_prerelease]
    pool = finals or candidates
    # max() keeps the first of equal entries, so "1.21" beats a later "1.21.0"
    return max(pool, key=parse_game_version)


def highest(versions: Iterable[str]) -> Optional[str]:
    """Highest parseable version, preferring final releases over pre-releases."""
    return _pick_highest(parseable_versions(versions))


def highest_at_most(versions: Iterable[str], target: str) -> Optional[str]:
    """Highest parseable version that is <= target, or None."""
    limit = parse_game_version(target)
    if limit is None:
        return None
    candidates = [v for v in parseable_versions(versions) if parse_game_version(v) <= limit]
    return _pick_highest(candidates)


def sort_game_versions(versions: Iterable[str]) -> List[str]:
    """Sort ascending; unparseable entries keep their order at the end."""
    versions = list(versions)
    parsed = sorted(parseable_versions(versions), key=parse_game_version)
    others = [v for v in versions if parse_game_version(v) is None]
    return parsed + others
