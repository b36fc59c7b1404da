"""Expected vs actual release file reconciliation."""

import re
from collections import defaultdict
from itertools import zip_longest
from typing import Dict, Iterable, List, Union

from .model import ReconcileMode, ReconciliationResult

# Folders where version drift between expected and actual files is tolerated
RELAXED_FOLDERS = ("mods", "mods/optional")

# Shortest prefix that is followed by a separator and a digit
_VERSION_BOUNDARY = re.compile(r"^(.+?)[-_]\d")


def base_key(path: str) -> str:
    """
    Approximate "mod identity ignoring version" for a release path.

    "mods/sodium-fabric-0.6.0.jar" -> "mods/sodium-fabric". Names that embed
    more than one number (a Minecraft version and a mod version) are cut at
    the first separator-digit boundary, so this can under- or over-match.
    """
    folder, _, name = path.rpartition("/")
    stem = name.rsplit(".", 1)[0] if "." in name else name
    match = _VERSION_BOUNDARY.match(stem)
    key = match.group(1) if match else stem
    return f"{folder}/{key}" if folder else key


def _relaxable(path: str) -> bool:
    return path.rpartition("/")[0] in RELAXED_FOLDERS


def _group_by_base_key(paths: Iterable[str]) -> Dict[str, List[str]]:
    groups = defaultdict(list)
    for path in paths:
        if _relaxable(path):
            groups[base_key(path)].append(path)
    return groups


def reconcile(expected: Iterable[str], actual: Iterable[str],
              mode: Union[ReconcileMode, str] = ReconcileMode.STRICT) -> ReconciliationResult:
    """
    Compare the expected file list with what is on disk.

    Args:
        expected: Paths a correct release contains
        actual: Paths found in the cache or release directory
        mode: STRICT for exact set differences, RELAXED_VERSION to pair
              same-base-name files under mods/ and mods/optional/

    Returns:
        ReconciliationResult with sorted missing/extra lists and drift pairs

    Raises:
        ValueError: If mode is not a ReconcileMode
    """
    mode = ReconcileMode(mode)

    expected_set = set(expected)
    actual_set = set(actual)
    missing = sorted(expected_set - actual_set)
    extra = sorted(actual_set - expected_set)

    if mode is ReconcileMode.STRICT:
        return ReconciliationResult(missing=missing, extra=extra, mode=mode)

    missing_groups = _group_by_base_key(missing)
    extra_groups = _group_by_base_key(extra)

    pairs = []
    paired = set()
    for key in sorted(missing_groups.keys() & extra_groups.keys()):
        # Unequal group sizes pair the leftovers with ""
        for old, new in zip_longest(missing_groups[key], extra_groups[key], fillvalue=""):
            pairs.append((old, new))
        paired.update(missing_groups[key])
        paired.update(extra_groups[key])

    return ReconciliationResult(
        missing=[p for p in missing if p not in paired],
        extra=[p for p in extra if p not in paired],
        pairs=pairs,
        mode=mode,
    )
