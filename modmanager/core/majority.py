"""Majority game version across the mod database."""

from collections import Counter
from typing import Dict, Iterable, Tuple

from .model import ArtifactRecord, Kind


def compute_majority_version(records: Iterable[ArtifactRecord],
                             default: str) -> Tuple[str, Dict[str, int]]:
    """
    Find the most common current game version among mod records.

    Ties go to the version seen first in input order.

    Args:
        records: Records to scan; only Kind=mod with a current game version count
        default: Returned when no mod has a current game version

    Returns:
        (majority version, count per version in first-seen order)
    """
    counts = Counter()
    for record in records:
        if record.kind is Kind.MOD and record.current_game_version:
            counts[record.current_game_version] += 1

    if not counts:
        return default, {}

    # Counter keeps insertion order, and max() returns the first maximal key
    majority = max(counts, key=counts.get)
    return majority, dict(counts)
