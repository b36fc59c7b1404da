"""Current/Next/Latest version resolution."""

import logging
from dataclasses import replace
from typing import List, Optional, Protocol, Tuple

from .errors import ModManagerError
from .model import ArtifactRecord, LookupResult, Outcome, ResolutionSummary
from .versions import compare_game_versions, highest, highest_at_most

log = logging.getLogger(__name__)


class VersionLookup(Protocol):
    """Finds the concrete build of an artifact for a game version."""

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        """Return ok=False on any failure instead of raising."""
        ...


class VersionResolver:
    """Recomputes the Next and Latest slots of records against a target game version."""

    def __init__(self, lookup: VersionLookup, include_infrastructure: bool = False):
        """
        Args:
            lookup: Upstream lookup used to find concrete builds
            include_infrastructure: Also resolve server/launcher/installer/JDK records
        """
        self.lookup = lookup
        self.include_infrastructure = include_infrastructure

    def resolve_next_and_latest(self, record: ArtifactRecord, target_next: str) -> ArtifactRecord:
        """Return an updated copy of record; the input is left untouched."""
        updated, _, _ = self._resolve(record, target_next)
        return updated

    def resolve_all(self, records: List[ArtifactRecord],
                    target_next: str) -> Tuple[List[ArtifactRecord], ResolutionSummary]:
        """
        Resolve every record in order.

        Lookup failures degrade to the fallback chain and never abort the batch.
        """
        summary = ResolutionSummary(target_next=target_next)
        resolved = []
        for record in records:
            updated, outcome, detail = self._resolve(record, target_next)
            resolved.append(updated)
            summary.add(updated, outcome, detail)
            if outcome is Outcome.UNRESOLVED or summary.entries[-1]["current_unlisted"]:
                log.warning("%s: %s", record.display_name, detail)
            else:
                log.debug("%s: %s (%s)", record.display_name, outcome, detail)

        log.info("Resolved against %s: %d via API, %d fallback, %d unresolved, %d skipped, "
                 "%d with current version not listed upstream",
                 target_next, summary.api_resolved, summary.fallback_used,
                 summary.unresolved, summary.skipped, summary.current_unlisted)
        return resolved, summary

    def _resolve(self, record: ArtifactRecord,
                 target_next: str) -> Tuple[ArtifactRecord, Outcome, str]:
        if record.is_infrastructure and not self.include_infrastructure:
            return record, Outcome.SKIPPED, "infrastructure"

        updated = replace(
            record,
            available_game_versions=list(record.available_game_versions),
            dependencies=list(record.dependencies),
            extra=dict(record.extra),
            raw=dict(record.raw),
        )
        updated.next_game_version = target_next

        if not updated.available_game_versions:
            # Unknown compatibility: keep what we already have
            if updated.latest_game_version == target_next:
                updated.next_version = updated.latest_version
                updated.next_version_url = updated.latest_version_url
                detail = "no game version data, reused latest"
            else:
                updated.next_version = updated.current_version
                updated.next_version_url = updated.current_version_url
                detail = "no game version data, reused current"
            return updated, Outcome.FALLBACK, detail

        outcome, detail = self._resolve_next(updated, target_next)
        self._resolve_latest(updated, target_next)
        if updated.current_game_version_unlisted:
            detail += f"; current {updated.current_game_version} is not listed upstream"
        return updated, outcome, detail

    def _resolve_next(self, record: ArtifactRecord, target_next: str) -> Tuple[Outcome, str]:
        if target_next in record.available_game_versions:
            game_version = target_next
        else:
            game_version = highest_at_most(record.available_game_versions, target_next)
            if game_version is None:
                record.next_version = ""
                record.next_version_url = ""
                return Outcome.UNRESOLVED, f"no compatible version for {target_next}"

        result = self._lookup(record, game_version)
        if result is not None:
            record.next_version = result.version
            record.next_version_url = result.url
            return Outcome.API, f"{game_version}: {result.version}"

        if game_version == target_next and record.latest_game_version == target_next:
            record.next_version = record.latest_version
            record.next_version_url = record.latest_version_url
            return Outcome.FALLBACK, f"{game_version}: lookup failed, reused latest"

        record.next_version = record.current_version
        record.next_version_url = record.current_version_url
        return Outcome.FALLBACK, f"{game_version}: lookup failed, reused current"

    def _resolve_latest(self, record: ArtifactRecord, target_next: str) -> None:
        top = highest(record.available_game_versions)
        order = compare_game_versions(top, target_next) if top else None
        if top is None or order is None or order < 0:
            # Nothing at or beyond the target: latest is what we run today
            record.latest_game_version = record.current_game_version
            record.latest_version = record.current_version
            record.latest_version_url = record.current_version_url
            return

        result = self._lookup(record, top)
        if result is not None:
            record.latest_version = result.version
            record.latest_version_url = result.url
        elif record.latest_game_version != top:
            record.latest_version = record.current_version
            record.latest_version_url = record.current_version_url
        record.latest_game_version = top

    def _lookup(self, record: ArtifactRecord, game_version: str) -> Optional[LookupResult]:
        try:
            result = self.lookup.resolve(record, game_version)
        except ModManagerError as e:
            log.warning("%s: lookup for %s failed: %s", record.display_name, game_version, e)
            return None
        if result is None or not result.ok:
            return None
        return result


def resolve_next_and_latest(record: ArtifactRecord, target_next: str,
                            lookup: VersionLookup, include_infrastructure: bool = False) -> ArtifactRecord:
    """Functional shortcut around VersionResolver."""
    resolver = VersionResolver(lookup, include_infrastructure=include_infrastructure)
    return resolver.resolve_next_and_latest(record, target_next)
