"""Tests for Next/Latest version resolution."""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from modmanager.core.errors import UpstreamError
from modmanager.core.model import ArtifactRecord, Group, Kind, LookupResult, Outcome
from modmanager.core.resolver import VersionResolver, resolve_next_and_latest


class FakeLookup:
    """Answers from a (identity, game_version) table and records every call."""

    def __init__(self, builds=None, error=None):
        self.builds = builds or {}
        self.error = error
        self.calls = []

    def resolve(self, record, game_version):
        self.calls.append((record.identity, game_version))
        if self.error:
            raise self.error
        version = self.builds.get((record.identity, game_version))
        if version is None:
            return LookupResult.failed()
        return LookupResult(ok=True, version=version,
                            url=f"https://cdn.example/{record.identity}-{version}.jar")


def _mod(available, **kwargs):
    values = dict(
        kind=Kind.MOD, group=Group.REQUIRED, identity="sodium", loader="fabric", name="Sodium",
        current_game_version="1.21.4", current_version="0.6.0",
        current_version_url="https://cdn.example/sodium-0.6.0.jar",
        available_game_versions=list(available),
    )
    values.update(kwargs)
    return ArtifactRecord(**values)


def test_next_uses_target_when_available():
    lookup = FakeLookup({("sodium", "1.21.5"): "0.6.5"})
    record = _mod(["1.21.4", "1.21.5"])

    updated = resolve_next_and_latest(record, "1.21.5", lookup)

    assert updated.next_game_version == "1.21.5"
    assert updated.next_version == "0.6.5"
    assert updated.next_version_url == "https://cdn.example/sodium-0.6.5.jar"
    assert updated.latest_game_version == "1.21.5"
    assert updated.latest_version == "0.6.5"
    # The input record is never modified
    assert record.next_version == ""
    assert record.latest_game_version == ""


def test_next_falls_back_to_highest_compatible():
    lookup = FakeLookup({("sodium", "1.21.4"): "0.6.0", ("sodium", "1.21.8"): "0.7.0"})
    record = _mod(["1.20.1", "1.21.4", "1.21.8"])

    updated = resolve_next_and_latest(record, "1.21.5", lookup)

    assert ("sodium", "1.21.4") in lookup.calls
    assert updated.next_game_version == "1.21.5"
    assert updated.next_version == "0.6.0"
    assert updated.latest_game_version == "1.21.8"
    assert updated.latest_version == "0.7.0"


def test_no_compatible_version_clears_next():
    lookup = FakeLookup({("sodium", "1.22.1"): "1.0.0"})
    record = _mod(["1.22.1"], next_version="stale", next_version_url="https://stale")

    resolver = VersionResolver(lookup)
    records, summary = resolver.resolve_all([record], "1.21.9")
    updated = records[0]

    assert updated.next_game_version == "1.21.9"
    assert updated.next_version == ""
    assert updated.next_version_url == ""
    assert updated.latest_game_version == "1.22.1"
    assert updated.latest_version == "1.0.0"
    assert summary.unresolved == 1
    assert summary.entries[0]["outcome"] == "unresolved"
    assert "current 1.21.4 is not listed upstream" in summary.entries[0]["detail"]


def test_empty_available_list_reuses_existing_versions():
    lookup = FakeLookup()
    record = _mod([])
    updated = resolve_next_and_latest(record, "1.21.5", lookup)
    assert updated.next_version == "0.6.0"
    assert updated.next_version_url == record.current_version_url
    assert lookup.calls == []

    record = _mod([], latest_game_version="1.21.5", latest_version="0.6.4",
                  latest_version_url="https://cdn.example/sodium-0.6.4.jar")
    updated = resolve_next_and_latest(record, "1.21.5", lookup)
    assert updated.next_version == "0.6.4"
    assert updated.next_version_url == "https://cdn.example/sodium-0.6.4.jar"


def test_lookup_failure_reuses_current():
    record = _mod(["1.21.4", "1.21.5"])
    updated = resolve_next_and_latest(record, "1.21.5", FakeLookup())
    assert updated.next_version == "0.6.0"
    assert updated.latest_game_version == "1.21.5"
    assert updated.latest_version == "0.6.0"


def test_lookup_failure_at_target_reuses_latest():
    record = _mod(["1.21.4", "1.21.5"], latest_game_version="1.21.5", latest_version="0.6.4",
                  latest_version_url="https://cdn.example/sodium-0.6.4.jar")

    records, summary = VersionResolver(FakeLookup()).resolve_all([record], "1.21.5")
    updated = records[0]

    assert updated.next_version == "0.6.4"
    assert updated.next_version_url == "https://cdn.example/sodium-0.6.4.jar"
    assert updated.latest_version == "0.6.4"
    assert summary.fallback_used == 1
    assert summary.entries[0]["detail"] == "1.21.5: lookup failed, reused latest"


def test_only_snapshots_listed_leaves_next_empty():
    lookup = FakeLookup({("sodium", "25w14a"): "0.7.0-alpha"})
    record = _mod(["25w14a"], next_version="stale")

    records, summary = VersionResolver(lookup).resolve_all([record], "1.21.5")
    updated = records[0]

    assert updated.next_version == ""
    assert updated.next_version_url == ""
    assert updated.latest_game_version == "1.21.4"
    assert updated.latest_version == "0.6.0"
    assert summary.unresolved == 1
    assert lookup.calls == []


def test_current_version_not_listed_is_counted():
    lookup = FakeLookup({("sodium", "1.21.5"): "0.6.5"})
    records = [_mod(["1.21.5"]), _mod(["1.21.4", "1.21.5"], identity="lithium"), _mod([], identity="iris")]

    resolved, summary = VersionResolver(lookup).resolve_all(records, "1.21.5")

    assert resolved[0].next_version == "0.6.5"
    assert summary.current_unlisted == 1
    assert [e["current_unlisted"] for e in summary.entries] == [True, False, False]


def test_lookup_exceptions_are_fallbacks():
    record = _mod(["1.21.5"])
    lookup = FakeLookup(error=UpstreamError("rate limited", 429))
    records, summary = VersionResolver(lookup).resolve_all([record], "1.21.5")
    assert records[0].next_version == "0.6.0"
    assert summary.fallback_used == 1


@pytest.mark.parametrize("builds", [{}, {("sodium", "1.21.5"): "0.6.5"}])
def test_repeated_resolution_is_stable(builds):
    lookup = FakeLookup(builds)
    record = _mod(["1.21.4", "1.21.5", "1.21.6"])

    once = resolve_next_and_latest(record, "1.21.5", lookup)
    twice = resolve_next_and_latest(once, "1.21.5", lookup)

    assert (twice.next_version, twice.next_version_url) == (once.next_version, once.next_version_url)
    assert (twice.latest_version, twice.latest_version_url) == (once.latest_version, once.latest_version_url)


def test_latest_below_target_mirrors_current():
    lookup = FakeLookup({("sodium", "1.21.4"): "0.6.0"})
    record = _mod(["1.21.3", "1.21.4"], latest_game_version="1.21.9", latest_version="old")

    updated = resolve_next_and_latest(record, "1.21.5", lookup)

    assert updated.latest_game_version == "1.21.4"
    assert updated.latest_version == "0.6.0"
    assert updated.latest_version_url == record.current_version_url


def test_infrastructure_is_skipped_by_default():
    server = ArtifactRecord(kind=Kind.SERVER, group=Group.INFRASTRUCTURE, identity="minecraft",
                            host="mojang", available_game_versions=["1.21.5"])
    lookup = FakeLookup({("minecraft", "1.21.5"): "1.21.5"})

    records, summary = VersionResolver(lookup).resolve_all([server], "1.21.5")
    assert records[0] is server
    assert summary.skipped == 1
    assert lookup.calls == []

    records, summary = VersionResolver(lookup, include_infrastructure=True).resolve_all([server], "1.21.5")
    assert records[0].next_version == "1.21.5"
    assert summary.api_resolved == 1


def test_summary_counts():
    lookup = FakeLookup({("sodium", "1.21.5"): "0.6.5"})
    records = [
        _mod(["1.21.5"]),
        _mod([], identity="lithium"),
        _mod(["1.22"], identity="iris"),
        ArtifactRecord(kind=Kind.JDK, group=Group.INFRASTRUCTURE, identity="21"),
    ]

    resolved, summary = VersionResolver(lookup).resolve_all(records, "1.21.5")

    assert len(resolved) == 4
    assert (summary.api_resolved, summary.fallback_used, summary.unresolved, summary.skipped) == (1, 1, 1, 1)
    assert summary.current_unlisted == 2
    assert summary.total == 4
    assert summary.target_next == "1.21.5"
    assert [e["name"] for e in summary.entries] == ["Sodium", "Sodium", "Sodium", "21"]
