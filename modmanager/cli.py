#!/usr/bin/env python3
"""Command line interface for the mod database and release checks."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import requests

from .core.errors import StoreError
from .core.expected import build_expected_files, records_without_file_name
from .core.majority import compute_majority_version
from .core.model import CONTENT_KINDS, SLOTS, ArtifactRecord, Group, Kind, Policy, ReconcileMode
from .core.reconcile import reconcile
from .core.release import ReleaseAssembler
from .core.report import (dumps_json, export_report_to_file, generate_reconciliation_report,
                          generate_resolution_report, reconciliation_to_dict)
from .core.resolver import VersionResolver
from .core.scan import list_actual_files
from .core.store import RecordStore
from .core.versions import next_patch, sort_game_versions
from .integrations.http import DEFAULT_USER_AGENT, RetryPolicy
from .integrations.lookup import UpstreamLookup, refresh_available_game_versions
from .settings import Settings
from .util.cache import ArtifactCache

APP_NAME = "Modpack Manager"
APP_VERSION = "0.4.0"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_STORE = 3

log = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def _db_path(args, settings: Settings) -> Path:
    return Path(args.db).expanduser() if args.db else settings.path("database")


def _backup_dir(settings: Settings) -> Optional[Path]:
    return settings.path("backup_dir") if settings.get("backup_dir") else None


def _commit(store: RecordStore, settings: Settings) -> None:
    """Back up the previous database file, then save."""
    store.backup(_backup_dir(settings))
    store.save()


def _make_cache(args, settings: Settings) -> ArtifactCache:
    retry = settings.get("retry") or {}
    return ArtifactCache(
        Path(args.cache).expanduser() if args.cache else settings.path("cache_dir"),
        session=requests.Session(),
        policy=RetryPolicy(
            max_attempts=int(retry.get("max_attempts", 4)),
            base_delay=float(retry.get("base_delay", 1.0)),
            max_delay=float(retry.get("max_delay", 30.0)),
        ),
        user_agent=settings.get("user_agent") or DEFAULT_USER_AGENT,
    )


def _write_report(path: Optional[str], markdown: str, data: dict) -> None:
    if not path:
        return
    target = Path(path).expanduser()
    content = dumps_json(data) if target.suffix.lower() == ".json" else markdown
    export_report_to_file(content, target)
    print(f"Report: {target}")


# ---- Commands ----

def cmd_majority(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    majority, distribution = compute_majority_version(store.records, settings.get("default_game_version"))
    print(f"Majority version: {majority}")
    print(f"Next version: {next_patch(majority)}")
    for version in sort_game_versions(distribution):
        print(f"  {version}: {distribution[version]}")
    return EXIT_OK


def cmd_update_versions(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    majority, distribution = compute_majority_version(store.records, settings.get("default_game_version"))
    target = args.target or next_patch(majority)
    log.info("Majority version %s, next target %s", majority, target)

    lookup = UpstreamLookup.from_settings(settings)
    if args.refresh:
        eligible = [r for r in store.records if args.include_infrastructure or not r.is_infrastructure]
        refresh_available_game_versions(eligible, lookup)

    resolver = VersionResolver(lookup, include_infrastructure=args.include_infrastructure)
    records, summary = resolver.resolve_all(store.records, target)
    store.replace_all(records)

    print(f"Target {target}: {summary.api_resolved} via API, {summary.fallback_used} fallback, "
          f"{summary.unresolved} unresolved, {summary.skipped} skipped"
          + (f", {summary.current_unlisted} with current version not listed upstream"
             if summary.current_unlisted else ""))
    _write_report(args.report, generate_resolution_report(summary, majority, distribution),
                  {"majority": majority, "distribution": distribution, "target_next": target,
                   "api_resolved": summary.api_resolved, "fallback_used": summary.fallback_used,
                   "unresolved": summary.unresolved, "skipped": summary.skipped,
                   "current_unlisted": summary.current_unlisted,
                   "records": summary.entries})

    if args.dry_run:
        print("Dry run: database not written")
    else:
        _commit(store, settings)
    return EXIT_OK


def cmd_expected(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    paths = build_expected_files(store.records, args.target, args.include_blocked)
    nameless = records_without_file_name(store.records, args.target, args.include_blocked)
    if nameless:
        log.warning("%d records for %s have no Jar and were left out: %s", len(nameless), args.target,
                    ", ".join(r.display_name for r in nameless))

    if args.out:
        export_report_to_file("".join(f"{p}\n" for p in paths), Path(args.out).expanduser())
        print(f"{len(paths)} expected files written to {args.out}")
    else:
        for path in paths:
            print(path)
    return EXIT_OK


def cmd_reconcile(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    root_dir = Path(args.dir).expanduser()
    expected = build_expected_files(store.records, args.target, args.include_blocked)
    actual = list_actual_files(root_dir)
    result = reconcile(expected, actual, ReconcileMode(args.mode))

    print(f"Expected {len(expected)}, found {len(actual)}: {len(result.missing)} missing, "
          f"{len(result.extra)} extra, {len(result.pairs)} version drift pairs")
    for path in result.missing:
        print(f"  missing: {path}")
    for path in result.extra:
        print(f"  extra:   {path}")
    for old, new in result.pairs:
        print(f"  drift:   {old or '-'} -> {new or '-'}")

    _write_report(args.report,
                  generate_reconciliation_report(result, args.target, len(expected), len(actual), root_dir),
                  reconciliation_to_dict(result, args.target))
    return EXIT_OK if result.passed else EXIT_FAILED


def cmd_download(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    cache = _make_cache(args, settings)
    if args.fresh:
        cache.clear_cache(args.target)

    names_before = [r.file_name for r in store.records]
    summary = cache.download_records(store.records, args.target, slot=args.slot,
                                     include_infrastructure=not args.no_infrastructure,
                                     include_blocked=args.include_blocked)
    print(f"{summary.downloaded} downloaded, {summary.cached} cached, "
          f"{summary.failed} failed, {summary.skipped} skipped")
    for failure in summary.failures:
        print(f"  {failure['name']}: {failure['error']}")

    if [r.file_name for r in store.records] != names_before:
        _commit(store, settings)
    return EXIT_OK if not summary.failed else EXIT_FAILED


def cmd_assemble(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    output_dir = Path(args.output).expanduser() if args.output else settings.path("release_dir")
    assembler = ReleaseAssembler(_make_cache(args, settings), output_dir)
    assembly = assembler.assemble(store.records, args.target, Policy(args.policy),
                                  include_blocked=args.include_blocked, make_zip=args.zip)

    result = assembly.reconciliation
    print(f"Release {args.target} in {assembly.release_dir}: {assembly.copied} copied, "
          f"{len(assembly.missing_from_cache)} not cached, {assembly.server_mods} server-only mods")
    for path in result.missing:
        print(f"  missing: {path}")
    for path in result.extra:
        print(f"  extra:   {path}")
    if assembly.archive:
        print(f"Archive: {assembly.archive}")
    print("PASS" if assembly.passed else "FAIL")

    _write_report(args.report,
                  generate_reconciliation_report(result, args.target, len(assembly.expected),
                                                 assembly.copied, assembly.release_dir, assembly.policy),
                  reconciliation_to_dict(result, args.target, assembly.policy))
    return EXIT_OK if assembly.passed else EXIT_FAILED


def cmd_add(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings), missing_ok=True)
    kind = Kind.parse(args.type)
    group = Group.parse(args.group) if args.group else (
        Group.REQUIRED if kind in CONTENT_KINDS else Group.INFRASTRUCTURE)
    record = ArtifactRecord(
        kind=kind,
        group=group,
        identity=args.id,
        loader=args.loader,
        name=args.name or "",
        host=args.host or "",
        current_game_version=args.game_version or "",
        current_version=args.version or "",
        current_version_url=args.url or "",
        file_name=args.jar or "",
    )
    store.add(record)
    _commit(store, settings)
    print(f"Added {record.display_name} ({'/'.join(record.address)})")
    return EXIT_OK


def cmd_remove(args, settings: Settings) -> int:
    store = RecordStore.load(_db_path(args, settings))
    record = store.remove(Kind.parse(args.type), args.loader, args.id)
    _commit(store, settings)
    print(f"Removed {record.display_name}")
    return EXIT_OK


# ---- Parser ----

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modmanager",
        description=f"{APP_NAME}: track mod versions and verify modpack releases"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("--db", type=str, default=None, help="Mod database CSV (default from config)")
    parser.add_argument("--config", type=str, default=None, help="Config file (default ~/.modpack-manager/config.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("majority", help="Show the majority current game version")
    p.set_defaults(func=cmd_majority)

    p = sub.add_parser("update-versions", help="Recompute Next/Latest versions for every record")
    p.add_argument("--target", type=str, default=None, help="Next game version (default: majority + 1 patch)")
    p.add_argument("--refresh", action="store_true", help="Refresh supported game versions from upstream first")
    p.add_argument("--include-infrastructure", action="store_true", help="Also resolve server/launcher/installer/JDK")
    p.add_argument("--dry-run", action="store_true", help="Do not write the database")
    p.add_argument("--report", type=str, default=None, help="Write a report (.md or .json)")
    p.set_defaults(func=cmd_update_versions)

    p = sub.add_parser("expected", help="List the files a release should contain")
    p.add_argument("--target", type=str, required=True, help="Game version")
    p.add_argument("--include-blocked", action="store_true", help="Include mods/block/")
    p.add_argument("--out", type=str, default=None, help="Write the list to a file")
    p.set_defaults(func=cmd_expected)

    p = sub.add_parser("reconcile", help="Compare a directory with the expected file list")
    p.add_argument("--target", type=str, required=True, help="Game version")
    p.add_argument("--dir", type=str, required=True, help="Cache or release directory to check")
    p.add_argument("--mode", choices=[m.value for m in ReconcileMode], default=ReconcileMode.STRICT.value)
    p.add_argument("--include-blocked", action="store_true", help="Include mods/block/")
    p.add_argument("--report", type=str, default=None, help="Write a report (.md or .json)")
    p.set_defaults(func=cmd_reconcile)

    p = sub.add_parser("download", help="Download artifacts into the cache")
    p.add_argument("--target", type=str, required=True, help="Game version")
    p.add_argument("--slot", choices=list(SLOTS), default="current")
    p.add_argument("--cache", type=str, default=None, help="Cache directory (default from config)")
    p.add_argument("--include-blocked", action="store_true", help="Also download blocked mods")
    p.add_argument("--no-infrastructure", action="store_true", help="Skip server/launcher/installer/JDK")
    p.add_argument("--fresh", action="store_true", help="Clear the cache for this version first")
    p.set_defaults(func=cmd_download)

    p = sub.add_parser("assemble", help="Build and verify a release from the cache")
    p.add_argument("--target", type=str, required=True, help="Game version")
    p.add_argument("--cache", type=str, default=None, help="Cache directory (default from config)")
    p.add_argument("--output", type=str, default=None, help="Release directory (default from config)")
    p.add_argument("--policy", choices=[policy.value for policy in Policy], default=Policy.WARN.value)
    p.add_argument("--include-blocked", action="store_true", help="Include mods/block/")
    p.add_argument("--zip", action="store_true", help="Also write <version>.zip")
    p.add_argument("--report", type=str, default=None, help="Write a report (.md or .json)")
    p.set_defaults(func=cmd_assemble)

    p = sub.add_parser("add", help="Register a new record")
    p.add_argument("--type", type=str, required=True, choices=[k.value for k in Kind if k is not Kind.UNKNOWN])
    p.add_argument("--id", type=str, required=True, help="Upstream project id")
    p.add_argument("--loader", type=str, required=True, help="Loader tag, e.g. fabric")
    p.add_argument("--group", type=str, default=None, choices=[g.value for g in Group if g is not Group.UNKNOWN])
    p.add_argument("--host", type=str, default=None, help="modrinth, curseforge, mojang, fabric, adoptium or direct")
    p.add_argument("--name", type=str, default=None)
    p.add_argument("--game-version", type=str, default=None, help="Current game version")
    p.add_argument("--version", dest="version", type=str, default=None, help="Current artifact version")
    p.add_argument("--url", type=str, default=None, help="Current download URL")
    p.add_argument("--jar", type=str, default=None, help="File name on disk")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("remove", help="Delete a record")
    p.add_argument("--type", type=str, required=True)
    p.add_argument("--id", type=str, required=True)
    p.add_argument("--loader", type=str, required=True)
    p.set_defaults(func=cmd_remove)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    settings = Settings(Path(args.config).expanduser() if args.config else None)

    try:
        return args.func(args, settings)
    except StoreError as e:
        log.error("%s", e)
        print(f"Database error: {e}", file=sys.stderr)
        return EXIT_STORE
    except ValueError as e:
        log.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
