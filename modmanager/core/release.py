"""Release assembly and verification."""

import logging
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..util.cache import ArtifactCache
from .expected import build_expected_files, targets_version
from .model import ArtifactRecord, Group, Kind, Policy, ReconciliationResult
from .reconcile import reconcile
from .scan import list_actual_files

log = logging.getLogger(__name__)


@dataclass
class AssemblyResult:
    """What an assembly run produced and whether it passed verification."""
    version: str
    release_dir: Path
    policy: Policy
    reconciliation: ReconciliationResult
    expected: List[str] = field(default_factory=list)
    copied: int = 0
    missing_from_cache: List[str] = field(default_factory=list)
    server_mods: int = 0
    archive: Optional[Path] = None

    @property
    def passed(self) -> bool:
        return self.reconciliation.passes(self.policy)


class ReleaseAssembler:
    """Copies cached artifacts into a release tree and verifies it."""

    def __init__(self, cache: ArtifactCache, output_dir: Path):
        """
        Args:
            cache: Download cache to copy from
            output_dir: Directory that receives <version>/ and <version>-server/
        """
        self.cache = cache
        self.output_dir = Path(output_dir)

    def release_dir(self, version: str) -> Path:
        return self.output_dir / version

    def server_release_dir(self, version: str) -> Path:
        return self.output_dir / f"{version}-server"

    def assemble(self, records: List[ArtifactRecord], version: str,
                 policy: Union[Policy, str] = Policy.WARN,
                 include_blocked: bool = False,
                 make_zip: bool = False) -> AssemblyResult:
        """
        Build the release for a game version from the cache.

        The release directory is recreated from scratch on every run.

        Raises:
            ValueError: If policy is not a Policy, or the release
                directories overlap the cache folders they are built from
        """
        policy = Policy(policy)
        self._check_separate_from_cache(version)
        expected = build_expected_files(records, version, include_blocked)
        release_dir = self.release_dir(version)
        source_dir = self.cache.content_dir(version)

        if release_dir.exists():
            shutil.rmtree(release_dir)
        release_dir.mkdir(parents=True)

        copied = 0
        missing_from_cache = []
        for path in expected:
            source = source_dir / path
            if not source.is_file():
                missing_from_cache.append(path)
                continue
            destination = release_dir / path
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
            copied += 1

        server_mods = self._copy_server_mods(records, version)

        actual = list_actual_files(release_dir)
        result = reconcile(expected, actual, policy.mode)
        assembly = AssemblyResult(
            version=version,
            release_dir=release_dir,
            policy=policy,
            reconciliation=result,
            expected=expected,
            copied=copied,
            missing_from_cache=missing_from_cache,
            server_mods=server_mods,
        )

        if missing_from_cache:
            log.warning("%d expected files are not in the cache", len(missing_from_cache))
        if result.extra and policy is not Policy.STRICT:
            log.warning("%d unexpected files in release %s", len(result.extra), version)
        if make_zip:
            assembly.archive = self.write_archive(release_dir, self.output_dir / f"{version}.zip")

        log.info("Release %s: %d copied, %d missing, %d extra, %d paired -> %s",
                 version, copied, len(result.missing), len(result.extra), len(result.pairs),
                 "PASS" if assembly.passed else "FAIL")
        return assembly

    def _check_separate_from_cache(self, version: str) -> None:
        # Release directories are wiped before copying
        sources = [self.cache.content_dir(version).resolve(), self.cache.server_dir(version).resolve()]
        for target in (self.release_dir(version).resolve(), self.server_release_dir(version).resolve()):
            for source in sources:
                if target == source or target in source.parents or source in target.parents:
                    raise ValueError(f"Release directory {target} overlaps cache directory {source}")

    def _copy_server_mods(self, records: List[ArtifactRecord], version: str) -> int:
        server_dir = self.server_release_dir(version) / "mods"
        if server_dir.exists():
            shutil.rmtree(server_dir)

        count = 0
        for record in records:
            if record.kind is not Kind.MOD or record.group is not Group.SERVER:
                continue
            if not record.file_name or not targets_version(record, version):
                continue
            source = self.cache.server_dir(version) / "mods" / record.file_name
            if not source.is_file():
                log.warning("Server mod %s is not in the cache", record.file_name)
                continue
            server_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, server_dir / record.file_name)
            count += 1
        return count

    @staticmethod
    def write_archive(release_dir: Path, archive: Path) -> Path:
        """Zip the release tree with entries relative to its root, in sorted order."""
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for file in sorted(p for p in release_dir.rglob("*") if p.is_file()):
                zf.write(file, file.relative_to(release_dir).as_posix())
        log.info("Wrote %s", archive)
        return archive
