"""Download cache for mod JARs and infrastructure artifacts."""

import contextlib
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import unquote, urlparse

import requests

from ..core.errors import DownloadError, UpstreamError
from ..core.expected import release_folder, targets_version
from ..core.model import CONTENT_KINDS, ArtifactRecord, Group, Kind
from ..integrations.http import DEFAULT_USER_AGENT, RetryPolicy, request_with_retry

log = logging.getLogger(__name__)

CHUNK_SIZE = 65536


@dataclass
class DownloadSummary:
    """Counts from a download pass."""
    downloaded: int = 0
    cached: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)


def file_name_from_url(url: str) -> str:
    """Last path segment of a URL, percent-decoded."""
    return unquote(urlparse(url).path.rsplit("/", 1)[-1])


class ArtifactCache:
    """
    Local cache of downloaded artifacts, laid out like a release.

    <cache>/<version>/                     mods/, mods/optional/, shaderpacks/, datapacks/
    <cache>/server/<version>/mods/         server-only mods
    <cache>/infrastructure/<version>/      server JARs, launchers, installers, JDKs
    """

    def __init__(self, cache_dir: Path,
                 session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None,
                 timeout: float = 60.0,
                 user_agent: str = DEFAULT_USER_AGENT,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the cache.

        Args:
            cache_dir: Root of the download cache
            session: HTTP session used for downloads
            policy: Retry policy for downloads
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header value
            sleep: Sleep function used between retries
        """
        self.cache_dir = Path(cache_dir)
        self.session = session or requests.Session()
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.user_agent = user_agent
        self.sleep = sleep

    def content_dir(self, version: str) -> Path:
        return self.cache_dir / version

    def server_dir(self, version: str) -> Path:
        return self.cache_dir / "server" / version

    def infrastructure_dir(self, version: str) -> Path:
        return self.cache_dir / "infrastructure" / version

    def fetch(self, url: str, destination: Path) -> bool:
        """
        Download url to destination unless a non-empty copy is already there.

        Returns:
            True if the file was downloaded, False on a cache hit

        Raises:
            DownloadError: If the download fails
        """
        if destination.exists() and destination.stat().st_size > 0:
            return False

        partial = destination.with_name(destination.name + ".part")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            response = request_with_retry(
                self.session, "GET", url, self.policy, self.sleep,
                stream=True, timeout=self.timeout, headers={"User-Agent": self.user_agent},
            )
            with response:
                if response.status_code != 200:
                    raise DownloadError(f"GET {url} returned {response.status_code}")
                with open(partial, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            os.replace(partial, destination)
        except (UpstreamError, requests.RequestException, OSError) as e:
            raise DownloadError(f"Cannot download {url}: {e}") from e
        finally:
            with contextlib.suppress(OSError):
                partial.unlink()
        return True

    def destination_for(self, record: ArtifactRecord, version: str, slot: str,
                        include_blocked: bool = False) -> Optional[Path]:
        """Where the slot's artifact of record goes in the cache, or None if it is not cached."""
        game_version, artifact_version, url = record.slot(slot)
        if not url:
            return None

        if slot == "current" and record.file_name:
            file_name = record.file_name
        else:
            file_name = file_name_from_url(url)
        if "." not in file_name:
            file_name = f"{record.identity}-{artifact_version or game_version or version}.jar"

        if record.kind in CONTENT_KINDS:
            if record.kind is Kind.MOD and record.group is Group.SERVER:
                return self.server_dir(version) / "mods" / file_name
            folder = release_folder(record, file_name, include_blocked)
            if folder is None:
                return None
            return self.content_dir(version) / folder / file_name

        if record.is_infrastructure:
            return self.infrastructure_dir(version) / file_name
        return None

    def download_records(self, records: List[ArtifactRecord], version: str,
                         slot: str = "current", include_infrastructure: bool = True,
                         include_blocked: bool = False) -> DownloadSummary:
        """
        Download the chosen slot of every record that targets version.

        Records with no Jar get one from the download URL when slot is "current".
        Failures are counted per record; the batch always completes.
        """
        summary = DownloadSummary()
        for record in records:
            game_version = record.slot(slot)[0]
            if record.is_infrastructure:
                wanted = include_infrastructure and game_version in ("", version)
            else:
                wanted = game_version == version or targets_version(record, version)
            if not wanted:
                continue

            destination = self.destination_for(record, version, slot, include_blocked)
            if destination is None:
                summary.skipped += 1
                continue

            url = record.slot(slot)[2]
            try:
                if self.fetch(url, destination):
                    summary.downloaded += 1
                    log.info("Downloaded %s", destination.name)
                else:
                    summary.cached += 1
            except DownloadError as e:
                summary.failed += 1
                summary.failures.append({"name": record.display_name, "url": url, "error": str(e)})
                log.warning("%s: %s", record.display_name, e)
                continue

            if slot == "current" and not record.file_name:
                record.file_name = destination.name

        log.info("Downloads for %s (%s): %d new, %d cached, %d failed, %d skipped",
                 version, slot, summary.downloaded, summary.cached, summary.failed, summary.skipped)
        return summary

    def clear_cache(self, version: Optional[str] = None):
        """Remove cached files for one version, or everything."""
        targets = ([self.content_dir(version), self.server_dir(version), self.infrastructure_dir(version)]
                   if version else [self.cache_dir])
        for target in targets:
            if target.exists():
                shutil.rmtree(target)
