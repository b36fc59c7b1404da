"""Upstream version lookup dispatch by host and artifact kind."""

import logging
from typing import Dict, List, Optional

import requests

from ..core.errors import ModManagerError
from ..core.model import ArtifactRecord, Kind, LookupResult
from .curseforge import CurseForgeClient
from .http import DEFAULT_USER_AGENT, RetryPolicy
from .infrastructure import AdoptiumClient, FabricMetaClient, MojangClient
from .modrinth import ModrinthClient

log = logging.getLogger(__name__)

# Host used when a record does not name one
DEFAULT_HOSTS = {
    Kind.MOD: "modrinth",
    Kind.SHADERPACK: "modrinth",
    Kind.DATAPACK: "modrinth",
    Kind.SERVER: "mojang",
    Kind.LAUNCHER: "fabric",
    Kind.INSTALLER: "fabric",
    Kind.JDK: "adoptium",
}

# Malformed payloads surface as one of these while walking the JSON
_PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


class UpstreamLookup:
    """
    Resolves artifact versions against the right third-party API.

    Every failure is logged and reported as ok=False so the version
    resolver can fall back.
    """

    def __init__(self, clients: Dict[str, object]):
        """
        Args:
            clients: Host name -> client with resolve() and fetch_available_game_versions()
        """
        self.clients = clients

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "UpstreamLookup":
        """Build every client from a Settings object, sharing one HTTP session."""
        session = session or requests.Session()
        retry = settings.get("retry") or {}
        common = {
            "session": session,
            "timeout": float(settings.get("timeout", 15.0)),
            "policy": RetryPolicy(
                max_attempts=int(retry.get("max_attempts", 4)),
                base_delay=float(retry.get("base_delay", 1.0)),
                max_delay=float(retry.get("max_delay", 30.0)),
            ),
            "user_agent": settings.get("user_agent") or DEFAULT_USER_AGENT,
        }
        api = settings.get("api") or {}
        jdk = settings.get("jdk") or {}
        return cls({
            "modrinth": ModrinthClient(base_url=api.get("modrinth"), **common),
            "curseforge": CurseForgeClient(api_key=settings.get_curseforge_api_key(),
                                           base_url=api.get("curseforge"), **common),
            "mojang": MojangClient(base_url=api.get("mojang"), **common),
            "fabric": FabricMetaClient(base_url=api.get("fabric"), **common),
            "adoptium": AdoptiumClient(os_name=jdk.get("os", "linux"), arch=jdk.get("arch", "x64"),
                                       base_url=api.get("adoptium"), **common),
        })

    def host_for(self, record: ArtifactRecord) -> str:
        return (record.host or DEFAULT_HOSTS.get(record.kind, "direct")).lower()

    def _client(self, record: ArtifactRecord):
        host = self.host_for(record)
        client = self.clients.get(host)
        if client is None and host != "direct":
            log.debug("No client for host %r (%s)", host, record.display_name)
        return client

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        client = self._client(record)
        if client is None or not record.identity:
            return LookupResult.failed()
        try:
            return client.resolve(record, game_version)
        except (ModManagerError, requests.RequestException) as e:
            log.warning("%s: lookup for %s failed: %s", record.display_name, game_version, e)
        except _PAYLOAD_ERRORS as e:
            log.warning("%s: unexpected response for %s: %r", record.display_name, game_version, e)
        return LookupResult.failed()

    def fetch_available_game_versions(self, record: ArtifactRecord) -> Optional[List[str]]:
        """
        Ask upstream which game versions a record supports.

        Returns:
            The list, or None when it could not be fetched
        """
        client = self._client(record)
        if client is None or not record.identity:
            return None
        try:
            return client.fetch_available_game_versions(record)
        except (ModManagerError, requests.RequestException) as e:
            log.warning("%s: could not fetch game versions: %s", record.display_name, e)
        except _PAYLOAD_ERRORS as e:
            log.warning("%s: unexpected game version response: %r", record.display_name, e)
        return None


def refresh_available_game_versions(records: List[ArtifactRecord],
                                    lookup: UpstreamLookup) -> Dict[str, int]:
    """
    Update available_game_versions in place from upstream.

    Empty or failed fetches leave the stored list alone.

    Returns:
        Counts of "updated", "unchanged" and "failed" records
    """
    counts = {"updated": 0, "unchanged": 0, "failed": 0}
    for record in records:
        versions = lookup.fetch_available_game_versions(record)
        if not versions:
            counts["failed" if versions is None else "unchanged"] += 1
            continue
        deduped = list(dict.fromkeys(versions))
        if deduped == record.available_game_versions:
            counts["unchanged"] += 1
        else:
            record.available_game_versions = deduped
            counts["updated"] += 1
    log.info("Refreshed game versions: %d updated, %d unchanged, %d failed",
             counts["updated"], counts["unchanged"], counts["failed"])
    return counts
