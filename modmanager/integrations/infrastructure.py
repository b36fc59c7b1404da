"""Lookups for server JARs, Fabric launchers/installers and JDKs."""

import logging
from typing import Any, Dict, List, Optional

from ..core.model import ArtifactRecord, Kind, LookupResult
from .http import HttpClient

log = logging.getLogger(__name__)


class MojangClient(HttpClient):
    """Mojang version manifest: vanilla server JARs."""

    base_url = "https://piston-meta.mojang.com"
    manifest_path = "mc/game/version_manifest_v2.json"

    def get_manifest(self) -> Dict[str, Any]:
        return self.get_json(self.manifest_path)

    def release_versions(self) -> List[str]:
        """Release version ids, oldest first."""
        versions = [v["id"] for v in self.get_manifest().get("versions") or []
                    if v.get("type") == "release"]
        versions.reverse()
        return versions

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        for entry in self.get_manifest().get("versions") or []:
            if entry.get("id") == game_version:
                detail = self.get_json(entry["url"])
                server = (detail.get("downloads") or {}).get("server") or {}
                if server.get("url"):
                    return LookupResult(ok=True, version=game_version, url=server["url"])
                break
        return LookupResult.failed()

    def fetch_available_game_versions(self, record: ArtifactRecord) -> List[str]:
        return self.release_versions()


class FabricMetaClient(HttpClient):
    """Fabric meta: loader versions, installers and server launchers."""

    base_url = "https://meta.fabricmc.net/v2"

    def latest_stable(self, what: str) -> Optional[Dict[str, Any]]:
        """Newest stable entry of versions/loader or versions/installer."""
        entries = self.get_json(f"versions/{what}") or []
        for entry in entries:
            if entry.get("stable"):
                return entry
        return entries[0] if entries else None

    def supported_game_versions(self) -> List[str]:
        """Stable game versions Fabric supports, oldest first."""
        versions = [g["version"] for g in self.get_json("versions/game") or [] if g.get("stable")]
        versions.reverse()
        return versions

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        installer = self.latest_stable("installer")
        if not installer:
            return LookupResult.failed()

        if record.kind is Kind.INSTALLER:
            if not installer.get("url"):
                return LookupResult.failed()
            return LookupResult(ok=True, version=installer["version"], url=installer["url"])

        loader = self.latest_stable("loader")
        if not loader:
            return LookupResult.failed()
        url = (f"{self.base_url}/versions/loader/{game_version}/{loader['version']}"
               f"/{installer['version']}/server/jar")
        return LookupResult(ok=True, version=loader["version"], url=url)

    def fetch_available_game_versions(self, record: ArtifactRecord) -> List[str]:
        return self.supported_game_versions()


class AdoptiumClient(HttpClient):
    """Adoptium (Temurin) JDK builds."""

    base_url = "https://api.adoptium.net/v3"

    def __init__(self, os_name: str = "linux", arch: str = "x64", **kwargs):
        super().__init__(**kwargs)
        self.os_name = os_name
        self.arch = arch

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        """Latest JDK for the feature version in record.identity; game_version is not used."""
        assets = self.get_json(
            f"assets/latest/{record.identity}/hotspot",
            params={"os": self.os_name, "architecture": self.arch, "image_type": "jdk"},
        ) or []
        for asset in assets:
            package = (asset.get("binary") or {}).get("package") or {}
            if package.get("link"):
                version = (asset.get("version") or {}).get("semver") or asset.get("release_name", "")
                return LookupResult(ok=True, version=version, url=package["link"])
        return LookupResult.failed()

    def fetch_available_game_versions(self, record: ArtifactRecord) -> List[str]:
        # JDKs are not tied to game versions
        return []
