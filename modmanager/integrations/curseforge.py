"""CurseForge API integration for version lookups."""

import logging
from typing import Any, Dict, List, Optional

from ..core.model import ArtifactRecord, LookupResult
from .http import HttpClient

log = logging.getLogger(__name__)

# CurseForge ModLoaderType values
MOD_LOADER_TYPES = {
    "forge": 1,
    "cauldron": 2,
    "liteloader": 3,
    "fabric": 4,
    "quilt": 5,
    "neoforge": 6,
}


class CurseForgeClient(HttpClient):
    """CurseForge API client; every call needs an API key."""

    base_url = "https://api.curseforge.com/v1"

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def get_mod(self, mod_id: str) -> Dict[str, Any]:
        return self.get_json(f"mods/{mod_id}").get("data") or {}

    def get_files(self, mod_id: str, loader: str = "", game_version: str = "") -> List[Dict[str, Any]]:
        params = {"pageSize": 50}
        if game_version:
            params["gameVersion"] = game_version
        loader_type = MOD_LOADER_TYPES.get(loader.lower()) if loader else None
        if loader_type:
            params["modLoaderType"] = loader_type
        return self.get_json(f"mods/{mod_id}/files", params=params).get("data") or []

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        """Newest file for (loader, game_version); files with distribution disabled don't count."""
        if not self.enabled:
            log.debug("No CurseForge API key, skipping %s", record.display_name)
            return LookupResult.failed()

        files = self.get_files(record.identity, record.loader, game_version)
        files = [f for f in files if f.get("downloadUrl")]
        if not files:
            return LookupResult.failed()

        newest = max(files, key=lambda f: f.get("fileDate") or "")
        return LookupResult(
            ok=True,
            version=newest.get("displayName") or str(newest.get("id", "")),
            url=newest["downloadUrl"],
        )

    def fetch_available_game_versions(self, record: ArtifactRecord) -> List[str]:
        """Game versions from the mod's latest file index, in index order."""
        if not self.enabled:
            return []
        mod = self.get_mod(record.identity)
        versions = []
        for entry in mod.get("latestFilesIndexes") or []:
            loader_type = entry.get("modLoader")
            wanted = MOD_LOADER_TYPES.get(record.loader.lower())
            if wanted and loader_type and loader_type != wanted:
                continue
            game_version = entry.get("gameVersion")
            if game_version and game_version not in versions:
                versions.append(game_version)
        return versions
