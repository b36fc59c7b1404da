"""Modrinth API integration for version lookups."""

import json
import logging
from typing import Any, Dict, List, Optional

from ..core.model import ArtifactRecord, LookupResult
from .http import HttpClient

log = logging.getLogger(__name__)


class ModrinthClient(HttpClient):
    """Lightweight Modrinth API client."""

    base_url = "https://api.modrinth.com/v2"

    def get_project(self, project_id: str) -> Dict[str, Any]:
        """
        Get project information by ID or slug.

        Args:
            project_id: Modrinth project ID or slug

        Returns:
            Project data
        """
        return self.get_json(f"project/{project_id}")

    def get_versions(self, project_id: str, loader: str = "",
                     game_version: str = "") -> List[Dict[str, Any]]:
        """
        List project versions, newest first, optionally filtered.

        Args:
            project_id: Modrinth project ID or slug
            loader: Loader tag such as "fabric"; empty for no filter
            game_version: Minecraft version; empty for no filter
        """
        params = {}
        if loader:
            params["loaders"] = json.dumps([loader])
        if game_version:
            params["game_versions"] = json.dumps([game_version])
        return self.get_json(f"project/{project_id}/version", params=params or None) or []

    def resolve(self, record: ArtifactRecord, game_version: str) -> LookupResult:
        """Find the newest build of record for (loader, game_version)."""
        versions = self.get_versions(record.identity, record.loader, game_version)
        for version_data in versions:
            file_data = _primary_file(version_data)
            if file_data and file_data.get("url"):
                return LookupResult(
                    ok=True,
                    version=version_data.get("version_number") or version_data.get("id", ""),
                    url=file_data["url"],
                )
        return LookupResult.failed()

    def fetch_available_game_versions(self, record: ArtifactRecord) -> List[str]:
        """Game versions the project supports, as listed on the project page."""
        project = self.get_project(record.identity)
        return [str(v) for v in project.get("game_versions") or []]


def _primary_file(version_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    files = version_data.get("files") or []
    for file_data in files:
        if file_data.get("primary"):
            return file_data
    return files[0] if files else None
