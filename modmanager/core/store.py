"""CSV-backed record store for the mod database."""

import contextlib
import csv
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import StoreError
from .model import ArtifactRecord, Group, Kind, Side

log = logging.getLogger(__name__)

LIST_SEPARATOR = ";"

COLUMNS = [
    "Group", "Type", "Name", "ID", "Loader", "Host",
    "CurrentGameVersion", "CurrentVersion", "CurrentVersionUrl",
    "NextGameVersion", "NextVersion", "NextVersionUrl",
    "LatestGameVersion", "LatestVersion", "LatestVersionUrl",
    "AvailableGameVersions", "Jar", "ClientSide", "ServerSide", "Dependencies",
]

# Plain text columns -> record attribute
_TEXT_FIELDS = {
    "Name": "name",
    "ID": "identity",
    "Loader": "loader",
    "Host": "host",
    "CurrentGameVersion": "current_game_version",
    "CurrentVersion": "current_version",
    "CurrentVersionUrl": "current_version_url",
    "NextGameVersion": "next_game_version",
    "NextVersion": "next_version",
    "NextVersionUrl": "next_version_url",
    "LatestGameVersion": "latest_game_version",
    "LatestVersion": "latest_version",
    "LatestVersionUrl": "latest_version_url",
    "Jar": "file_name",
}

_ENUM_FIELDS = {
    "Type": ("kind", Kind),
    "Group": ("group", Group),
    "ClientSide": ("client_side", Side),
    "ServerSide": ("server_side", Side),
}


def split_list(text: Optional[str]) -> List[str]:
    """Split a ';'-separated cell, dropping blanks and repeats but keeping order."""
    items = []
    for part in (text or "").split(LIST_SEPARATOR):
        part = part.strip()
        if part and part not in items:
            items.append(part)
    return items


def join_list(items: List[str]) -> str:
    return LIST_SEPARATOR.join(items)


def record_from_row(row: Dict[str, str]) -> ArtifactRecord:
    """Build a record from a CSV row dict."""
    values = {}
    raw = {}
    for column, (attr, enum_cls) in _ENUM_FIELDS.items():
        text = (row.get(column) or "").strip()
        member = enum_cls.parse(text)
        if member is enum_cls.UNKNOWN and text and text.lower() != "unknown":
            raw[column] = text
        values[attr] = member

    for column, attr in _TEXT_FIELDS.items():
        values[attr] = (row.get(column) or "").strip()

    values["available_game_versions"] = split_list(row.get("AvailableGameVersions"))
    values["dependencies"] = split_list(row.get("Dependencies"))
    values["extra"] = {k: (v or "") for k, v in row.items() if k not in COLUMNS and k is not None}
    values["raw"] = raw
    return ArtifactRecord(**values)


def row_from_record(record: ArtifactRecord) -> Dict[str, str]:
    """Serialize a record back to a CSV row dict."""
    row = {}
    for column, (attr, enum_cls) in _ENUM_FIELDS.items():
        member = getattr(record, attr)
        if member is enum_cls.UNKNOWN:
            row[column] = record.raw.get(column, "")
        else:
            row[column] = member.value
    for column, attr in _TEXT_FIELDS.items():
        row[column] = getattr(record, attr)
    row["AvailableGameVersions"] = join_list(record.available_game_versions)
    row["Dependencies"] = join_list(record.dependencies)
    row.update(record.extra)
    return row


class RecordStore:
    """In-memory table of artifact records with an explicit load/save lifecycle."""

    def __init__(self, records: Optional[List[ArtifactRecord]] = None,
                 extra_columns: Optional[List[str]] = None,
                 path: Optional[Path] = None):
        self.records: List[ArtifactRecord] = list(records or [])
        self.extra_columns: List[str] = list(extra_columns or [])
        self.path = Path(path) if path else None

    def __iter__(self) -> Iterator[ArtifactRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    def load(cls, path: Path, missing_ok: bool = False) -> "RecordStore":
        """
        Load the database from a CSV file.

        Args:
            path: CSV file to read
            missing_ok: Return an empty store instead of failing when the file is absent

        Returns:
            RecordStore bound to path
        """
        path = Path(path)
        if not path.exists():
            if missing_ok:
                return cls(path=path)
            raise StoreError(f"Database not found: {path}")

        try:
            with open(path, "r", encoding="utf-8-sig", newline="") as f:
                reader = csv.DictReader(f)
                header = reader.fieldnames or []
                records = [record_from_row(row) for row in reader]
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            raise StoreError(f"Cannot read database {path}: {e}") from e

        extra_columns = [c for c in header if c not in COLUMNS]
        log.debug("Loaded %d records from %s", len(records), path)
        return cls(records, extra_columns, path)

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Write the database atomically.

        Callers are expected to call backup() first.
        """
        if path is None and self.path is None:
            raise StoreError("No database path to save to")
        target = Path(path or self.path)

        columns = COLUMNS + [c for c in self._all_extra_columns() if c not in COLUMNS]
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
        except OSError as e:
            raise StoreError(f"Cannot write database {target}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
                writer.writeheader()
                for record in self.records:
                    writer.writerow(row_from_record(record))
            os.replace(tmp_name, target)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise StoreError(f"Cannot write database {target}: {e}") from e

        self.path = target
        log.info("Saved %d records to %s", len(self.records), target)
        return target

    def backup(self, backup_dir: Optional[Path] = None) -> Optional[Path]:
        """
        Copy the current database file to a timestamped backup.

        Returns:
            Path of the backup, or None when there is no file yet
        """
        if not self.path or not self.path.exists():
            return None
        backup_dir = Path(backup_dir) if backup_dir else self.path.parent / "backups"
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        target = backup_dir / f"{self.path.stem}.{stamp}.bak{self.path.suffix}"
        counter = 1
        while target.exists():
            target = backup_dir / f"{self.path.stem}.{stamp}-{counter}.bak{self.path.suffix}"
            counter += 1
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.path, target)
        except OSError as e:
            raise StoreError(f"Cannot back up database to {target}: {e}") from e
        log.info("Backed up database to %s", target)
        return target

    def find(self, kind: Kind, loader: str, identity: str) -> Optional[ArtifactRecord]:
        address = (kind.value, loader.lower(), identity)
        for record in self.records:
            if record.address == address:
                return record
        return None

    def add(self, record: ArtifactRecord) -> None:
        """Register a new record; the (kind, loader, identity) address must be unused."""
        if self.find(record.kind, record.loader, record.identity):
            raise StoreError(f"Record already exists: {'/'.join(record.address)}")
        self.records.append(record)

    def remove(self, kind: Kind, loader: str, identity: str) -> ArtifactRecord:
        record = self.find(kind, loader, identity)
        if record is None:
            raise StoreError(f"No such record: {kind.value}/{loader.lower()}/{identity}")
        self.records.remove(record)
        return record

    def replace_all(self, records: List[ArtifactRecord]) -> None:
        self.records = list(records)

    def _all_extra_columns(self) -> List[str]:
        columns = list(self.extra_columns)
        for record in self.records:
            for key in record.extra:
                if key not in columns:
                    columns.append(key)
        return columns


def load_records(path: Path) -> List[ArtifactRecord]:
    return RecordStore.load(path).records


def save_records(path: Path, records: List[ArtifactRecord]) -> Path:
    return RecordStore(records, path=path).save()
