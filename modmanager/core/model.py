"""Core data models for the mod database and release checks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class _TextEnum(Enum):
    """Enum parsed case-insensitively from database text."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: Optional[str]):
        """Parse a database value, returning UNKNOWN for anything unrecognised."""
        value = (text or "").strip().lower()
        for member in cls:
            if member.value == value:
                return member
        return cls.UNKNOWN


class Kind(_TextEnum):
    """What sort of artifact a record tracks."""
    MOD = "mod"
    SHADERPACK = "shaderpack"
    DATAPACK = "datapack"
    SERVER = "server"
    LAUNCHER = "launcher"
    INSTALLER = "installer"
    JDK = "jdk"
    UNKNOWN = "unknown"


class Group(_TextEnum):
    """Where an artifact is placed in a release."""
    REQUIRED = "required"
    OPTIONAL = "optional"
    BLOCK = "block"
    SERVER = "server"
    INFRASTRUCTURE = "infrastructure"
    UNKNOWN = "unknown"


class Side(_TextEnum):
    """Client/server environment support."""
    REQUIRED = "required"
    OPTIONAL = "optional"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


CONTENT_KINDS = frozenset({Kind.MOD, Kind.SHADERPACK, Kind.DATAPACK})
INFRASTRUCTURE_KINDS = frozenset({Kind.SERVER, Kind.LAUNCHER, Kind.INSTALLER, Kind.JDK})

# These never carry dependency or client/server side metadata
METADATA_FREE_KINDS = frozenset({Kind.SERVER, Kind.LAUNCHER, Kind.INSTALLER})


@dataclass
class ArtifactRecord:
    """One row of the mod database."""
    kind: Kind
    group: Group
    identity: str
    loader: str = ""
    name: str = ""
    host: str = ""  # modrinth|curseforge|mojang|fabric|adoptium|direct

    current_game_version: str = ""
    current_version: str = ""
    current_version_url: str = ""
    next_game_version: str = ""
    next_version: str = ""
    next_version_url: str = ""
    latest_game_version: str = ""
    latest_version: str = ""
    latest_version_url: str = ""

    available_game_versions: List[str] = field(default_factory=list)
    file_name: str = ""
    client_side: Side = Side.UNKNOWN
    server_side: Side = Side.UNKNOWN
    dependencies: List[str] = field(default_factory=list)

    # Columns this version does not know about, kept for the round trip
    extra: Dict[str, str] = field(default_factory=dict)
    # Original text of enum columns that parsed as UNKNOWN
    raw: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind in METADATA_FREE_KINDS:
            self.dependencies = []
            self.client_side = Side.UNKNOWN
            self.server_side = Side.UNKNOWN

    @property
    def address(self) -> Tuple[str, str, str]:
        """Key identifying the record within the database."""
        return (self.kind.value, self.loader.lower(), self.identity)

    @property
    def display_name(self) -> str:
        return self.name or self.identity

    @property
    def is_infrastructure(self) -> bool:
        return self.kind in INFRASTRUCTURE_KINDS

    @property
    def current_game_version_unlisted(self) -> bool:
        """True when upstream lists game versions and the current one is not among them."""
        return bool(self.available_game_versions and self.current_game_version
                    and self.current_game_version not in self.available_game_versions)

    def slot(self, slot: str) -> Tuple[str, str, str]:
        """Return (game_version, version, url) for current/next/latest."""
        if slot not in SLOTS:
            raise ValueError(f"Unknown version slot: {slot!r}")
        return (
            getattr(self, f"{slot}_game_version"),
            getattr(self, f"{slot}_version"),
            getattr(self, f"{slot}_version_url"),
        )


SLOTS = ("current", "next", "latest")


@dataclass
class LookupResult:
    """Outcome of an upstream version lookup."""
    ok: bool
    version: str = ""
    url: str = ""

    @classmethod
    def failed(cls) -> "LookupResult":
        return cls(ok=False)


class Outcome(Enum):
    """How a record's next version was decided."""
    API = "api"
    FALLBACK = "fallback"
    UNRESOLVED = "unresolved"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


@dataclass
class ResolutionSummary:
    """Counts and per-record notes from a resolution pass."""
    target_next: str
    api_resolved: int = 0
    fallback_used: int = 0
    unresolved: int = 0
    skipped: int = 0
    current_unlisted: int = 0
    entries: List[Dict[str, Any]] = field(default_factory=list)

    def add(self, record: ArtifactRecord, outcome: Outcome, detail: str = "") -> None:
        unlisted = outcome is not Outcome.SKIPPED and record.current_game_version_unlisted
        if unlisted:
            self.current_unlisted += 1
        if outcome is Outcome.API:
            self.api_resolved += 1
        elif outcome is Outcome.FALLBACK:
            self.fallback_used += 1
        elif outcome is Outcome.UNRESOLVED:
            self.unresolved += 1
        else:
            self.skipped += 1
        self.entries.append({
            "name": record.display_name,
            "kind": record.kind.value,
            "outcome": outcome.value,
            "next_version": record.next_version,
            "latest_game_version": record.latest_game_version,
            "detail": detail,
            "current_unlisted": unlisted,
        })

    @property
    def total(self) -> int:
        return self.api_resolved + self.fallback_used + self.unresolved + self.skipped


class ReconcileMode(Enum):
    """Comparison mode for expected vs actual files."""
    STRICT = "strict"
    RELAXED_VERSION = "relaxed-version"

    def __str__(self) -> str:
        return self.value


class Policy(Enum):
    """Release verification policy."""
    STRICT = "strict"
    WARN = "warn"
    RELAXED_VERSION = "relaxed-version"

    def __str__(self) -> str:
        return self.value

    @property
    def mode(self) -> ReconcileMode:
        if self is Policy.RELAXED_VERSION:
            return ReconcileMode.RELAXED_VERSION
        return ReconcileMode.STRICT


@dataclass
class ReconciliationResult:
    """Missing/extra files plus version-drift pairs."""
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)
    pairs: List[Tuple[str, str]] = field(default_factory=list)
    mode: ReconcileMode = ReconcileMode.STRICT

    @property
    def passed(self) -> bool:
        return not self.missing

    def passes(self, policy: Policy) -> bool:
        """Apply a release policy to this result."""
        if policy is Policy.STRICT:
            return not self.missing and not self.extra
        return not self.missing
