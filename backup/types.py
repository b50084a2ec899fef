"""Common dataclasses shared across backup modules."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

TRIGGERS = ("manual", "daily", "pre-update", "pre-restore", "api")


@dataclass(frozen=True, slots=True)
class FileEntry:
    """Single file captured as part of a manifest."""

    size: int
    modified: str
    encoding: str
    data: str
    hash: str


@dataclass(frozen=True, slots=True)
class ManifestStats:
    file_count: int = 0
    total_size: int = 0
    compressed_size: int = 0


@dataclass(frozen=True, slots=True)
class Manifest:
    version: str
    id: str
    timestamp: str
    label: Optional[str]
    trigger: str
    components: List[str]
    files: Dict[str, FileEntry]
    live_state: Optional[Dict[str, Any]]
    stats: ManifestStats
    integrity: str


@dataclass(slots=True)
class ArchiveRecord:
    """Sidecar index record stored next to each archive."""

    id: str
    filename: str
    timestamp: str
    label: Optional[str]
    trigger: str
    components: List[str]
    file_count: int
    total_size: int
    compressed_size: int
    integrity: str
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ArchiveRecord":
        return cls(
            id=str(payload["id"]),
            filename=str(payload["filename"]),
            timestamp=str(payload["timestamp"]),
            label=payload.get("label"),
            trigger=str(payload.get("trigger") or "manual"),
            components=list(payload.get("components") or []),
            file_count=int(payload.get("file_count") or 0),
            total_size=int(payload.get("total_size") or 0),
            compressed_size=int(payload.get("compressed_size") or 0),
            integrity=str(payload.get("integrity") or ""),
            elapsed_ms=int(payload.get("elapsed_ms") or 0),
        )


@dataclass(slots=True)
class RetentionSummary:
    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    freed_bytes: int = 0
    error: Optional[str] = None


__all__ = [
    "ArchiveRecord",
    "FileEntry",
    "Manifest",
    "ManifestStats",
    "RetentionSummary",
    "TRIGGERS",
]
