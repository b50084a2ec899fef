"""Assemble collected entries into sealed manifests."""
from __future__ import annotations

import dataclasses
import hashlib
import json
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

from .codec import serialize_manifest
from .types import FileEntry, Manifest, ManifestStats

BACKUP_VERSION = "2.0.0"


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_digest(files: Mapping[str, FileEntry], live_state: Optional[Mapping[str, Any]]) -> str:
    """SHA-256 over every (path, encoded content) pair in path order, then live state."""

    digest = hashlib.sha256()
    for path in sorted(files):
        digest.update(path.encode("utf-8"))
        digest.update(files[path].data.encode("utf-8"))
    if live_state:
        digest.update(canonical_json(live_state).encode("utf-8"))
    return digest.hexdigest()


def generate_id(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"{moment.strftime('%Y%m%d-%H%M%S')}-{secrets.token_hex(3)}"


def build_manifest(
    files: Mapping[str, FileEntry],
    *,
    components: Iterable[str],
    trigger: str = "manual",
    label: Optional[str] = None,
    live_state: Optional[Mapping[str, Any]] = None,
    backup_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Manifest:
    moment = now or datetime.now(timezone.utc)
    entries: Dict[str, FileEntry] = dict(files)
    # live state is opaque; normalise it to plain JSON so the digest survives a round trip
    state = json.loads(json.dumps(live_state, default=str)) if live_state else None
    manifest = Manifest(
        version=BACKUP_VERSION,
        id=backup_id or generate_id(moment),
        timestamp=moment.isoformat(),
        label=label,
        trigger=trigger,
        components=list(components),
        files=entries,
        live_state=state,
        stats=ManifestStats(file_count=len(entries)),
        integrity=compute_digest(entries, state),
    )
    total_size = len(serialize_manifest(manifest))
    return dataclasses.replace(manifest, stats=ManifestStats(file_count=len(entries), total_size=total_size))


def verify_manifest(manifest: Manifest) -> str:
    """Return the recomputed digest; callers compare it to ``manifest.integrity``."""

    return compute_digest(manifest.files, manifest.live_state)


__all__ = [
    "BACKUP_VERSION",
    "build_manifest",
    "canonical_json",
    "compute_digest",
    "generate_id",
    "verify_manifest",
]
