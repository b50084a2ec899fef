"""Compare the file sets of two archives."""
from __future__ import annotations

from typing import Any, Dict, List

from .errors import BackupDiffError, BackupError
from .store import ArchiveStore
from .types import Manifest

UNCHANGED_LIST_LIMIT = 50


def _load(store: ArchiveStore, backup_id: str) -> Manifest:
    try:
        return store.read(backup_id)
    except BackupError as exc:
        raise BackupDiffError(backup_id, exc) from exc


def diff_manifests(before: Manifest, after: Manifest) -> Dict[str, Any]:
    added: List[Dict[str, Any]] = []
    removed: List[Dict[str, Any]] = []
    modified: List[Dict[str, Any]] = []
    unchanged: List[str] = []

    for path in sorted(set(before.files) | set(after.files)):
        old = before.files.get(path)
        new = after.files.get(path)
        if old is None:
            added.append({"path": path, "size": new.size})
        elif new is None:
            removed.append({"path": path, "size": old.size})
        elif old.hash != new.hash:
            modified.append(
                {
                    "path": path,
                    "size_before": old.size,
                    "size_after": new.size,
                    "size_delta": new.size - old.size,
                }
            )
        else:
            unchanged.append(path)

    return {
        "backup1": {"id": before.id, "timestamp": before.timestamp, "label": before.label},
        "backup2": {"id": after.id, "timestamp": after.timestamp, "label": after.label},
        "summary": {
            "added": len(added),
            "removed": len(removed),
            "modified": len(modified),
            "unchanged": len(unchanged),
        },
        "added": added,
        "removed": removed,
        "modified": modified,
        "unchanged": unchanged if len(unchanged) <= UNCHANGED_LIST_LIMIT else f"{len(unchanged)} files unchanged",
    }


def diff_archives(store: ArchiveStore, first_id: str, second_id: str) -> Dict[str, Any]:
    return diff_manifests(_load(store, first_id), _load(store, second_id))


__all__ = ["UNCHANGED_LIST_LIMIT", "diff_archives", "diff_manifests"]
