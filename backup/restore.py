"""Restore archives with integrity verification and per-file reporting."""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .catalog import classify_path
from .collect import decode_content
from .errors import BackupError, BackupIntegrityError
from .logs import BackupLogger
from .manifest import verify_manifest
from .store import ArchiveStore
from .types import FileEntry

LIVE_STATE_ARTIFACT = "data/worker-states-restored.json"


class RestoreState(str, enum.Enum):
    REQUESTED = "requested"
    LOADED = "loaded"
    VERIFIED = "verified"
    SAFETY_SNAPSHOTTED = "safety_snapshotted"
    RESTORING = "restoring"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


@dataclass(slots=True)
class PartialFileError:
    file: str
    error: str


@dataclass(slots=True)
class RestorePlanItem:
    path: str
    entry: FileEntry
    component: str


@dataclass(slots=True)
class RestoreResult:
    id: str
    timestamp: str
    state: RestoreState = RestoreState.REQUESTED
    dry_run: bool = False
    planned: List[RestorePlanItem] = field(default_factory=list)
    files_restored: int = 0
    errors: List[PartialFileError] = field(default_factory=list)
    safety_backup: Optional[str] = None
    live_state_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.dry_run:
            return {
                "dry_run": True,
                "id": self.id,
                "timestamp": self.timestamp,
                "state": self.state.value,
                "file_count": len(self.planned),
                "files": [
                    {"path": item.path, "size": item.entry.size, "component": item.component}
                    for item in self.planned
                ],
            }
        payload: Dict[str, Any] = {
            "restored": True,
            "id": self.id,
            "timestamp": self.timestamp,
            "state": self.state.value,
            "files_restored": self.files_restored,
            "safety_backup": self.safety_backup,
        }
        if self.errors:
            payload["errors"] = [{"file": item.file, "error": item.error} for item in self.errors]
        if self.live_state_path:
            payload["live_state_path"] = self.live_state_path
        return payload


def _resolve_target(working_dir: Path, rel_path: str) -> Path:
    root = working_dir.resolve()
    target = (root / rel_path).resolve()
    if not target.is_relative_to(root):
        raise PermissionError(f"refusing to write outside the working directory: {rel_path}")
    return target


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as handle:
        handle.write(data)


def plan_restore(files: Dict[str, FileEntry], requested: Iterable[str]) -> List[RestorePlanItem]:
    wanted = set(requested)
    plan: List[RestorePlanItem] = []
    for path in sorted(files):
        component = classify_path(path)
        if "all" in wanted or component in wanted:
            plan.append(RestorePlanItem(path=path, entry=files[path], component=component))
    return plan


def restore_archive(
    store: ArchiveStore,
    backup_id: str,
    *,
    working_dir: Path,
    logger: BackupLogger,
    components: Optional[Iterable[str]] = None,
    dry_run: bool = False,
    safety_snapshot: Optional[Callable[[], Optional[str]]] = None,
) -> RestoreResult:
    """Restore *backup_id* into *working_dir*.

    Raises ``BackupNotFoundError``/``BackupDecodeError`` when the archive
    cannot be loaded and ``BackupIntegrityError`` when its digest does not
    match; nothing is written in those cases. Past verification every file
    is attempted independently and failures are collected on the result.
    """

    logger.info("restore_requested", id=backup_id, dry_run=dry_run)
    try:
        manifest = store.read(backup_id)
    except BackupError as exc:
        logger.error("restore_failed", id=backup_id, state=RestoreState.FAILED.value, error=str(exc))
        raise
    result = RestoreResult(id=manifest.id, timestamp=manifest.timestamp, state=RestoreState.LOADED, dry_run=dry_run)

    computed = verify_manifest(manifest)
    if computed != manifest.integrity:
        result.state = RestoreState.FAILED
        logger.error("restore_failed", id=backup_id, state=result.state.value, error="integrity_mismatch")
        raise BackupIntegrityError(manifest.integrity, computed)
    result.state = RestoreState.VERIFIED

    requested = list(components) if components else list(manifest.components)
    result.planned = plan_restore(manifest.files, requested)
    if dry_run:
        return result

    if safety_snapshot is not None:
        try:
            result.safety_backup = safety_snapshot()
            result.state = RestoreState.SAFETY_SNAPSHOTTED
        except Exception as exc:  # noqa: BLE001 - restore proceeds without a safety snapshot
            logger.warning("restore_safety_snapshot_failed", id=backup_id, error=str(exc))

    result.state = RestoreState.RESTORING
    for item in result.planned:
        try:
            target = _resolve_target(working_dir, item.path)
            _write_file(target, decode_content(item.entry))
        except (OSError, ValueError) as exc:
            result.errors.append(PartialFileError(file=item.path, error=str(exc)))
            logger.warning("restore_file_failed", id=backup_id, path=item.path, error=str(exc))
            continue
        result.files_restored += 1

    if manifest.live_state and ("all" in requested or "workers" in requested):
        # informational only; live workers re-attach through their own reconnection
        try:
            target = _resolve_target(working_dir, LIVE_STATE_ARTIFACT)
            _write_file(target, json.dumps(manifest.live_state, indent=2, sort_keys=True).encode("utf-8"))
            result.live_state_path = str(target)
        except OSError as exc:
            logger.warning("restore_live_state_failed", id=backup_id, error=str(exc))

    result.state = RestoreState.PARTIALLY_FAILED if result.errors else RestoreState.COMPLETED
    logger.event(
        event="backup_restored",
        phase="restore",
        ok=not result.errors,
        id=backup_id,
        state=result.state.value,
        files_restored=result.files_restored,
        errors=len(result.errors),
    )
    return result


__all__ = [
    "LIVE_STATE_ARTIFACT",
    "PartialFileError",
    "RestorePlanItem",
    "RestoreResult",
    "RestoreState",
    "plan_restore",
    "restore_archive",
]
