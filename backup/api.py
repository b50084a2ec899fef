"""Public API for backup operations."""
from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from core.paths import ensure_working_dir_structure, get_backups_dir, resolve_working_dir
from core.settings import load_settings

from . import events as ev
from .catalog import DEFAULT_COMPONENTS, ComponentDef, select_components
from .collect import Collector
from .diff import diff_archives
from .errors import BackupError, BackupIntegrityError, BackupNotFoundError
from .live_state import LiveStateSnapshotter, Relay, Swarm
from .logs import BackupLogger
from .manifest import build_manifest
from .restore import RestoreState, restore_archive
from .retention import RetentionPolicy, apply_retention
from .scheduler import DailyBackupScheduler
from .store import ArchiveStore
from .types import TRIGGERS, ArchiveRecord, RetentionSummary

_MB = 1024 * 1024


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < _MB:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * _MB:
        return f"{size / _MB:.1f} MB"
    return f"{size / (1024 * _MB):.2f} GB"


def _error(exc: BaseException, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": str(exc)}
    payload.update(extra)
    return payload


class BackupService:
    """Coordinate backup, restore, diff and retention workflows.

    Every public method returns either its result or an ``{"error": ...}``
    payload. Create, restore, delete and retention share one lock so only a
    single backup operation runs at a time.
    """

    def __init__(
        self,
        *,
        working_dir: Optional[Path] = None,
        settings: Optional[Dict[str, Any]] = None,
        relay: Optional[Relay] = None,
        swarm: Optional[Swarm] = None,
        catalog: Optional[Dict[str, ComponentDef]] = None,
        event_bus: Optional[ev.EventBus] = None,
    ) -> None:
        self._working_dir = Path(working_dir or resolve_working_dir())
        ensure_working_dir_structure(self._working_dir)
        self._settings = dict(settings) if settings is not None else load_settings(self._working_dir)
        backup_cfg = self._settings.get("backup")
        self._config: Dict[str, Any] = dict(backup_cfg) if isinstance(backup_cfg, dict) else {}
        self._catalog = catalog if catalog is not None else DEFAULT_COMPONENTS
        self._logger = BackupLogger(self._working_dir)
        self._store = ArchiveStore(get_backups_dir(self._working_dir))
        self._collector = Collector(
            self._working_dir,
            catalog=self._catalog,
            exclude_dir=self._store.directory,
            max_file_bytes=int(float(self._config.get("max_file_mb", 50)) * _MB),
        )
        self._snapshotter = LiveStateSnapshotter(
            relay=relay,
            swarm=swarm,
            worker_timeout_s=float(self._config.get("worker_state_timeout_s", 5)),
        )
        self._events = event_bus or ev.EventBus()
        self._warn_total_bytes = int(float(self._config.get("warn_total_mb", 500)) * _MB)
        self._lock = threading.RLock()
        self._scheduler: Optional[DailyBackupScheduler] = None
        if self._config.get("enable", True):
            self._scheduler = DailyBackupScheduler(
                self._daily_backup,
                hour=int(self._config.get("daily_hour", 3)),
                minute=int(self._config.get("daily_minute", 0)),
                tz=str(self._config.get("timezone") or "America/Chicago"),
            )

    # ------------------------------------------------------------------
    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def store(self) -> ArchiveStore:
        return self._store

    @property
    def scheduler(self) -> Optional[DailyBackupScheduler]:
        return self._scheduler

    def subscribe(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        return self._events.subscribe(event, callback)

    def retention_policy(self) -> RetentionPolicy:
        raw = self._config.get("retention")
        retention = raw if isinstance(raw, dict) else {}
        return RetentionPolicy(
            daily=int(retention.get("daily", 7) or 0),
            weekly=int(retention.get("weekly", 4) or 0),
            monthly=int(retention.get("monthly", 3) or 0),
        )

    # ------------------------------------------------------------------
    def start(self) -> None:
        self._logger.event(event="backup_service_start", phase="lifecycle", ok=True)
        if self._scheduler is not None:
            self._scheduler.start()
        self.apply_retention()

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
        self._logger.event(event="backup_service_stop", phase="lifecycle", ok=True)

    def _daily_backup(self) -> None:
        result = self.create_backup(label="daily-auto", trigger="daily")
        if "error" in result:
            raise BackupError(result["error"])

    # ------------------------------------------------------------------
    def _create(
        self,
        components: Optional[Iterable[str]],
        label: Optional[str],
        trigger: str,
        protect: Iterable[str] = (),
    ) -> ArchiveRecord:
        if trigger not in TRIGGERS:
            raise ValueError(f"unknown trigger {trigger!r}")
        started = time.monotonic()
        names = select_components(components, self._catalog)
        self._logger.event(event="backup_start", phase="create", ok=True, trigger=trigger, components=names)
        collected = self._collector.collect(names)
        live_state = None
        if any(self._catalog[name].dynamic for name in names if name in self._catalog):
            live_state = self._snapshotter.snapshot()
        manifest = build_manifest(
            collected.files,
            components=names,
            trigger=trigger,
            label=label,
            live_state=live_state,
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)
        record = self._store.write(manifest, elapsed_ms=elapsed_ms)
        self._logger.event(
            event="backup_complete",
            phase="create",
            ok=True,
            id=record.id,
            files=record.file_count,
            skipped=len(collected.skipped),
            compressed=format_size(record.compressed_size),
            elapsed_ms=elapsed_ms,
        )
        self._events.publish(ev.BACKUP_CREATED, record.to_dict())
        self._check_total_size()
        self._apply_retention(protect=(record.id, *protect))
        return record

    def create_backup(
        self,
        components: Optional[Iterable[str]] = None,
        label: Optional[str] = None,
        trigger: str = "manual",
    ) -> Dict[str, Any]:
        try:
            with self._lock:
                record = self._create(components, label, trigger)
        except (BackupError, OSError, ValueError) as exc:
            self._logger.error("backup_failed", trigger=trigger, error=str(exc))
            return _error(exc)
        payload = record.to_dict()
        payload["path"] = str(self._store.directory / record.filename)
        return payload

    def create_pre_update_backup(self) -> Dict[str, Any]:
        return self.create_backup(label="pre-update", trigger="pre-update")

    # ------------------------------------------------------------------
    def list_backups(self) -> Dict[str, Any]:
        try:
            records = self._store.list()
        except OSError as exc:
            return _error(exc, backups=[])
        total = sum(record.compressed_size for record in records)
        payload: Dict[str, Any] = {
            "backups": [record.to_dict() for record in records],
            "total_size": total,
            "total_size_formatted": format_size(total),
        }
        if total > self._warn_total_bytes:
            payload["warning"] = f"Backups exceed {format_size(self._warn_total_bytes)}"
        return payload

    # ------------------------------------------------------------------
    def restore(
        self,
        backup_id: str,
        components: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ) -> Dict[str, Any]:
        def safety_snapshot() -> str:
            # the archive being restored is still in use and survives this pass
            return self._create(None, f"pre-restore-{backup_id}", "pre-restore", protect=(backup_id,)).id

        try:
            with self._lock:
                result = restore_archive(
                    self._store,
                    backup_id,
                    working_dir=self._working_dir,
                    logger=self._logger,
                    components=components,
                    dry_run=dry_run,
                    safety_snapshot=safety_snapshot,
                )
        except BackupIntegrityError as exc:
            return _error(exc, id=backup_id, state=RestoreState.FAILED.value, expected=exc.expected, got=exc.actual)
        except (BackupError, OSError) as exc:
            return _error(exc, id=backup_id, state=RestoreState.FAILED.value)
        payload = result.to_dict()
        if not dry_run:
            self._events.publish(ev.BACKUP_RESTORED, payload)
        return payload

    def delete_backup(self, backup_id: str) -> Dict[str, Any]:
        try:
            with self._lock:
                self._store.delete(backup_id)
        except BackupNotFoundError as exc:
            return _error(exc, id=backup_id)
        except OSError as exc:
            return _error(exc, id=backup_id)
        self._logger.info("backup_deleted", id=backup_id)
        self._events.publish(ev.BACKUP_DELETED, {"id": backup_id})
        return {"deleted": True, "id": backup_id}

    def diff(self, first_id: str, second_id: str) -> Dict[str, Any]:
        try:
            return diff_archives(self._store, first_id, second_id)
        except BackupError as exc:
            return _error(exc)

    def get_raw_bytes(self, backup_id: str) -> Union[bytes, Dict[str, Any]]:
        try:
            return self._store.raw_bytes(backup_id)
        except BackupError as exc:
            return _error(exc, id=backup_id)
        except OSError as exc:
            return _error(exc, id=backup_id)

    def reindex(self) -> List[str]:
        with self._lock:
            rebuilt = self._store.reindex()
        if rebuilt:
            self._logger.info("sidecars_rebuilt", ids=rebuilt)
        return rebuilt

    # ------------------------------------------------------------------
    def apply_retention(self) -> RetentionSummary:
        with self._lock:
            return self._apply_retention()

    def _apply_retention(self, protect: Iterable[str] = ()) -> RetentionSummary:
        summary = apply_retention(
            self._store,
            self.retention_policy(),
            logger=self._logger,
            now=datetime.now(timezone.utc),
            protect=protect,
        )
        if summary.removed:
            self._events.publish(
                ev.RETENTION_PRUNED,
                {"removed": list(summary.removed), "freed_bytes": summary.freed_bytes},
            )
        return summary

    def _check_total_size(self) -> None:
        try:
            total = self._store.total_size()
        except OSError:
            return
        if total <= self._warn_total_bytes:
            return
        payload = {
            "total": total,
            "threshold": self._warn_total_bytes,
            "formatted": format_size(total),
        }
        self._logger.warning("size_warning", **payload)
        self._events.publish(ev.SIZE_WARNING, payload)


__all__ = ["BackupService", "format_size"]
