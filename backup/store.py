"""Persist, enumerate and delete archives plus their sidecar index records."""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import List

from . import codec
from .errors import BackupDecodeError, BackupNotFoundError
from .types import ArchiveRecord, Manifest

LOGGER = logging.getLogger("aries.backup.store")

BACKUP_EXT = ".aries-backup"
SIDECAR_EXT = ".meta.json"
_PREFIX = "aries-"
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def _atomic_write(target: Path, data: bytes) -> None:
    tmp = target.with_name(target.name + ".tmp")
    try:
        with open(tmp, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, target)
    except OSError:
        try:
            if tmp.exists():
                tmp.unlink()
        except OSError:
            pass
        raise


def record_for(manifest: Manifest, *, filename: str, compressed_size: int, elapsed_ms: int = 0) -> ArchiveRecord:
    return ArchiveRecord(
        id=manifest.id,
        filename=filename,
        timestamp=manifest.timestamp,
        label=manifest.label,
        trigger=manifest.trigger,
        components=list(manifest.components),
        file_count=manifest.stats.file_count,
        total_size=manifest.stats.total_size,
        compressed_size=compressed_size,
        integrity=manifest.integrity,
        elapsed_ms=int(elapsed_ms),
    )


class ArchiveStore:
    """Archive directory made only of whole-file creates and deletes."""

    def __init__(self, backups_dir: Path) -> None:
        self._dir = Path(backups_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    # ------------------------------------------------------------------
    def archive_name(self, backup_id: str) -> str:
        return f"{_PREFIX}{backup_id}{BACKUP_EXT}"

    def archive_path(self, backup_id: str) -> Path:
        if not _SAFE_ID.match(backup_id or ""):
            raise BackupNotFoundError(backup_id)
        return self._dir / self.archive_name(backup_id)

    def sidecar_path(self, backup_id: str) -> Path:
        if not _SAFE_ID.match(backup_id or ""):
            raise BackupNotFoundError(backup_id)
        return self._dir / f"{_PREFIX}{backup_id}{SIDECAR_EXT}"

    def exists(self, backup_id: str) -> bool:
        try:
            return self.archive_path(backup_id).is_file()
        except BackupNotFoundError:
            return False

    # ------------------------------------------------------------------
    def write(self, manifest: Manifest, *, elapsed_ms: int = 0) -> ArchiveRecord:
        blob = codec.encode(manifest)
        archive = self.archive_path(manifest.id)
        _atomic_write(archive, blob)
        record = record_for(
            manifest,
            filename=archive.name,
            compressed_size=len(blob),
            elapsed_ms=elapsed_ms,
        )
        try:
            self._write_sidecar(record)
        except OSError as exc:
            # the archive alone is restorable; reindex() can rebuild the sidecar
            LOGGER.warning("sidecar write failed for %s: %s", manifest.id, exc)
        return record

    def _write_sidecar(self, record: ArchiveRecord) -> None:
        payload = json.dumps(record.to_dict(), indent=2, sort_keys=True)
        _atomic_write(self.sidecar_path(record.id), payload.encode("utf-8"))

    def list(self) -> List[ArchiveRecord]:
        records: List[ArchiveRecord] = []
        if not self._dir.exists():
            return records
        for sidecar in self._dir.glob(f"{_PREFIX}*{SIDECAR_EXT}"):
            try:
                with sidecar.open("r", encoding="utf-8") as handle:
                    record = ArchiveRecord.from_dict(json.load(handle))
            except (OSError, ValueError, KeyError, TypeError):
                LOGGER.debug("skipping unreadable sidecar %s", sidecar.name)
                continue
            archive = self._dir / record.filename
            try:
                record.compressed_size = archive.stat().st_size
            except OSError:
                continue
            records.append(record)
        records.sort(key=lambda item: item.timestamp, reverse=True)
        return records

    def delete(self, backup_id: str) -> None:
        archive = self.archive_path(backup_id)
        try:
            archive.unlink()
        except FileNotFoundError as exc:
            raise BackupNotFoundError(backup_id) from exc
        self.sidecar_path(backup_id).unlink(missing_ok=True)

    def read(self, backup_id: str) -> Manifest:
        return codec.decode(self.raw_bytes(backup_id))

    def raw_bytes(self, backup_id: str) -> bytes:
        archive = self.archive_path(backup_id)
        try:
            return archive.read_bytes()
        except FileNotFoundError as exc:
            raise BackupNotFoundError(backup_id) from exc
        except OSError as exc:
            raise BackupDecodeError(f"archive unreadable/corrupt: {exc}") from exc

    def total_size(self) -> int:
        return sum(record.compressed_size for record in self.list())

    # ------------------------------------------------------------------
    def reindex(self) -> List[str]:
        """Rebuild sidecars for archives that have none; return the rebuilt ids."""

        rebuilt: List[str] = []
        for archive in sorted(self._dir.glob(f"{_PREFIX}*{BACKUP_EXT}")):
            backup_id = archive.name[len(_PREFIX) : -len(BACKUP_EXT)]
            if not _SAFE_ID.match(backup_id) or self.sidecar_path(backup_id).exists():
                continue
            try:
                blob = archive.read_bytes()
                manifest = codec.decode(blob)
            except (OSError, BackupDecodeError) as exc:
                LOGGER.warning("cannot reindex %s: %s", archive.name, exc)
                continue
            self._write_sidecar(record_for(manifest, filename=archive.name, compressed_size=len(blob)))
            rebuilt.append(backup_id)
        return rebuilt


__all__ = ["ArchiveStore", "BACKUP_EXT", "SIDECAR_EXT", "record_for"]
