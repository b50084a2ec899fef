"""Backup, snapshot and restore subsystem for Aries."""
from __future__ import annotations

from .api import BackupService
from .errors import (
    BackupDecodeError,
    BackupError,
    BackupIntegrityError,
    BackupNotFoundError,
)
from .events import EventBus
from .retention import RetentionPolicy
from .types import ArchiveRecord, FileEntry, Manifest, RetentionSummary

__all__ = [
    "ArchiveRecord",
    "BackupDecodeError",
    "BackupError",
    "BackupIntegrityError",
    "BackupNotFoundError",
    "BackupService",
    "EventBus",
    "FileEntry",
    "Manifest",
    "RetentionPolicy",
    "RetentionSummary",
]
