"""Error hierarchy for backup operations."""
from __future__ import annotations


class BackupError(RuntimeError):
    """Base exception for backup related failures."""


class BackupNotFoundError(BackupError):
    """Raised when an archive id does not map to an archive file."""

    def __init__(self, backup_id: str) -> None:
        super().__init__("Backup not found")
        self.backup_id = backup_id


class BackupDecodeError(BackupError):
    """Raised when an archive is unreadable, truncated or corrupt."""


class BackupIntegrityError(BackupError):
    """Raised when the recomputed digest does not match the sealed digest."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__("Integrity check failed: backup may be corrupted")
        self.expected = expected
        self.actual = actual


class BackupDiffError(BackupError):
    """Raised when one side of a diff cannot be loaded."""

    def __init__(self, backup_id: str, cause: BackupError) -> None:
        super().__init__(f"Backup {backup_id}: {cause}")
        self.backup_id = backup_id
        self.cause = cause


__all__ = [
    "BackupDecodeError",
    "BackupDiffError",
    "BackupError",
    "BackupIntegrityError",
    "BackupNotFoundError",
]
