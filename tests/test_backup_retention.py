from datetime import datetime, timezone

from backup.manifest import build_manifest
from backup.retention import RetentionPolicy, apply_retention, select_archives
from backup.store import ArchiveStore
from backup.types import ArchiveRecord


class StubLogger:
    def __init__(self) -> None:
        self.events = []

    def warning(self, event: str, **extra):  # pragma: no cover - simple recorder
        self.events.append(("warning", event, extra))

    def error(self, event: str, **extra):  # pragma: no cover - simple recorder
        self.events.append(("error", event, extra))

    def event(self, *, event: str, phase: str, ok: bool, **extra):  # pragma: no cover - simple recorder
        self.events.append(("event", event, phase, ok, extra))


def _write(store: ArchiveStore, created: datetime, *, trigger: str = "daily") -> str:
    backup_id = f"{created.strftime('%Y%m%d-%H%M%S')}-{trigger.replace('-', '')[:6]}"
    manifest = build_manifest({}, components=[], trigger=trigger, backup_id=backup_id, now=created)
    return store.write(manifest).id


def test_generational_retention_keeps_recent_days_and_period_boundaries(tmp_path):
    store = ArchiveStore(tmp_path / "backups")
    daily_ids = {}
    for day in range(1, 11):
        daily_ids[day] = _write(store, datetime(2024, 3, day, 3, 0, tzinfo=timezone.utc))
    recent_pre_update = _write(store, datetime(2024, 3, 9, 1, 0, tzinfo=timezone.utc), trigger="pre-update")
    stale_pre_update = _write(store, datetime(2024, 3, 2, 1, 0, tzinfo=timezone.utc), trigger="pre-update")

    logger = StubLogger()
    summary = apply_retention(
        store,
        RetentionPolicy(daily=7, weekly=4, monthly=3),
        logger=logger,
        now=datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc),
    )

    remaining = {record.id for record in store.list()}
    # 4..10 March are the 7 most recent days; 3 March closes ISO week 9
    expected = {daily_ids[day] for day in range(3, 11)} | {recent_pre_update}
    assert remaining == expected
    assert set(summary.removed) == {daily_ids[1], daily_ids[2], stale_pre_update}
    assert summary.error is None
    assert ("event", "retention_applied", "retention", True) == logger.events[-1][:4]


def test_monthly_tier_reaches_back_further_than_daily_and_weekly():
    def record(backup_id: str, ts: str) -> ArchiveRecord:
        return ArchiveRecord(
            id=backup_id,
            filename=f"aries-{backup_id}.aries-backup",
            timestamp=ts,
            label=None,
            trigger="daily",
            components=[],
            file_count=0,
            total_size=0,
            compressed_size=0,
            integrity="",
        )

    records = [
        record("jun", "2024-06-30T03:00:00+00:00"),
        record("may", "2024-05-31T03:00:00+00:00"),
        record("apr", "2024-04-30T03:00:00+00:00"),
        record("mar", "2024-03-31T03:00:00+00:00"),
        record("feb", "2024-02-29T03:00:00+00:00"),
        record("jan", "2024-01-31T03:00:00+00:00"),
        record("dec", "2023-12-31T03:00:00+00:00"),
    ]
    keep = select_archives(
        records,
        RetentionPolicy(daily=1, weekly=0, monthly=3),
        now=datetime(2024, 7, 1, tzinfo=timezone.utc),
    )

    assert set(keep) == {"jun", "may", "apr", "mar", "feb"}
    assert "daily" in keep["jun"]


def test_just_written_archive_is_never_pruned(tmp_path):
    store = ArchiveStore(tmp_path / "backups")
    newest = _write(store, datetime(2024, 3, 10, 3, 0, tzinfo=timezone.utc))
    summary = apply_retention(
        store,
        RetentionPolicy(daily=0, weekly=0, monthly=0),
        logger=StubLogger(),
        now=datetime(2024, 3, 10, 4, 0, tzinfo=timezone.utc),
        protect=[newest],
    )
    assert newest in summary.kept


def test_retention_errors_are_logged_not_raised(tmp_path, monkeypatch):
    store = ArchiveStore(tmp_path / "backups")
    for day in range(1, 4):
        _write(store, datetime(2024, 1, day, 3, 0, tzinfo=timezone.utc))

    def boom(backup_id):
        raise OSError("disk on fire")

    monkeypatch.setattr(store, "delete", boom)
    logger = StubLogger()
    summary = apply_retention(
        store,
        RetentionPolicy(daily=1, weekly=0, monthly=-2),
        logger=logger,
        now=datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc),
    )

    assert summary.error == "disk on fire"
    assert summary.removed == []
    assert logger.events[-1][0:2] == ("error", "retention_failed")
