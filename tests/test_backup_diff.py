from datetime import datetime, timezone

import pytest

from backup.collect import content_hash
from backup.diff import diff_archives
from backup.errors import BackupDiffError
from backup.manifest import build_manifest
from backup.store import ArchiveStore
from backup.types import FileEntry

_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _write(store: ArchiveStore, backup_id: str, contents: dict) -> str:
    files = {}
    for path, value in contents.items():
        raw = value.encode("utf-8")
        files[path] = FileEntry(
            size=len(raw), modified=_NOW.isoformat(), encoding="utf8", data=value, hash=content_hash(raw)
        )
    return store.write(build_manifest(files, components=["data"], backup_id=backup_id, now=_NOW)).id


def test_diff_classifies_added_removed_unchanged(tmp_path):
    store = ArchiveStore(tmp_path)
    first = _write(store, "a", {"x": "1", "y": "2"})
    second = _write(store, "b", {"x": "1", "z": "3"})

    result = diff_archives(store, first, second)

    assert result["added"] == [{"path": "z", "size": 1}]
    assert result["removed"] == [{"path": "y", "size": 1}]
    assert result["unchanged"] == ["x"]
    assert result["modified"] == []
    assert result["summary"] == {"added": 1, "removed": 1, "modified": 0, "unchanged": 1}
    assert result["backup1"]["id"] == "a"


def test_diff_reports_modified_with_signed_delta(tmp_path):
    store = ArchiveStore(tmp_path)
    first = _write(store, "a", {"cfg": "long value"})
    second = _write(store, "b", {"cfg": "short"})

    (entry,) = diff_archives(store, first, second)["modified"]

    assert entry == {"path": "cfg", "size_before": 10, "size_after": 5, "size_delta": -5}


def test_large_unchanged_list_is_collapsed(tmp_path):
    store = ArchiveStore(tmp_path)
    contents = {f"data/{index:03d}.json": "{}" for index in range(60)}
    first = _write(store, "a", contents)
    second = _write(store, "b", contents)

    result = diff_archives(store, first, second)

    assert result["unchanged"] == "60 files unchanged"
    assert result["summary"]["unchanged"] == 60


def test_diff_names_the_missing_archive(tmp_path):
    store = ArchiveStore(tmp_path)
    first = _write(store, "a", {"x": "1"})

    with pytest.raises(BackupDiffError) as excinfo:
        diff_archives(store, first, "missing")

    assert excinfo.value.backup_id == "missing"
    assert "Backup missing" in str(excinfo.value)
