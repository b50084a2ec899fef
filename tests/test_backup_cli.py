import json

import backup_cli


def _run(capsys, *argv):
    code = backup_cli.main(list(argv))
    return code, json.loads(capsys.readouterr().out)


def test_create_list_export_roundtrip(tmp_path, capsys):
    work = tmp_path / "work"
    work.mkdir()
    (work / "config.json").write_text("{}", encoding="utf-8")
    (work / "settings.json").write_text(json.dumps({"backup": {"enable": False}}), encoding="utf-8")

    code, created = _run(capsys, "--working-dir", str(work), "create", "--label", "cli", "--component", "config")
    assert code == 0
    assert created["file_count"] == 1

    code, listing = _run(capsys, "--working-dir", str(work), "list")
    assert code == 0
    assert [item["id"] for item in listing["backups"]] == [created["id"]]

    output = tmp_path / "copy.aries-backup"
    code, exported = _run(capsys, "--working-dir", str(work), "export", created["id"], str(output))
    assert code == 0
    assert exported["bytes"] == output.stat().st_size


def test_prune_and_missing_restore_exit_codes(tmp_path, capsys):
    work = tmp_path / "work"
    work.mkdir()

    code, summary = _run(capsys, "--working-dir", str(work), "prune")
    assert code == 0
    assert summary["removed"] == []

    code, failure = _run(capsys, "--working-dir", str(work), "restore", "nope")
    assert code == 1
    assert failure["state"] == "failed"
