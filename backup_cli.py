"""Command-line front end for the Aries backup subsystem."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from backup import BackupService
from backup.types import TRIGGERS
from core.logging_utils import configure_json_logging
from core.paths import resolve_working_dir

LOGGER = logging.getLogger("aries.backup.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create, list, restore and prune Aries backups.")
    parser.add_argument("--working-dir", dest="working_dir", default=None, help="Aries root (default: $ARIES_HOME)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Also log to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a backup now")
    create.add_argument("--label", default=None)
    create.add_argument("--component", action="append", dest="components", default=None, help="Repeatable")
    create.add_argument("--trigger", default="manual", choices=list(TRIGGERS))

    sub.add_parser("list", help="List backups, newest first")

    restore = sub.add_parser("restore", help="Restore a backup")
    restore.add_argument("backup_id")
    restore.add_argument("--component", action="append", dest="components", default=None, help="Repeatable")
    restore.add_argument("--dry-run", action="store_true")

    delete = sub.add_parser("delete", help="Delete a backup")
    delete.add_argument("backup_id")

    diff = sub.add_parser("diff", help="Compare two backups")
    diff.add_argument("first_id")
    diff.add_argument("second_id")

    export = sub.add_parser("export", help="Copy the raw archive bytes to a file")
    export.add_argument("backup_id")
    export.add_argument("output", type=Path)

    sub.add_parser("prune", help="Apply the retention policy now")
    sub.add_parser("reindex", help="Rebuild missing sidecar index records")
    sub.add_parser("run", help="Run the daily scheduler until interrupted")
    return parser.parse_args(argv)


def _emit(payload: Dict[str, Any]) -> int:
    sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n")
    return 1 if "error" in payload else 0


def _run_forever(service: BackupService) -> int:
    stop = threading.Event()
    service.start()
    LOGGER.info("backup scheduler running in %s", service.working_dir)
    try:
        while not stop.wait(3600):
            pass
    except KeyboardInterrupt:
        LOGGER.info("interrupted")
    finally:
        service.stop()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    working_dir = Path(args.working_dir).expanduser().resolve() if args.working_dir else resolve_working_dir()
    configure_json_logging("aries", working_dir=working_dir, console=args.verbose or args.command == "run")
    service = BackupService(working_dir=working_dir)

    if args.command == "create":
        return _emit(service.create_backup(components=args.components, label=args.label, trigger=args.trigger))
    if args.command == "list":
        return _emit(service.list_backups())
    if args.command == "restore":
        return _emit(service.restore(args.backup_id, components=args.components, dry_run=args.dry_run))
    if args.command == "delete":
        return _emit(service.delete_backup(args.backup_id))
    if args.command == "diff":
        return _emit(service.diff(args.first_id, args.second_id))
    if args.command == "export":
        blob = service.get_raw_bytes(args.backup_id)
        if isinstance(blob, dict):
            return _emit(blob)
        try:
            args.output.write_bytes(blob)
        except OSError as exc:
            return _emit({"error": str(exc), "id": args.backup_id})
        return _emit({"id": args.backup_id, "output": str(args.output), "bytes": len(blob)})
    if args.command == "prune":
        summary = asdict(service.apply_retention())
        if summary.get("error") is None:
            summary.pop("error", None)
        return _emit(summary)
    if args.command == "reindex":
        return _emit({"rebuilt": service.reindex()})
    if args.command == "run":
        return _run_forever(service)
    return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
