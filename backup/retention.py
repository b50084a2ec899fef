"""Generational (daily/weekly/monthly) retention for archives."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set

from .errors import BackupError
from .logs import BackupLogger
from .store import ArchiveStore
from .types import ArchiveRecord, RetentionSummary

PROTECTED_TRIGGERS = frozenset({"pre-restore", "pre-update"})


@dataclass(slots=True)
class RetentionPolicy:
    daily: int = 7
    weekly: int = 4
    monthly: int = 3
    grace_hours: float = 48.0


def _parse_ts(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def select_archives(
    records: List[ArchiveRecord],
    policy: RetentionPolicy,
    *,
    now: Optional[datetime] = None,
    protect: Iterable[str] = (),
) -> Dict[str, Set[str]]:
    """Return the ids to keep, each mapped to the reasons it survived."""

    keep: Dict[str, Set[str]] = {}
    ordered = sorted(records, key=lambda record: record.timestamp, reverse=True)
    by_day: Dict[str, List[ArchiveRecord]] = {}
    for record in ordered:
        created = _parse_ts(record.timestamp)
        if created is None:
            keep.setdefault(record.id, set()).add("undated")
            continue
        by_day.setdefault(created.astimezone(timezone.utc).date().isoformat(), []).append(record)
    days = sorted(by_day, reverse=True)

    for day in days[: max(policy.daily, 0)]:
        keep.setdefault(by_day[day][0].id, set()).add("daily")

    # weekly and monthly bounds count cumulatively from the newest day
    week_limit = max(policy.daily, 0) + max(policy.weekly, 0)
    weeks_seen: Set[tuple] = set()
    for day in days:
        week = datetime.fromisoformat(day).date().isocalendar()[:2]
        if week in weeks_seen:
            continue
        weeks_seen.add(week)
        keep.setdefault(by_day[day][0].id, set()).add("weekly")
        if len(weeks_seen) >= week_limit:
            break

    month_limit = max(policy.monthly, 0) + 2
    months_seen: Set[str] = set()
    for day in days:
        month = day[:7]
        if month in months_seen:
            continue
        months_seen.add(month)
        keep.setdefault(by_day[day][0].id, set()).add("monthly")
        if len(months_seen) >= month_limit:
            break

    moment = now or datetime.now(timezone.utc)
    cutoff = moment - timedelta(hours=policy.grace_hours)
    for record in ordered:
        created = _parse_ts(record.timestamp)
        if created is not None and created > cutoff and record.trigger in PROTECTED_TRIGGERS:
            keep.setdefault(record.id, set()).add(record.trigger)

    for backup_id in protect:
        keep.setdefault(backup_id, set()).add("protected")
    return keep


def apply_retention(
    store: ArchiveStore,
    policy: RetentionPolicy,
    *,
    logger: BackupLogger,
    now: Optional[datetime] = None,
    protect: Iterable[str] = (),
) -> RetentionSummary:
    """Delete every archive the policy does not keep.

    Failures are logged and end the pass early; they are never raised.
    """

    summary = RetentionSummary()
    try:
        records = store.list()
        keep = select_archives(records, policy, now=now, protect=protect)
        for record in records:
            if record.id in keep:
                summary.kept.append(record.id)
                continue
            store.delete(record.id)
            summary.removed.append(record.id)
            summary.freed_bytes += record.compressed_size
            logger.warning("backup_removed", id=record.id, reason="retention")
    except (BackupError, OSError, ValueError) as exc:
        summary.error = str(exc)
        logger.error("retention_failed", error=str(exc), removed=len(summary.removed))
        return summary

    logger.event(
        event="retention_applied",
        phase="retention",
        ok=True,
        removed=len(summary.removed),
        kept=len(summary.kept),
        freed_bytes=summary.freed_bytes,
    )
    return summary


__all__ = ["PROTECTED_TRIGGERS", "RetentionPolicy", "apply_retention", "select_archives"]
