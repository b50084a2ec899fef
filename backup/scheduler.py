"""Daily wall-clock backup timer."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

LOGGER = logging.getLogger("aries.backup.scheduler")

MIN_DELAY_S = 60.0


def seconds_until_next_run(now: datetime, *, hour: int, minute: int = 0, tz: ZoneInfo) -> float:
    """Seconds from *now* until the next ``hour:minute`` wall-clock time in *tz*."""

    local = now.astimezone(tz)
    target = local.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= local:
        target = target + timedelta(days=1)
    # same-tzinfo subtraction ignores DST offsets, so compare in UTC
    delay = (target.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()
    return max(delay, MIN_DELAY_S)


class DailyBackupScheduler:
    """Run *callback* once a day at a fixed local time until stopped."""

    def __init__(
        self,
        callback: Callable[[], object],
        *,
        hour: int = 3,
        minute: int = 0,
        tz: str = "America/Chicago",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._callback = callback
        self._hour = int(hour)
        self._minute = int(minute)
        self._tz = ZoneInfo(tz)
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._next_run: Optional[datetime] = None

    @property
    def running(self) -> bool:
        thread = self._thread
        return bool(thread and thread.is_alive())

    @property
    def next_run(self) -> Optional[datetime]:
        return self._next_run

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run_loop, name="backup-daily", daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        with self._lock:
            thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        with self._lock:
            self._thread = None
            self._next_run = None

    # ------------------------------------------------------------------
    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            now = self._clock()
            delay = seconds_until_next_run(now, hour=self._hour, minute=self._minute, tz=self._tz)
            self._next_run = now + timedelta(seconds=delay)
            LOGGER.info("next daily backup in %.1fh", delay / 3600.0)
            if self._stop_event.wait(delay):
                break
            try:
                self._callback()
            except Exception:  # noqa: BLE001 - keep the timer armed
                LOGGER.exception("daily backup failed")


__all__ = ["DailyBackupScheduler", "MIN_DELAY_S", "seconds_until_next_run"]
