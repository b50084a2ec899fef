"""Observer registration for backup lifecycle events."""
from __future__ import annotations

import logging
from collections import defaultdict
from threading import Lock
from typing import Any, Callable, DefaultDict, Dict, List

LOGGER = logging.getLogger("aries.backup.events")

BACKUP_CREATED = "backup-created"
BACKUP_RESTORED = "backup-restored"
BACKUP_DELETED = "backup-deleted"
SIZE_WARNING = "size-warning"
RETENTION_PRUNED = "retention-pruned"

Callback = Callable[[Dict[str, Any]], None]


class EventBus:
    """Synchronous publish/subscribe channel; subscriber errors never reach publishers."""

    def __init__(self) -> None:
        self._subscribers: DefaultDict[str, List[Callback]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event: str, callback: Callback) -> Callable[[], None]:
        with self._lock:
            self._subscribers[event].append(callback)
        return lambda: self.unsubscribe(event, callback)

    def unsubscribe(self, event: str, callback: Callback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(event)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event, ()))
        for callback in callbacks:
            try:
                callback(dict(payload))
            except Exception:  # noqa: BLE001 - isolate subscribers
                LOGGER.exception("subscriber for %s failed", event)


__all__ = [
    "BACKUP_CREATED",
    "BACKUP_DELETED",
    "BACKUP_RESTORED",
    "EventBus",
    "RETENTION_PRUNED",
    "SIZE_WARNING",
]
