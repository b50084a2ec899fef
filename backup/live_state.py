"""Best-effort capture of live worker and swarm state."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

LOGGER = logging.getLogger("aries.backup.live_state")


@runtime_checkable
class Relay(Protocol):
    """Worker relay exposing connected workers."""

    def list_connected_workers(self) -> List[Dict[str, Any]]: ...


@runtime_checkable
class StatefulRelay(Relay, Protocol):
    """Relay that can also report full per-worker state."""

    def get_worker_state(self, worker_id: str) -> Dict[str, Any]: ...


@runtime_checkable
class Swarm(Protocol):
    def list_nodes(self) -> List[Dict[str, Any]]: ...


def _worker_key(worker: Any) -> Optional[str]:
    if not isinstance(worker, Mapping):
        LOGGER.warning("ignoring malformed worker entry %r", worker)
        return None
    key = worker.get("id") or worker.get("name")
    return str(key) if key else None


class LiveStateSnapshotter:
    """Fold relay and swarm state into one mapping of id to opaque state.

    Collaborator capabilities are resolved once here; a collaborator that does
    not implement its protocol is treated as absent.
    """

    def __init__(
        self,
        *,
        relay: Optional[Relay] = None,
        swarm: Optional[Swarm] = None,
        worker_timeout_s: float = 5.0,
    ) -> None:
        self._relay = relay if isinstance(relay, Relay) else None
        self._relay_has_state = isinstance(relay, StatefulRelay)
        self._swarm = swarm if isinstance(swarm, Swarm) else None
        self._worker_timeout_s = float(worker_timeout_s)
        if relay is not None and self._relay is None:
            LOGGER.warning("relay %r does not implement list_connected_workers; ignoring", relay)
        if swarm is not None and self._swarm is None:
            LOGGER.warning("swarm %r does not implement list_nodes; ignoring", swarm)

    @property
    def available(self) -> bool:
        return self._relay is not None or self._swarm is not None

    # ------------------------------------------------------------------
    def snapshot(self) -> Optional[Dict[str, Any]]:
        """Return the captured state, or ``None`` when nothing was obtainable."""

        states: Dict[str, Any] = {}
        if self._relay is not None:
            self._collect_relay(states)
        if self._swarm is not None:
            self._collect_swarm(states)
        return states or None

    def _collect_relay(self, states: Dict[str, Any]) -> None:
        try:
            workers = list(self._relay.list_connected_workers() or [])
        except Exception as exc:  # noqa: BLE001 - collaborator failures are tolerated
            LOGGER.warning("relay unavailable: %s", exc)
            return
        if not self._relay_has_state:
            for worker in workers:
                key = _worker_key(worker)
                if key:
                    states[key] = {"id": worker.get("id"), "name": worker.get("name"), "status": worker.get("status")}
            return
        # shutdown(wait=False) so a hung worker cannot stall the snapshot
        pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="live-state")
        try:
            futures = []
            for worker in workers:
                key = _worker_key(worker)
                if key:
                    futures.append((key, pool.submit(self._relay.get_worker_state, key)))
            for key, future in futures:
                try:
                    states[key] = future.result(timeout=self._worker_timeout_s)
                except FutureTimeout:
                    LOGGER.warning("worker %s state timed out after %.1fs", key, self._worker_timeout_s)
                except Exception as exc:  # noqa: BLE001 - skip this worker only
                    LOGGER.warning("worker %s state failed: %s", key, exc)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _collect_swarm(self, states: Dict[str, Any]) -> None:
        try:
            nodes = list(self._swarm.list_nodes() or [])
        except Exception as exc:  # noqa: BLE001 - collaborator failures are tolerated
            LOGGER.warning("swarm unavailable: %s", exc)
            return
        for node in nodes:
            if not isinstance(node, Mapping):
                LOGGER.warning("ignoring malformed swarm node %r", node)
                continue
            key = node.get("id")
            if not key or str(key) in states:
                continue
            states[str(key)] = {
                "id": node.get("id"),
                "name": node.get("name"),
                "status": node.get("status"),
                "role": node.get("role"),
            }


__all__ = ["LiveStateSnapshotter", "Relay", "StatefulRelay", "Swarm"]
