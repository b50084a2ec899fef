import threading

from backup.live_state import LiveStateSnapshotter


class PlainRelay:
    def __init__(self, workers):
        self._workers = workers

    def list_connected_workers(self):
        return list(self._workers)


class StatefulRelay(PlainRelay):
    def __init__(self, workers, states, *, hang=(), fail=()):
        super().__init__(workers)
        self._states = states
        self._hang = set(hang)
        self._fail = set(fail)
        self.release = threading.Event()

    def get_worker_state(self, worker_id):
        if worker_id in self._fail:
            raise RuntimeError("worker crashed")
        if worker_id in self._hang:
            self.release.wait(5)
        return self._states[worker_id]


class FakeSwarm:
    def __init__(self, nodes):
        self._nodes = nodes

    def list_nodes(self):
        return list(self._nodes)


class BrokenRelay:
    def list_connected_workers(self):
        raise ConnectionError("relay offline")


def test_no_collaborators_yields_none():
    snapshotter = LiveStateSnapshotter()

    assert snapshotter.available is False
    assert snapshotter.snapshot() is None


def test_objects_without_the_contract_are_treated_as_absent():
    snapshotter = LiveStateSnapshotter(relay=object(), swarm="not a swarm")

    assert snapshotter.available is False
    assert snapshotter.snapshot() is None


def test_plain_relay_records_summary_fields():
    relay = PlainRelay([{"id": "w1", "name": "alpha", "status": "online", "secret": "x"}])

    state = LiveStateSnapshotter(relay=relay).snapshot()

    assert state == {"w1": {"id": "w1", "name": "alpha", "status": "online"}}


def test_stateful_relay_skips_failed_and_slow_workers():
    relay = StatefulRelay(
        [{"id": "w1"}, {"id": "w2"}, {"id": "w3"}],
        {"w1": {"jobs": 3}, "w2": {"jobs": 1}, "w3": {"jobs": 0}},
        hang={"w2"},
        fail={"w3"},
    )

    try:
        state = LiveStateSnapshotter(relay=relay, worker_timeout_s=0.2).snapshot()
    finally:
        relay.release.set()

    assert state == {"w1": {"jobs": 3}}


def test_swarm_nodes_merge_without_overwriting_workers():
    relay = PlainRelay([{"id": "n1", "name": "relay-view", "status": "online"}])
    swarm = FakeSwarm(
        [
            {"id": "n1", "name": "swarm-view", "status": "idle", "role": "leader"},
            {"id": "n2", "name": "beta", "status": "idle", "role": "follower"},
            {"name": "anonymous"},
        ]
    )

    state = LiveStateSnapshotter(relay=relay, swarm=swarm).snapshot()

    assert state["n1"]["name"] == "relay-view"
    assert state["n2"] == {"id": "n2", "name": "beta", "status": "idle", "role": "follower"}
    assert len(state) == 2


def test_relay_failure_still_captures_swarm():
    swarm = FakeSwarm([{"id": "n1", "name": "gamma", "status": "up", "role": "worker"}])

    state = LiveStateSnapshotter(relay=BrokenRelay(), swarm=swarm).snapshot()

    assert list(state) == ["n1"]


def test_malformed_entries_are_skipped():
    relay = StatefulRelay(["w1", {"id": "w2"}, None], {"w2": {"jobs": 2}})
    swarm = FakeSwarm(["n1", 7, {"id": "n2", "name": "delta", "status": "up", "role": "worker"}])

    state = LiveStateSnapshotter(relay=relay, swarm=swarm).snapshot()

    assert state == {
        "w2": {"jobs": 2},
        "n2": {"id": "n2", "name": "delta", "status": "up", "role": "worker"},
    }


def test_plain_relay_with_only_malformed_workers_yields_none():
    assert LiveStateSnapshotter(relay=PlainRelay(["w1", 42])).snapshot() is None
