"""Tests for OversightState and the per-engine state map."""

from __future__ import annotations

import threading

from agent_oversight.engine import MAX_HISTORY, OversightState, OversightStateStore
from agent_oversight.models import Check, Observation


def record_n(state: OversightState, count: int) -> None:
    for i in range(count):
        observation = Observation(scrollback_hash=f"h{i}")
        state.record(observation, Check.create(state.delegation_id, observation))


class TestOversightState:
    def test_history_is_bounded(self) -> None:
        state = OversightState(delegation_id="d-1")
        record_n(state, MAX_HISTORY + 3)

        assert len(state.observation_history) == MAX_HISTORY
        assert state.observation_history[0].scrollback_hash == "h3"
        assert state.last_check.observations.scrollback_hash == f"h{MAX_HISTORY + 2}"

    def test_last_check_empty(self) -> None:
        assert OversightState(delegation_id="d-1").last_check is None

    def test_snapshot_is_detached(self) -> None:
        state = OversightState(delegation_id="d-1")
        record_n(state, 2)
        snapshot = state.snapshot()
        record_n(state, 1)

        assert len(snapshot.observation_history) == 2
        assert snapshot.observation_history.maxlen == MAX_HISTORY

    def test_to_dict(self) -> None:
        state = OversightState(delegation_id="d-1", task_description="Fix login")
        assert state.to_dict()["last_check"] is None
        record_n(state, 2)

        data = state.to_dict()
        assert data["observation_count"] == 2
        assert data["check_count"] == 2
        assert data["task_description"] == "Fix login"
        assert [o["scrollback_hash"] for o in data["observation_history"]] == ["h0", "h1"]


class TestOversightStateStore:
    def test_get_or_create_keeps_first(self) -> None:
        states = OversightStateStore()
        first = states.get_or_create("d-1", lambda: OversightState(delegation_id="d-1"))
        second = states.get_or_create("d-1", lambda: OversightState(delegation_id="other"))
        assert first is second
        assert "d-1" in states
        assert len(states) == 1

    def test_remove(self) -> None:
        states = OversightStateStore()
        states.get_or_create("d-1", lambda: OversightState(delegation_id="d-1"))
        assert states.remove("d-1") is True
        assert states.remove("d-1") is False
        assert states.get("d-1") is None
        assert states.ids() == []

    def test_lock_released_without_state(self) -> None:
        states = OversightStateStore()
        with states.locked("d-1"):
            assert states.lock_count() == 1
        assert states.lock_count() == 0

    def test_lock_kept_while_state_exists(self) -> None:
        states = OversightStateStore()
        with states.locked("d-1"):
            states.get_or_create("d-1", lambda: OversightState(delegation_id="d-1"))
        assert states.lock_count() == 1

        states.remove("d-1")
        assert states.lock_count() == 0

    def test_remove_while_held_drops_lock_on_exit(self) -> None:
        states = OversightStateStore()
        states.get_or_create("d-1", lambda: OversightState(delegation_id="d-1"))
        with states.locked("d-1"):
            states.remove("d-1")
            assert states.lock_count() == 1
        assert states.lock_count() == 0

    def test_same_delegation_serialises(self) -> None:
        states = OversightStateStore()
        entered = threading.Event()
        release = threading.Event()
        order: list[str] = []

        def first() -> None:
            with states.locked("d-1"):
                entered.set()
                release.wait(timeout=5)
                order.append("first")

        def second() -> None:
            with states.locked("d-1"):
                order.append("second")

        t1 = threading.Thread(target=first)
        t1.start()
        entered.wait(timeout=5)
        t2 = threading.Thread(target=second)
        t2.start()

        with states.locked("d-2"):
            order.append("other")
        release.set()
        t1.join()
        t2.join()

        assert order == ["other", "first", "second"]
        assert states.lock_count() == 0

    def test_concurrent_creation_yields_one_state(self) -> None:
        states = OversightStateStore()
        created = []

        def make() -> None:
            created.append(
                states.get_or_create("d-1", lambda: OversightState(delegation_id="d-1"))
            )

        threads = [threading.Thread(target=make) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(state) for state in created}) == 1
