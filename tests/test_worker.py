"""Tests for the OversightWorker cycle and background thread."""

from __future__ import annotations

import time

from agent_oversight.engine import OversightEngine
from agent_oversight.models import DelegationStatus
from agent_oversight.worker import CycleReport, OversightWorker


class TestRunCycle:
    def test_checks_active_delegations(self, engine, store, seed, session) -> None:
        seed("d-1", started_minutes_ago=2)
        seed("d-2", cost=11.0, started_minutes_ago=1)
        seed("d-3", status=DelegationStatus.COMPLETED)

        report = OversightWorker(engine, store).run_cycle()

        assert sorted(report.checked) == ["d-1", "d-2"]
        assert report.interventions == {"d-2": "pause"}
        assert report.failed == []
        assert store.get_delegation("d-2").status == DelegationStatus.MONITORING
        assert "agent-d-3" not in session.captures

    def test_respects_max_concurrent(self, store, session, seed, config) -> None:
        for i in range(5):
            seed(f"d-{i}", started_minutes_ago=10 - i)
        limited = config.with_overrides(max_concurrent=2)
        engine = OversightEngine(store, session, config=limited)

        report = OversightWorker(engine, store).run_cycle()

        assert sorted(report.checked) == ["d-0", "d-1"]
        assert sorted(session.captures) == ["agent-d-0", "agent-d-1"]

    def test_releases_state_of_finished_delegations(self, engine, store, seed) -> None:
        seed("d-1")
        worker = OversightWorker(engine, store)
        worker.run_cycle()
        assert engine.get_active_oversights() == ["d-1"]

        store.update_delegation_status("d-1", DelegationStatus.COMPLETED)
        report = worker.run_cycle()

        assert report.cleaned_up == ["d-1"]
        assert report.checked == []
        assert engine.get_active_oversights() == []

    def test_terminated_delegation_is_not_rechecked(self, engine, store, seed, session) -> None:
        seed("d-1")
        session.set_buffer("agent-d-1", "$ mkfs.ext4 /dev/sda1")
        worker = OversightWorker(engine, store)

        first = worker.run_cycle()
        second = worker.run_cycle()

        assert first.interventions == {"d-1": "terminate"}
        assert second.checked == []
        assert session.killed == ["agent-d-1"]

    def test_disabled(self, engine, store, seed, config) -> None:
        seed("d-1")
        worker = OversightWorker(engine, store, config=config.with_overrides(enabled=False))
        report = worker.run_cycle()
        assert report.to_dict() == CycleReport().to_dict()

    def test_report_to_dict(self) -> None:
        report = CycleReport(checked=["a"], interventions={"a": "warn"})
        assert report.to_dict() == {
            "checked": ["a"],
            "interventions": {"a": "warn"},
            "failed": [],
            "cleaned_up": [],
        }


class TestLifecycle:
    def test_start_and_stop(self, store, session, seed, config) -> None:
        seed("d-1")
        engine = OversightEngine(store, session, config=config)
        worker = OversightWorker(engine, store, config=config.with_overrides(check_interval_seconds=1))

        worker.start()
        try:
            assert worker.is_running() is True
            deadline = time.monotonic() + 5
            while not session.captures and time.monotonic() < deadline:
                time.sleep(0.05)
        finally:
            worker.stop(timeout=5)

        assert session.captures
        assert worker.is_running() is False

    def test_second_start_is_ignored(self, engine, store) -> None:
        worker = OversightWorker(engine, store)
        worker.start()
        try:
            worker.start()
            assert worker.is_running() is True
        finally:
            worker.stop(timeout=5)

    def test_stop_without_start(self, engine, store) -> None:
        worker = OversightWorker(engine, store)
        worker.stop()
        assert worker.is_running() is False
