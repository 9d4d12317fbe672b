"""Periodic driver that runs oversight over every active delegation.

Each cycle:

1. Lists active (``running`` or ``monitoring``) delegations, at most
   ``max_concurrent * 2`` of them.
2. Checks the first ``max_concurrent`` concurrently on a thread pool and
   executes the interventions the checks call for.
3. Releases engine state for delegations that are no longer active.

A failure for one delegation is logged and counted; it never stops the
cycle or the worker.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from agent_oversight.config import OversightConfig
from agent_oversight.engine.service import OversightEngine
from agent_oversight.models.records import ACTIVE_STATUSES
from agent_oversight.storage.store import DelegationStore

logger = logging.getLogger(__name__)

# Seconds ``stop`` waits for the background thread by default.
DEFAULT_STOP_TIMEOUT = 30.0


@dataclass
class CycleReport:
    """Summary of one worker cycle."""

    checked: list[str] = field(default_factory=list)
    interventions: dict[str, str] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    cleaned_up: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "checked": list(self.checked),
            "interventions": dict(self.interventions),
            "failed": list(self.failed),
            "cleaned_up": list(self.cleaned_up),
        }


class OversightWorker:
    """Runs :meth:`run_cycle` on a background thread every check interval.

    Parameters
    ----------
    engine:
        The engine that performs checks and interventions.
    store:
        Used to find active delegations.
    config:
        Supplies ``check_interval_seconds`` and ``max_concurrent``.  Defaults
        to the engine's configuration.
    """

    def __init__(
        self,
        engine: OversightEngine,
        store: DelegationStore,
        config: Optional[OversightConfig] = None,
    ) -> None:
        self._engine = engine
        self._store = store
        self._config = config if config is not None else engine.config
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        """Run one oversight pass over the active delegations."""
        report = CycleReport()
        if not self._config.enabled:
            logger.debug("Oversight disabled; skipping cycle.")
            return report

        with self._cycle_lock:
            max_concurrent = self._config.max_concurrent
            active = self._store.list_delegations(
                statuses=ACTIVE_STATUSES, limit=max_concurrent * 2,
            )
            to_process = [d.id for d in active[:max_concurrent]]

            if to_process:
                with ThreadPoolExecutor(
                    max_workers=max_concurrent,
                    thread_name_prefix="oversight-check",
                ) as pool:
                    futures = {
                        delegation_id: pool.submit(
                            self._engine.check_and_intervene,
                            delegation_id,
                            self._config,
                        )
                        for delegation_id in to_process
                    }
                    for delegation_id, future in futures.items():
                        try:
                            check = future.result()
                        except Exception:
                            logger.error(
                                "Error overseeing delegation %s.",
                                delegation_id,
                                exc_info=True,
                            )
                            report.failed.append(delegation_id)
                            continue
                        if check is None:
                            continue
                        report.checked.append(delegation_id)
                        if check.intervention_executed:
                            report.interventions[delegation_id] = (
                                check.intervention.type.value
                            )

            active_ids = {d.id for d in active}
            for delegation_id in self._engine.get_active_oversights():
                if delegation_id not in active_ids:
                    self._engine.cleanup_delegation(delegation_id)
                    report.cleaned_up.append(delegation_id)

        if report.checked or report.failed:
            logger.info(
                "Oversight cycle: %d checked, %d intervention(s), %d failed.",
                len(report.checked),
                len(report.interventions),
                len(report.failed),
            )
        return report

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background thread.  A second call while running is ignored."""
        if self.is_running():
            logger.warning("Oversight worker already running.")
            return

        logger.info(
            "Starting oversight worker: interval %ss, max concurrent %d.",
            self._config.check_interval_seconds,
            self._config.max_concurrent,
        )
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="oversight-worker", daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Signal the thread to stop and wait up to *timeout* seconds."""
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Oversight worker did not stop within %ss.", timeout)
        else:
            self._thread = None
            logger.info("Oversight worker stopped.")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_cycle()
            except Exception:
                logger.error("Oversight cycle failed.", exc_info=True)
            self._stop_event.wait(self._config.check_interval_seconds)
