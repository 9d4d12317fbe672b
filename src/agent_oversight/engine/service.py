"""Oversight engine -- one oversight pass per call, per delegation.

The engine is not a scheduler.  A periodic driver (see
:class:`~agent_oversight.worker.OversightWorker`) calls
:meth:`OversightEngine.check_delegation` once per active delegation per
tick and, when the returned check asks for it, passes the check to
:meth:`OversightEngine.execute_intervention`.

A check runs these steps:

1. Load the delegation; skip it unless it is ``running`` or ``monitoring``.
2. Load its task and session records.
3. Capture the session buffer and reduce it to an Observation.
4. Run the detector registry over the observation and the bounded history.
5. Decide the intervention and record the observation and check.

Nothing escapes to the caller.  Lookup misses and unexpected failures both
come back as ``None``; intervention failures come back as the unmodified
check.  Each engine owns its own state map, so independent engines (one per
test, for instance) never share state.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from agent_oversight.config import OversightConfig
from agent_oversight.detection.base import DetectorContext
from agent_oversight.detection.registry import DetectorRegistry
from agent_oversight.engine.state import OversightState, OversightStateStore
from agent_oversight.intervention.decision import decide
from agent_oversight.intervention.executor import InterventionExecutor
from agent_oversight.models.check import Check
from agent_oversight.models.records import DelegationRecord
from agent_oversight.observation.collector import ObservationCollector
from agent_oversight.session.control import SessionControl
from agent_oversight.storage.store import DelegationStore

logger = logging.getLogger(__name__)

CostProvider = Callable[[DelegationRecord], float]


def _recorded_cost(delegation: DelegationRecord) -> float:
    return delegation.cost_accumulated


class OversightEngine:
    """Monitors delegations and decides and executes interventions.

    Parameters
    ----------
    store:
        Delegation, task, and session records.
    session_control:
        Capability used to read, type into, and kill sessions.
    config:
        Default configuration; :meth:`check_delegation` accepts an override.
    registry:
        Detectors to run.  Defaults to the five built-in detectors.
    cost_provider:
        Returns the accumulated cost for a delegation.  Defaults to the
        ``cost_accumulated`` field of the delegation record.
    """

    def __init__(
        self,
        store: DelegationStore,
        session_control: SessionControl,
        config: Optional[OversightConfig] = None,
        registry: Optional[DetectorRegistry] = None,
        cost_provider: Optional[CostProvider] = None,
    ) -> None:
        self._store = store
        self._config = config if config is not None else OversightConfig()
        self._registry = registry if registry is not None else DetectorRegistry()
        self._cost_provider = cost_provider or _recorded_cost
        self._collector = ObservationCollector(session_control)
        self._executor = InterventionExecutor(
            store, session_control, cleanup=self.cleanup_delegation,
        )
        self._states = OversightStateStore()

    @property
    def config(self) -> OversightConfig:
        return self._config

    @property
    def registry(self) -> DetectorRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_delegation(
        self,
        delegation_id: str,
        config: Optional[OversightConfig] = None,
    ) -> Optional[Check]:
        """Run one oversight pass for *delegation_id*.

        Parameters
        ----------
        delegation_id:
            The delegation to check.
        config:
            Overrides the engine's configuration for this call only.

        Returns
        -------
        Check or None
            *None* when oversight is disabled, the delegation, its task or
            its session is missing, the delegation is not active, or the
            check failed.  Existing state is not touched in those cases.
        """
        config = config if config is not None else self._config
        if not config.enabled:
            return None

        with self._states.locked(delegation_id):
            try:
                return self._check(delegation_id, config)
            except Exception:
                logger.error(
                    "Oversight check failed for delegation %s.",
                    delegation_id,
                    exc_info=True,
                )
                return None

    def _check(self, delegation_id: str, config: OversightConfig) -> Optional[Check]:
        delegation = self._store.get_delegation(delegation_id)
        if delegation is None:
            logger.debug("Delegation %s not found; skipping.", delegation_id)
            return None
        if not delegation.is_active:
            logger.debug(
                "Delegation %s is %s; skipping.", delegation_id, delegation.status.value,
            )
            return None

        task = self._store.get_task(delegation.task_id)
        if task is None:
            logger.warning(
                "Task %s for delegation %s not found; skipping.",
                delegation.task_id,
                delegation_id,
            )
            return None

        session = self._store.get_session(delegation.session_id)
        if session is None:
            logger.warning(
                "Session %s for delegation %s not found; skipping.",
                delegation.session_id,
                delegation_id,
            )
            return None

        state = self._states.get_or_create(
            delegation_id,
            lambda: OversightState(
                delegation_id=delegation_id,
                task_description=task.description,
                task_type=task.type,
                start_time=delegation.created_at,
            ),
        )

        observation = self._collector.collect_from_session(
            session.session_ref,
            state.start_time,
            self._cost_provider(delegation),
        )

        result = self._registry.run(
            DetectorContext(
                observations=observation,
                history=tuple(state.observation_history),
                config=config,
                task_description=state.task_description,
                task_type=state.task_type,
            )
        )
        if result.repeat_pattern_detected:
            observation = observation.with_repeat_pattern()

        check = Check.create(delegation_id, observation).with_issues(result.issues)
        check = check.with_intervention(decide(check.issues, config))

        state.record(observation, check)

        if check.has_issues():
            logger.info(
                "Delegation %s: %s with %d issue(s), intervention %s.",
                delegation_id,
                check.status.value,
                len(check.issues),
                check.intervention.type.value,
            )
        return check

    # ------------------------------------------------------------------
    # Interventions
    # ------------------------------------------------------------------

    def execute_intervention(self, check: Check) -> Check:
        """Carry out *check*'s intervention; failures return *check* unchanged."""
        try:
            return self._executor.execute(check)
        except Exception:
            logger.error(
                "Intervention execution failed for delegation %s.",
                check.delegation_id,
                exc_info=True,
            )
            return check

    def check_and_intervene(
        self,
        delegation_id: str,
        config: Optional[OversightConfig] = None,
    ) -> Optional[Check]:
        """Check a delegation and execute the intervention it calls for."""
        check = self.check_delegation(delegation_id, config)
        if check is not None and check.requires_intervention():
            check = self.execute_intervention(check)
        return check

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def cleanup_delegation(self, delegation_id: str) -> None:
        """Release the in-memory state for *delegation_id*.  Safe at any time."""
        if self._states.remove(delegation_id):
            logger.debug("Released oversight state for delegation %s.", delegation_id)

    def get_oversight_state(self, delegation_id: str) -> Optional[OversightState]:
        """Return a snapshot of the delegation's state, or *None*."""
        state = self._states.get(delegation_id)
        return state.snapshot() if state is not None else None

    def get_active_oversights(self) -> list[str]:
        """Return the IDs of delegations that currently have state."""
        return self._states.ids()
