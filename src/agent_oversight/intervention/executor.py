"""Intervention executor -- carries out the side effects of a decision.

Each intervention type touches a different collaborator:

- warn / redirect: type an ``echo`` of the message into the live session
- pause: move the delegation to ``monitoring`` in the store
- terminate: kill the session, fail the delegation and its task with a
  non-recoverable error, then release the in-memory oversight state

Execution never raises to the caller.  A failed side effect is logged and
the check comes back unmodified (``intervention_executed`` stays False), so
the driver loop can carry on with the next delegation.
"""

from __future__ import annotations

import logging
import shlex
from datetime import datetime, timezone
from typing import Callable, Optional

from agent_oversight.models.check import Check, Intervention, InterventionType
from agent_oversight.models.records import (
    DelegationRecord,
    DelegationStatus,
    ErrorPayload,
    TaskStatus,
)
from agent_oversight.session.control import SessionControl, SessionNotFoundError
from agent_oversight.storage.store import DelegationStore

logger = logging.getLogger(__name__)

# Error code stored on delegations and tasks failed by a terminate intervention.
TERMINATION_ERROR_CODE = "OVERSIGHT_TERMINATED"

REDIRECT_PREFIX = "REDIRECT: "


class InterventionError(Exception):
    """Raised internally when an intervention cannot be carried out."""


class InterventionExecutor:
    """Performs intervention side effects against the store and session.

    Parameters
    ----------
    store:
        Delegation/task/session records.
    session_control:
        Capability used to type into and kill sessions.
    cleanup:
        Called with the delegation ID after a successful terminate.
    """

    def __init__(
        self,
        store: DelegationStore,
        session_control: SessionControl,
        cleanup: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._session_control = session_control
        self._cleanup = cleanup

    def execute(self, check: Check) -> Check:
        """Execute *check*'s intervention and return the updated check.

        A check without an intervention, with ``none``, or already executed
        is returned as-is.
        """
        intervention = check.intervention
        if intervention is None or intervention.type == InterventionType.NONE:
            return check
        if check.intervention_executed:
            logger.debug("Intervention for check %s already executed.", check.id)
            return check

        try:
            if intervention.type == InterventionType.WARN:
                self._inject(check.delegation_id, intervention.action)
            elif intervention.type == InterventionType.REDIRECT:
                self._inject(check.delegation_id, REDIRECT_PREFIX + intervention.action)
            elif intervention.type == InterventionType.PAUSE:
                self._pause(check.delegation_id)
            elif intervention.type == InterventionType.TERMINATE:
                self._terminate(check.delegation_id, intervention)
        except Exception:
            logger.error(
                "Failed to execute %s intervention for delegation %s.",
                intervention.type.value,
                check.delegation_id,
                exc_info=True,
            )
            return check

        logger.info(
            "Executed %s intervention for delegation %s: %s",
            intervention.type.value,
            check.delegation_id,
            intervention.reason,
        )
        return check.mark_intervention_executed()

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _inject(self, delegation_id: str, message: str) -> None:
        session_ref = self._session_ref(self._delegation(delegation_id))
        if session_ref is None:
            raise InterventionError(
                f"No session to inject into for delegation {delegation_id}"
            )
        self._session_control.send_keys(
            session_ref, f"echo {shlex.quote(message)}", literal=True,
        )
        self._session_control.send_keys(session_ref, "Enter", literal=False)

    def _pause(self, delegation_id: str) -> None:
        self._delegation(delegation_id)
        self._store.update_delegation_status(delegation_id, DelegationStatus.MONITORING)

    def _terminate(self, delegation_id: str, intervention: Intervention) -> None:
        delegation = self._delegation(delegation_id)

        session_ref = self._session_ref(delegation)
        if session_ref is None:
            logger.info(
                "Delegation %s has no session record; nothing to kill.", delegation_id,
            )
        else:
            try:
                self._session_control.kill_session(session_ref)
            except SessionNotFoundError:
                logger.debug("Session %s was already gone.", session_ref)

        error = ErrorPayload(
            code=TERMINATION_ERROR_CODE,
            message=intervention.reason,
            exit_code=None,
            recoverable=False,
        )
        completed_at = datetime.now(timezone.utc)
        self._store.update_delegation_status(
            delegation_id, DelegationStatus.FAILED, error=error, completed_at=completed_at,
        )
        self._store.update_task_status(
            delegation.task_id, TaskStatus.FAILED, error=error, completed_at=completed_at,
        )

        if self._cleanup is not None:
            self._cleanup(delegation_id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _delegation(self, delegation_id: str) -> DelegationRecord:
        delegation = self._store.get_delegation(delegation_id)
        if delegation is None:
            raise InterventionError(f"Delegation not found: {delegation_id}")
        return delegation

    def _session_ref(self, delegation: DelegationRecord) -> Optional[str]:
        session = self._store.get_session(delegation.session_id)
        return session.session_ref if session is not None else None
