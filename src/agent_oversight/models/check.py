"""Check, Issue, and Intervention models.

A Check is the aggregated result of one oversight pass over a delegation:
the Observation it was based on, the Issues the detectors reported, and the
Intervention the decision engine chose.  Checks are value objects -- every
transition (adding issues, attaching an intervention, marking it executed)
returns a new Check and leaves the original untouched.

Intervention ladder (weakest to strongest):

- none: healthy, continue normally
- warn: inject an advisory reminder into the session
- redirect: inject a corrective directive suggesting a different approach
- pause: move the delegation to ``monitoring`` and wait for a human
- terminate: kill the session and mark the delegation and task failed
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agent_oversight.models.observation import Observation


class Severity(str, Enum):
    """Severity of a detected issue."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class IssueType(str, Enum):
    """Kinds of problems the pattern detectors can report."""

    INFINITE_LOOP = "infinite_loop"
    COST_RUNAWAY = "cost_runaway"
    TIME_RUNAWAY = "time_runaway"
    ERROR_SPIRAL = "error_spiral"
    TASK_DEVIATION = "task_deviation"
    SAFETY_VIOLATION = "safety_violation"
    STALL_DETECTED = "stall_detected"


class InterventionType(str, Enum):
    """Graduated responses to detected issues."""

    NONE = "none"
    WARN = "warn"
    REDIRECT = "redirect"
    PAUSE = "pause"
    TERMINATE = "terminate"

    @property
    def rank(self) -> int:
        """Position on the escalation ladder, ``none`` is 0."""
        return _INTERVENTION_RANK[self]


_INTERVENTION_RANK = {
    InterventionType.NONE: 0,
    InterventionType.WARN: 1,
    InterventionType.REDIRECT: 2,
    InterventionType.PAUSE: 3,
    InterventionType.TERMINATE: 4,
}


class CheckStatus(str, Enum):
    """Overall health derived from a check's issues."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class Issue(BaseModel):
    """A single detected problem."""

    model_config = ConfigDict(frozen=True)

    type: IssueType
    severity: Severity
    description: str = Field(..., min_length=1)
    evidence: tuple[str, ...] = Field(
        default=(),
        description="Human-readable facts supporting the detection.",
    )
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class Intervention(BaseModel):
    """The response chosen for a check."""

    model_config = ConfigDict(frozen=True)

    type: InterventionType = InterventionType.NONE
    reason: str = ""
    action: str = Field(
        default="",
        description=(
            "Text injected into the session (warn/redirect) or a status "
            "message (pause/terminate)."
        ),
    )

    @model_validator(mode="after")
    def require_reason_for_terminate(self) -> "Intervention":
        """A terminate intervention must always say why."""
        if self.type == InterventionType.TERMINATE and not self.reason.strip():
            raise ValueError("A terminate intervention requires a non-empty reason.")
        return self

    @classmethod
    def none(cls) -> "Intervention":
        """Return the no-op intervention."""
        return cls(type=InterventionType.NONE)


class Check(BaseModel):
    """The aggregated, immutable result of one oversight pass."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    delegation_id: str = Field(..., min_length=1)
    observations: Observation
    issues: tuple[Issue, ...] = ()
    intervention: Optional[Intervention] = None
    intervention_executed: bool = False
    executed_at: Optional[datetime] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def create(cls, delegation_id: str, observations: Observation) -> "Check":
        """Create a fresh check with no issues and no intervention."""
        return cls(delegation_id=delegation_id, observations=observations)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def status(self) -> CheckStatus:
        """Derive the overall status from the most severe issue."""
        worst = self.highest_severity_issue()
        if worst is None:
            return CheckStatus.HEALTHY
        if worst.severity in (Severity.CRITICAL, Severity.HIGH):
            return CheckStatus.CRITICAL
        return CheckStatus.WARNING

    def has_issues(self) -> bool:
        return len(self.issues) > 0

    def requires_intervention(self) -> bool:
        return (
            self.intervention is not None
            and self.intervention.type != InterventionType.NONE
        )

    def highest_severity_issue(self) -> Optional[Issue]:
        """Return the most severe issue; ties go to the earliest reported."""
        worst: Optional[Issue] = None
        for issue in self.issues:
            if worst is None or issue.severity.rank > worst.severity.rank:
                worst = issue
        return worst

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def add_issue(self, issue: Issue) -> "Check":
        return self.model_copy(update={"issues": self.issues + (issue,)})

    def with_issues(self, issues: list[Issue]) -> "Check":
        return self.model_copy(update={"issues": self.issues + tuple(issues)})

    def with_observations(self, observations: Observation) -> "Check":
        return self.model_copy(update={"observations": observations})

    def with_intervention(self, intervention: Intervention) -> "Check":
        return self.model_copy(
            update={
                "intervention": intervention,
                "intervention_executed": False,
                "executed_at": None,
            }
        )

    def mark_intervention_executed(self) -> "Check":
        """Return a copy flagged as executed.

        Raises
        ------
        ValueError
            If no intervention is attached to this check.
        """
        if self.intervention is None:
            raise ValueError(
                "Cannot mark intervention as executed - no intervention set."
            )
        return self.model_copy(
            update={
                "intervention_executed": True,
                "executed_at": datetime.now(timezone.utc),
            }
        )

    def to_dict(self) -> dict:
        """Serialise to a JSON-compatible dictionary."""
        data = self.model_dump(mode="json")
        data["status"] = self.status.value
        return data
