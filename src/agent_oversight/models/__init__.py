"""Pydantic data models for observations, checks, interventions, and store records."""

from agent_oversight.models.check import (
    Check,
    CheckStatus,
    Intervention,
    InterventionType,
    Issue,
    IssueType,
    Severity,
)
from agent_oversight.models.observation import MAX_COMMAND_HISTORY, Observation
from agent_oversight.models.records import (
    ACTIVE_STATUSES,
    DelegationRecord,
    DelegationStatus,
    ErrorPayload,
    SessionRecord,
    TaskRecord,
    TaskStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "Check",
    "CheckStatus",
    "DelegationRecord",
    "DelegationStatus",
    "ErrorPayload",
    "Intervention",
    "InterventionType",
    "Issue",
    "IssueType",
    "MAX_COMMAND_HISTORY",
    "Observation",
    "SessionRecord",
    "Severity",
    "TaskRecord",
    "TaskStatus",
]
