"""Persistent records read and updated through the delegation store.

These mirror the host system's delegation, task, and terminal session rows.
The oversight engine only reads them and updates statuses; it never creates
delegations or sessions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DelegationStatus(str, Enum):
    """Lifecycle status of a delegation."""

    PENDING = "pending"
    RUNNING = "running"
    MONITORING = "monitoring"
    COMPLETED = "completed"
    FAILED = "failed"


# Only delegations in these statuses are eligible for oversight checks.
ACTIVE_STATUSES = frozenset({DelegationStatus.RUNNING, DelegationStatus.MONITORING})


class TaskStatus(str, Enum):
    """Lifecycle status of the task a delegation works on."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorPayload(BaseModel):
    """Structured error stored on failed delegations and tasks."""

    code: str = Field(..., min_length=1)
    message: str = ""
    exit_code: Optional[int] = None
    recoverable: bool = True


class DelegationRecord(BaseModel):
    """One assignment of a task to an agent running in a terminal session."""

    id: str = Field(..., min_length=1)
    task_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    status: DelegationStatus = DelegationStatus.RUNNING
    agent_provider: str = ""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    cost_accumulated: float = Field(
        default=0.0,
        ge=0.0,
        description="Spend reported by the host's token accounting.",
    )
    error: Optional[ErrorPayload] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class TaskRecord(BaseModel):
    """The task a delegation was created for."""

    id: str = Field(..., min_length=1)
    description: str = ""
    type: str = ""
    status: TaskStatus = TaskStatus.IN_PROGRESS
    error: Optional[ErrorPayload] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionRecord(BaseModel):
    """A terminal session and the reference used to control it."""

    id: str = Field(..., min_length=1)
    session_ref: str = Field(
        ...,
        min_length=1,
        description="Name used by the session control surface (e.g. tmux session).",
    )
