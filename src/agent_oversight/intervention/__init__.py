"""Intervention decision and execution."""

from agent_oversight.intervention.decision import (
    build_redirect_message,
    build_warning_message,
    decide,
    select_worst_issue,
)
from agent_oversight.intervention.executor import (
    InterventionError,
    InterventionExecutor,
)

__all__ = [
    "InterventionError",
    "InterventionExecutor",
    "build_redirect_message",
    "build_warning_message",
    "decide",
    "select_worst_issue",
]
