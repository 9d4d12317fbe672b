"""Intervention decision engine.

Maps the issues found in one check to a single graduated response.  The
worst issue wins; severity decides the rung of the ladder:

- critical safety violation -> terminate, whatever the configuration says
- critical (other)          -> terminate when ``auto_terminate`` is set, else pause
- high                      -> redirect with an issue-specific directive
- medium                    -> warn with an advisory reminder
- low                       -> none (logged only)

The decision is a pure function of the issues and the configuration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from agent_oversight.models.check import (
    Intervention,
    InterventionType,
    Issue,
    IssueType,
    Severity,
)

if TYPE_CHECKING:
    from agent_oversight.config import OversightConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------------

REDIRECT_TEMPLATES: dict[IssueType, str] = {
    IssueType.INFINITE_LOOP: (
        "You appear to be in a loop. Please stop, analyze the situation, "
        "and try a different approach."
    ),
    IssueType.COST_RUNAWAY: (
        "You are approaching cost limits. Please wrap up the current task "
        "efficiently."
    ),
    IssueType.TIME_RUNAWAY: (
        "You are approaching time limits. Please prioritize completing the "
        "most important parts of the task."
    ),
    IssueType.ERROR_SPIRAL: (
        "You have encountered many errors. Please step back, analyze the root "
        "cause, and address it before proceeding."
    ),
    IssueType.TASK_DEVIATION: (
        "You may be working on unrelated items. Please refocus on the "
        "original task."
    ),
    IssueType.SAFETY_VIOLATION: (
        "A safety concern was detected. Please avoid dangerous operations."
    ),
    IssueType.STALL_DETECTED: (
        "Progress appears stalled. Please explain what's blocking you or try "
        "an alternative approach."
    ),
}

WARNING_TEMPLATE = (
    "OVERSIGHT WARNING: {description}. Please review your approach and ensure "
    "you're making progress on the task."
)

PAUSE_ACTION = "Session paused for human review"
TERMINATE_SAFETY_ACTION = "Session terminated due to safety concern"
TERMINATE_CRITICAL_ACTION = "Session terminated due to critical issue"


def build_redirect_message(issue: Issue) -> str:
    """Return the corrective directive for *issue*'s type."""
    template = REDIRECT_TEMPLATES.get(issue.type)
    if template is None:
        return f"Please address: {issue.description}"
    return template


def build_warning_message(issue: Issue) -> str:
    """Return the advisory reminder for *issue*."""
    return WARNING_TEMPLATE.format(description=issue.description.rstrip("."))


def select_worst_issue(issues: Sequence[Issue]) -> Optional[Issue]:
    """Return the most severe issue.

    Ties are broken by position: the first issue of the highest severity
    wins, so detectors registered earlier take precedence.
    """
    worst: Optional[Issue] = None
    for issue in issues:
        if worst is None or issue.severity.rank > worst.severity.rank:
            worst = issue
    return worst


def decide(issues: Sequence[Issue], config: "OversightConfig") -> Intervention:
    """Choose the intervention for a check's issues.

    Parameters
    ----------
    issues:
        Issues in detector registration order.
    config:
        Supplies the ``auto_terminate`` gate.

    Returns
    -------
    Intervention
        ``type`` is ``none`` when there are no issues or the worst is ``low``.
        ``reason`` carries the worst issue's description.
    """
    # A critical safety violation terminates even when another critical
    # issue was reported first.
    for issue in issues:
        if issue.severity == Severity.CRITICAL and issue.type == IssueType.SAFETY_VIOLATION:
            return Intervention(
                type=InterventionType.TERMINATE,
                reason=f"Safety violation: {issue.description}",
                action=TERMINATE_SAFETY_ACTION,
            )

    worst = select_worst_issue(issues)
    if worst is None:
        return Intervention.none()

    reason = worst.description

    if worst.severity == Severity.CRITICAL:
        if config.auto_terminate:
            return Intervention(
                type=InterventionType.TERMINATE,
                reason=reason,
                action=TERMINATE_CRITICAL_ACTION,
            )
        return Intervention(
            type=InterventionType.PAUSE,
            reason=reason,
            action=PAUSE_ACTION,
        )

    if worst.severity == Severity.HIGH:
        return Intervention(
            type=InterventionType.REDIRECT,
            reason=reason,
            action=build_redirect_message(worst),
        )

    if worst.severity == Severity.MEDIUM:
        return Intervention(
            type=InterventionType.WARN,
            reason=reason,
            action=build_warning_message(worst),
        )

    logger.info("Low severity %s issue recorded without action: %s", worst.type.value, reason)
    return Intervention(type=InterventionType.NONE, reason=reason)
