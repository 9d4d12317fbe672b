"""Cost and time runaway detection.

Cost is supplied by the host's token accounting; time is the number of
seconds since the delegation started.  Both are compared against ceilings
from the configuration.
"""

from __future__ import annotations

from typing import Optional

from agent_oversight.detection.base import (
    DetectorContext,
    DetectorResult,
    PatternDetector,
)
from agent_oversight.models.check import Issue, IssueType, Severity

# Budget ceiling per task, in dollars.
DEFAULT_MAX_COST_PER_TASK = 10.0

# Fraction of the budget at which the agent is told to wrap up.
DEFAULT_COST_WARNING_FRACTION = 0.8

# Time ceiling per task, in seconds (30 minutes).
DEFAULT_MAX_TIME_PER_TASK = 1800

# Multiple of the time ceiling at which time runaway becomes critical.
DEFAULT_TIME_CRITICAL_MULTIPLIER = 2.0


class CostDetector(PatternDetector):
    """Flags spend approaching the budget and tasks running past their time limit."""

    name = "cost-detector"

    def detect(self, context: DetectorContext) -> DetectorResult:
        issues: list[Issue] = []

        cost_issue = self._check_cost(context)
        if cost_issue is not None:
            issues.append(cost_issue)

        time_issue = self._check_time(context)
        if time_issue is not None:
            issues.append(time_issue)

        return DetectorResult.from_issues(issues)

    @staticmethod
    def _check_cost(context: DetectorContext) -> Optional[Issue]:
        config = context.config
        cost = context.observations.cost_accumulated
        ceiling = config.max_cost_per_task
        warn_at = ceiling * config.cost_warning_fraction

        if cost < warn_at:
            return None

        severity = Severity.CRITICAL if cost >= ceiling else Severity.HIGH
        return Issue(
            type=IssueType.COST_RUNAWAY,
            severity=severity,
            description=(
                f"Cost ${cost:.2f} has reached {cost / ceiling:.0%} of the "
                f"${ceiling:.2f} budget"
            ),
            evidence=(
                f"Cost accumulated: {cost:.4f}",
                f"Budget ceiling: {ceiling:.4f}",
                f"Warning fraction: {config.cost_warning_fraction}",
            ),
            confidence=1.0,
        )

    @staticmethod
    def _check_time(context: DetectorContext) -> Optional[Issue]:
        config = context.config
        elapsed = context.observations.time_elapsed
        ceiling = config.max_time_per_task

        if elapsed <= ceiling:
            return None

        critical_at = ceiling * config.time_critical_multiplier
        severity = Severity.CRITICAL if elapsed > critical_at else Severity.HIGH
        return Issue(
            type=IssueType.TIME_RUNAWAY,
            severity=severity,
            description=(
                f"Task has run for {elapsed // 60} minutes, past the "
                f"{ceiling // 60} minute limit"
            ),
            evidence=(
                f"Elapsed seconds: {elapsed}",
                f"Time ceiling seconds: {ceiling}",
            ),
            confidence=1.0,
        )
