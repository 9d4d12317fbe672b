"""Error spiral detection.

Two signals:

- the error count in the current buffer exceeds ``error_threshold`` (high),
  or reaches ``error_threshold * error_critical_multiplier`` (critical);
- below the threshold, the error count has been non-decreasing over the last
  ``error_trend_window`` observations and grew overall (medium) -- errors are
  piling up without being resolved.
"""

from __future__ import annotations

from typing import Optional

from agent_oversight.detection.base import (
    DetectorContext,
    DetectorResult,
    PatternDetector,
)
from agent_oversight.models.check import Issue, IssueType, Severity

DEFAULT_ERROR_THRESHOLD = 10
DEFAULT_ERROR_CRITICAL_MULTIPLIER = 3.0
DEFAULT_ERROR_TREND_WINDOW = 4


class ErrorSpiralDetector(PatternDetector):
    """Flags sessions where errors are accumulating."""

    name = "error-detector"

    def detect(self, context: DetectorContext) -> DetectorResult:
        config = context.config
        count = context.observations.error_count

        if count > config.error_threshold:
            critical_at = config.error_threshold * config.error_critical_multiplier
            severity = Severity.CRITICAL if count >= critical_at else Severity.HIGH
            issue = Issue(
                type=IssueType.ERROR_SPIRAL,
                severity=severity,
                description=(
                    f"{count} errors in session output exceeds the threshold "
                    f"of {config.error_threshold}"
                ),
                evidence=(
                    f"Error count: {count}",
                    f"Threshold: {config.error_threshold}",
                ),
                confidence=0.8,
            )
            return DetectorResult.from_issues([issue])

        trend_issue = self._detect_rising_trend(context)
        if trend_issue is not None:
            return DetectorResult.from_issues([trend_issue])
        return DetectorResult()

    @staticmethod
    def _detect_rising_trend(context: DetectorContext) -> Optional[Issue]:
        window = context.config.error_trend_window
        recent = context.recent(window)
        if len(recent) < window:
            return None

        counts = [obs.error_count for obs in recent]
        non_decreasing = all(b >= a for a, b in zip(counts, counts[1:]))
        if not non_decreasing or counts[-1] <= counts[0]:
            return None

        return Issue(
            type=IssueType.ERROR_SPIRAL,
            severity=Severity.MEDIUM,
            description=(
                f"Errors accumulating without resolution over {window} checks "
                f"({counts[0]} -> {counts[-1]})"
            ),
            evidence=(f"Error counts: {', '.join(str(c) for c in counts)}",),
            confidence=0.6,
        )
