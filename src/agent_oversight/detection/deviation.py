"""Task deviation detection.

Compares what the agent is touching -- files inferred from the buffer and
the commands it runs -- against keywords derived from the task description
and task type.  An activity item is *relevant* when it shares at least one
keyword with the task.  The relevance score is the fraction of relevant
items.

Design decisions:
- All analysis is local and deterministic (no external API calls).
- Nothing is reported during the grace period at the start of a delegation,
  or before ``deviation_min_activity`` items have been observed.  Early
  exploration (reading the repo layout, running the test suite) rarely
  mentions the task's vocabulary.
- Items with no extractable keywords (``ls``, ``git status``) are neutral:
  they count neither for nor against the task.
- A score below ``deviation_threshold`` is medium severity; a score of zero
  with enough activity is high.
"""

from __future__ import annotations

from agent_oversight.detection.base import (
    DetectorContext,
    DetectorResult,
    PatternDetector,
)
from agent_oversight.detection.keywords import (
    extract_command_keywords,
    extract_keywords,
    extract_path_keywords,
)
from agent_oversight.models.check import Issue, IssueType, Severity

DEFAULT_DEVIATION_GRACE_PERIOD_SECONDS = 300
DEFAULT_DEVIATION_THRESHOLD = 0.2
DEFAULT_DEVIATION_MIN_ACTIVITY = 3


class DeviationDetector(PatternDetector):
    """Flags activity that has little to do with the delegated task."""

    name = "deviation-detector"

    def detect(self, context: DetectorContext) -> DetectorResult:
        config = context.config
        observation = context.observations

        if observation.time_elapsed < config.deviation_grace_period_seconds:
            return DetectorResult()

        task_keywords = task_scope_keywords(
            context.task_description, context.task_type,
        )
        if not task_keywords:
            return DetectorResult()

        relevant, considered, off_task = score_activity(
            task_keywords,
            files=observation.files_modified,
            commands=observation.command_history,
        )
        if considered < config.deviation_min_activity:
            return DetectorResult()

        score = relevant / considered
        if score >= config.deviation_threshold:
            return DetectorResult()

        severity = Severity.HIGH if relevant == 0 else Severity.MEDIUM
        sample = ", ".join(off_task[:5])
        issue = Issue(
            type=IssueType.TASK_DEVIATION,
            severity=severity,
            description=(
                f"Only {relevant} of {considered} recent files and commands "
                f"relate to the task"
            ),
            evidence=(
                f"Relevance score: {score:.2f}",
                f"Task keywords: {', '.join(sorted(task_keywords)[:10])}",
                f"Off-task activity: {sample}",
            ),
            confidence=0.5,
        )
        return DetectorResult.from_issues([issue])


def task_scope_keywords(description: str, task_type: str) -> set[str]:
    """Return the keywords describing the task's scope."""
    return extract_keywords(description) | extract_keywords(task_type)


def score_activity(
    task_keywords: set[str],
    files: tuple[str, ...],
    commands: tuple[str, ...],
) -> tuple[int, int, list[str]]:
    """Score files and commands against the task keywords.

    Returns
    -------
    tuple[int, int, list[str]]
        ``(relevant, considered, off_task)`` where *considered* excludes
        neutral items and *off_task* lists the items that did not match.
    """
    relevant = 0
    considered = 0
    off_task: list[str] = []

    items = [(path, extract_path_keywords(path)) for path in files]
    items += [(cmd, extract_command_keywords(cmd)) for cmd in commands]

    for item, keywords in items:
        if not keywords:
            continue
        considered += 1
        if keywords & task_keywords:
            relevant += 1
        else:
            off_task.append(item)

    return relevant, considered, off_task
