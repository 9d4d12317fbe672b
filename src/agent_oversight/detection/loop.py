"""Loop and stall detection over the observation history.

Three signals are checked, in order:

1. **Identical buffer** -- the scrollback hash is the same across
   ``loop_repeat_threshold`` consecutive observations (the current one
   included).  The agent's screen has not changed at all: it is stuck
   re-rendering the same output or repeating the same exchange.
2. **Repeated command** -- the last ``command_repeat_threshold`` commands in
   the buffer are identical and the set of modified files did not grow since
   the previous observation.  The agent keeps re-running one command without
   producing anything new.
3. **Stall** -- the buffer keeps changing but the commands and files seen in
   it have not changed across ``stall_window`` observations.  Something is
   printing (a spinner, a long log) while no work progresses.

Any of the loop signals sets ``repeat_pattern_detected`` on the result so
the engine can flag the observation.
"""

from __future__ import annotations

from typing import Optional

from agent_oversight.detection.base import (
    DetectorContext,
    DetectorResult,
    PatternDetector,
)
from agent_oversight.models.check import Issue, IssueType, Severity
from agent_oversight.models.observation import Observation

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

# Consecutive observations with an identical buffer hash that count as a loop.
DEFAULT_LOOP_REPEAT_THRESHOLD = 4

# Severity reported for an identical-buffer loop.
DEFAULT_LOOP_SEVERITY = "high"

# Identical trailing commands that count as a repeated-command loop.
DEFAULT_COMMAND_REPEAT_THRESHOLD = 3

# Observations without command or file progress that count as a stall.
DEFAULT_STALL_WINDOW = 6


class LoopDetector(PatternDetector):
    """Detects repeated screens, repeated commands, and stalled progress."""

    name = "loop-detector"

    def detect(self, context: DetectorContext) -> DetectorResult:
        config = context.config
        issues: list[Issue] = []

        hash_issue = self._detect_identical_buffer(
            context,
            threshold=config.loop_repeat_threshold,
            severity=Severity(config.loop_severity),
        )
        if hash_issue is not None:
            issues.append(hash_issue)

        command_issue = self._detect_repeated_command(
            context, threshold=config.command_repeat_threshold,
        )
        if command_issue is not None:
            issues.append(command_issue)

        repeat_detected = len(issues) > 0

        if not repeat_detected:
            stall_issue = self._detect_stall(context, window=config.stall_window)
            if stall_issue is not None:
                issues.append(stall_issue)

        return DetectorResult.from_issues(
            issues, repeat_pattern_detected=repeat_detected,
        )

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    @staticmethod
    def _detect_identical_buffer(
        context: DetectorContext,
        threshold: int,
        severity: Severity,
    ) -> Optional[Issue]:
        # An empty buffer means the capture failed; there is nothing to compare.
        if context.observations.scrollback_length == 0:
            return None

        current_hash = context.observations.scrollback_hash
        streak = 1
        for previous in reversed(list(context.history)):
            if previous.scrollback_hash != current_hash:
                break
            streak += 1

        if streak < threshold:
            return None

        return Issue(
            type=IssueType.INFINITE_LOOP,
            severity=severity,
            description=(
                f"Session output unchanged across {streak} consecutive checks"
            ),
            evidence=(
                f"Scrollback hash: {current_hash}",
                f"Repeat threshold: {threshold}",
            ),
            confidence=0.9,
        )

    @staticmethod
    def _detect_repeated_command(
        context: DetectorContext,
        threshold: int,
    ) -> Optional[Issue]:
        commands = context.observations.command_history
        if len(commands) < threshold:
            return None

        tail = commands[-threshold:]
        if len(set(tail)) != 1:
            return None

        # Growth in modified files means the repetition is producing work.
        if context.history:
            previous_files = set(context.history[-1].files_modified)
            if set(context.observations.files_modified) - previous_files:
                return None

        repeated = tail[0]
        shown = repeated if len(repeated) <= 100 else repeated[:100] + "..."
        return Issue(
            type=IssueType.INFINITE_LOOP,
            severity=Severity.MEDIUM,
            description=(
                f"Command repeated {threshold} times without modifying new files"
            ),
            evidence=(f"Command: {shown}",),
            confidence=0.75,
        )

    @staticmethod
    def _detect_stall(context: DetectorContext, window: int) -> Optional[Issue]:
        recent = context.recent(window)
        if len(recent) < window:
            return None

        if not _same_progress(recent):
            return None

        # An unchanged buffer is a loop, not a stall.
        if len({obs.scrollback_hash for obs in recent}) == 1:
            return None

        return Issue(
            type=IssueType.STALL_DETECTED,
            severity=Severity.MEDIUM,
            description=(
                f"No new commands or file changes across {window} checks"
            ),
            evidence=(
                f"Commands seen: {len(recent[-1].command_history)}",
                f"Files modified: {len(recent[-1].files_modified)}",
            ),
            confidence=0.6,
        )


def _same_progress(observations: list[Observation]) -> bool:
    first = observations[0]
    return all(
        obs.command_history == first.command_history
        and obs.files_modified == first.files_modified
        for obs in observations[1:]
    )
