"""Shared contract for pattern detectors.

Every detector receives a :class:`DetectorContext` -- the current
observation, the bounded history of earlier observations for the same
delegation, the active configuration, and the task it is working on -- and
returns a :class:`DetectorResult`.

Detectors are pure: no I/O, no mutation of the context.  They may still
raise on unexpected input; isolating such failures is the job of the
:class:`~agent_oversight.detection.registry.DetectorRegistry`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from agent_oversight.models.check import Issue
from agent_oversight.models.observation import Observation

if TYPE_CHECKING:
    from agent_oversight.config import OversightConfig


@dataclass(frozen=True)
class DetectorContext:
    """Everything a detector may look at during one check.

    Attributes:
        observations: The observation collected for this check.
        history: Earlier observations for the delegation, oldest first.  Does
            not include ``observations``.
        config: The active oversight configuration.
        task_description: Free-text description of the delegated task.
        task_type: Task category (e.g. ``"feature"``, ``"bugfix"``).
    """

    observations: Observation
    history: Sequence[Observation]
    config: "OversightConfig"
    task_description: str = ""
    task_type: str = ""

    def recent(self, count: int) -> list[Observation]:
        """Return the last *count* observations including the current one."""
        if count <= 0:
            return []
        previous = list(self.history)[-(count - 1):] if count > 1 else []
        return previous + [self.observations]


@dataclass
class DetectorResult:
    """Outcome of a single detector run.

    Attributes:
        detected: True when at least one issue was found.
        issues: The issues found, in detection order.
        repeat_pattern_detected: Derived signal raised by loop detection so
            the engine can flag the observation.
    """

    detected: bool = False
    issues: list[Issue] = field(default_factory=list)
    repeat_pattern_detected: bool = False

    @classmethod
    def from_issues(
        cls,
        issues: list[Issue],
        repeat_pattern_detected: bool = False,
    ) -> "DetectorResult":
        return cls(
            detected=len(issues) > 0,
            issues=list(issues),
            repeat_pattern_detected=repeat_pattern_detected,
        )


class PatternDetector(ABC):
    """Base class for detectors registered with the DetectorRegistry."""

    #: Stable identifier used in logs and registry listings.
    name: str = "detector"

    @abstractmethod
    def detect(self, context: DetectorContext) -> DetectorResult:
        """Inspect *context* and return any issues found."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
