"""Ordered registry of pattern detectors with per-detector failure isolation.

Every detector runs against the same :class:`DetectorContext` in
registration order.  Each invocation is wrapped individually: a detector
that raises is logged and contributes no issues, and the remaining
detectors still run.  One fragile heuristic must never take down oversight
for every delegation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from agent_oversight.detection.base import DetectorContext, PatternDetector
from agent_oversight.detection.cost import CostDetector
from agent_oversight.detection.deviation import DeviationDetector
from agent_oversight.detection.error_spiral import ErrorSpiralDetector
from agent_oversight.detection.loop import LoopDetector
from agent_oversight.detection.safety import SafetyDetector
from agent_oversight.models.check import Issue

logger = logging.getLogger(__name__)


def default_detectors() -> list[PatternDetector]:
    """Return fresh instances of the built-in detectors in their fixed order."""
    return [
        LoopDetector(),
        CostDetector(),
        ErrorSpiralDetector(),
        DeviationDetector(),
        SafetyDetector(),
    ]


@dataclass
class RegistryResult:
    """Combined output of all detectors for one check.

    Attributes:
        issues: Issues from every detector, in registration order.
        repeat_pattern_detected: True if any detector raised the repeat signal.
        failed_detectors: Names of detectors that raised during this run.
    """

    issues: list[Issue] = field(default_factory=list)
    repeat_pattern_detected: bool = False
    failed_detectors: list[str] = field(default_factory=list)


class DetectorRegistry:
    """Runs a fixed, ordered list of detectors with isolated failures.

    Parameters
    ----------
    detectors:
        Detectors to register, in order.  When *None*, the built-in
        detectors are used (loop, cost, error, deviation, safety).
    """

    def __init__(self, detectors: Optional[Iterable[PatternDetector]] = None) -> None:
        if detectors is None:
            self._detectors = default_detectors()
        else:
            self._detectors = list(detectors)

    @property
    def detectors(self) -> list[PatternDetector]:
        return list(self._detectors)

    @property
    def names(self) -> list[str]:
        return [detector.name for detector in self._detectors]

    def register(self, detector: PatternDetector) -> None:
        """Append *detector*; it runs after every detector registered before it."""
        self._detectors.append(detector)
        logger.debug("Registered detector %s", detector.name)

    def run(self, context: DetectorContext) -> RegistryResult:
        """Run every detector against *context* and combine their findings."""
        result = RegistryResult()

        for detector in self._detectors:
            try:
                outcome = detector.detect(context)
            except Exception:
                logger.warning(
                    "Detector %s failed; it contributes no issues to this check.",
                    detector.name,
                    exc_info=True,
                )
                result.failed_detectors.append(detector.name)
                continue

            if outcome.repeat_pattern_detected:
                result.repeat_pattern_detected = True
            if outcome.detected:
                result.issues.extend(outcome.issues)

        return result

    def __len__(self) -> int:
        return len(self._detectors)
