"""Pattern detectors and the registry that runs them.

This package provides the detectors that inspect a delegation's
observations for unsafe or unproductive behaviour:

- :class:`LoopDetector` -- repeated screens, repeated commands, stalls
- :class:`CostDetector` -- cost and time runaway
- :class:`ErrorSpiralDetector` -- errors above threshold or accumulating
- :class:`DeviationDetector` -- activity unrelated to the task
- :class:`SafetyDetector` -- dangerous commands and restricted files
- :class:`DetectorRegistry` -- ordered, failure-isolated execution
"""

from agent_oversight.detection.base import (
    DetectorContext,
    DetectorResult,
    PatternDetector,
)
from agent_oversight.detection.cost import CostDetector
from agent_oversight.detection.deviation import DeviationDetector
from agent_oversight.detection.error_spiral import ErrorSpiralDetector
from agent_oversight.detection.loop import LoopDetector
from agent_oversight.detection.registry import (
    DetectorRegistry,
    RegistryResult,
    default_detectors,
)
from agent_oversight.detection.safety import SafetyDetector

__all__ = [
    "CostDetector",
    "DetectorContext",
    "DetectorRegistry",
    "DetectorResult",
    "DeviationDetector",
    "ErrorSpiralDetector",
    "LoopDetector",
    "PatternDetector",
    "RegistryResult",
    "SafetyDetector",
    "default_detectors",
]
