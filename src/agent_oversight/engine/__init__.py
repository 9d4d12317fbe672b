"""The oversight engine and its per-delegation state."""

from agent_oversight.engine.service import OversightEngine
from agent_oversight.engine.state import (
    MAX_HISTORY,
    OversightState,
    OversightStateStore,
)

__all__ = [
    "MAX_HISTORY",
    "OversightEngine",
    "OversightState",
    "OversightStateStore",
]
