"""Storage layer for delegation, task, and session records."""

from agent_oversight.storage.store import (
    DelegationStore,
    JsonDelegationStore,
    RecordNotFoundError,
)

__all__ = [
    "DelegationStore",
    "JsonDelegationStore",
    "RecordNotFoundError",
]
