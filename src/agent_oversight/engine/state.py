"""Per-delegation oversight state and the lock-protected map that owns it.

Each delegation under oversight keeps a bounded history of its recent
observations and checks.  Once the bound is reached the oldest entries are
dropped, never the newest, so memory stays flat for long-running
delegations.

:class:`OversightStateStore` belongs to one engine instance.  It guards the
map itself with a lock and hands out one lock per delegation, so two checks
on the same delegation never interleave while checks on different
delegations run in parallel.
"""

from __future__ import annotations

import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from agent_oversight.models.check import Check
from agent_oversight.models.observation import Observation

# Maximum observations and checks retained per delegation.
MAX_HISTORY = 20


def _bounded() -> deque:
    return deque(maxlen=MAX_HISTORY)


@dataclass
class OversightState:
    """In-memory oversight state for one delegation.

    Attributes:
        delegation_id: The delegation being overseen.
        task_description: Description of the delegated task.
        task_type: Category of the delegated task.
        start_time: When the delegation started; elapsed time is measured from it.
        observation_history: Recent observations, oldest first.
        check_history: Recent checks, oldest first.
    """

    delegation_id: str
    task_description: str = ""
    task_type: str = ""
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    observation_history: deque = field(default_factory=_bounded)
    check_history: deque = field(default_factory=_bounded)

    def record(self, observation: Observation, check: Check) -> None:
        """Append one check's observation and result to the history."""
        self.observation_history.append(observation)
        self.check_history.append(check)

    @property
    def last_check(self) -> Optional[Check]:
        return self.check_history[-1] if self.check_history else None

    def snapshot(self) -> "OversightState":
        """Return a copy whose histories are detached from this state."""
        return OversightState(
            delegation_id=self.delegation_id,
            task_description=self.task_description,
            task_type=self.task_type,
            start_time=self.start_time,
            observation_history=deque(self.observation_history, maxlen=MAX_HISTORY),
            check_history=deque(self.check_history, maxlen=MAX_HISTORY),
        )

    def to_dict(self) -> dict:
        """Serialise to a JSON-compatible dictionary."""
        last = self.last_check
        return {
            "delegation_id": self.delegation_id,
            "task_description": self.task_description,
            "task_type": self.task_type,
            "start_time": self.start_time.isoformat(),
            "observation_count": len(self.observation_history),
            "check_count": len(self.check_history),
            "observation_history": [o.to_dict() for o in self.observation_history],
            "last_check": last.to_dict() if last is not None else None,
        }


class _DelegationLock:
    """A delegation's lock and the number of callers holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class OversightStateStore:
    """Thread-safe map of delegation ID to :class:`OversightState`.

    Per-delegation locks live only while a caller holds or awaits them, or
    while the delegation has state.  IDs that never produce state, such as
    missing or finished delegations, leave nothing behind.
    """

    def __init__(self) -> None:
        self._states: dict[str, OversightState] = {}
        self._locks: dict[str, _DelegationLock] = {}
        self._map_lock = threading.Lock()

    @contextmanager
    def locked(self, delegation_id: str) -> Iterator[None]:
        """Hold the lock serialising checks for *delegation_id*."""
        with self._map_lock:
            entry = self._locks.get(delegation_id)
            if entry is None:
                entry = _DelegationLock()
                self._locks[delegation_id] = entry
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._map_lock:
                entry.users -= 1
                if entry.users == 0 and delegation_id not in self._states:
                    self._locks.pop(delegation_id, None)

    def lock_count(self) -> int:
        """Number of per-delegation locks currently tracked."""
        with self._map_lock:
            return len(self._locks)

    def get(self, delegation_id: str) -> Optional[OversightState]:
        with self._map_lock:
            return self._states.get(delegation_id)

    def get_or_create(
        self,
        delegation_id: str,
        factory: Callable[[], OversightState],
    ) -> OversightState:
        """Return the existing state, or store and return ``factory()``."""
        with self._map_lock:
            state = self._states.get(delegation_id)
            if state is None:
                state = factory()
                self._states[delegation_id] = state
            return state

    def remove(self, delegation_id: str) -> bool:
        """Drop the state for *delegation_id*; True if there was one."""
        with self._map_lock:
            entry = self._locks.get(delegation_id)
            if entry is not None and entry.users == 0:
                del self._locks[delegation_id]
            return self._states.pop(delegation_id, None) is not None

    def ids(self) -> list[str]:
        with self._map_lock:
            return list(self._states)

    def __contains__(self, delegation_id: object) -> bool:
        with self._map_lock:
            return delegation_id in self._states

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._states)
