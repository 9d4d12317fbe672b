"""Observation collection from a live terminal session.

The collector reads the visible buffer through a :class:`SessionControl`
and reduces it to an :class:`Observation`.  A buffer that cannot be read
(the session may have ended) is treated as empty rather than as a failure,
so a check can still evaluate cost and time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from agent_oversight.models.observation import Observation
from agent_oversight.observation.heuristics import (
    count_errors,
    extract_commands,
    extract_files_modified,
    hash_scrollback,
)
from agent_oversight.session.control import SessionControl

logger = logging.getLogger(__name__)


def collect(
    captured_text: str,
    start_time: datetime,
    cost_accumulated: float = 0.0,
    now: Optional[datetime] = None,
) -> Observation:
    """Build an Observation from already-captured buffer text.

    Parameters
    ----------
    captured_text:
        The visible buffer; may be empty.
    start_time:
        When the delegation started.  Naive datetimes are taken as UTC.
    cost_accumulated:
        Cost reported by the host system.
    now:
        Collection time; defaults to the current UTC time.

    Returns
    -------
    Observation
        ``time_elapsed`` is whole seconds since *start_time*, never negative.
    """
    now = now or datetime.now(timezone.utc)
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)

    elapsed = int((now - start_time).total_seconds())

    return Observation(
        scrollback_hash=hash_scrollback(captured_text),
        scrollback_length=len(captured_text),
        last_action_time=now,
        error_count=count_errors(captured_text),
        cost_accumulated=max(0.0, cost_accumulated),
        time_elapsed=max(0, elapsed),
        command_history=tuple(extract_commands(captured_text)),
        files_modified=tuple(extract_files_modified(captured_text)),
    )


class ObservationCollector:
    """Collects observations from sessions through a session control surface."""

    def __init__(self, session_control: SessionControl) -> None:
        self._session_control = session_control

    def capture(self, session_ref: str) -> str:
        """Return the session's visible buffer, or ``""`` if it cannot be read."""
        try:
            return self._session_control.capture_pane(session_ref)
        except Exception:
            logger.warning(
                "Could not capture buffer for session %s; treating it as empty.",
                session_ref,
                exc_info=True,
            )
            return ""

    def collect_from_session(
        self,
        session_ref: str,
        start_time: datetime,
        cost_accumulated: float = 0.0,
    ) -> Observation:
        """Capture *session_ref* and reduce the buffer to an Observation."""
        return collect(self.capture(session_ref), start_time, cost_accumulated)
