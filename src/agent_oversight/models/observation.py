"""Observation model -- one structured snapshot of a delegation's session.

An Observation is collected once per oversight check from the session's
visible buffer and the elapsed time since the delegation started.  It is
immutable and hashable so it can be compared cheaply across checks and kept
in the bounded per-delegation history.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

# Maximum number of commands retained in ``command_history``.
MAX_COMMAND_HISTORY = 20


class Observation(BaseModel):
    """A single snapshot of a delegation's session state at check time."""

    model_config = ConfigDict(frozen=True)

    scrollback_hash: str = Field(
        ...,
        description="Content hash of the visible buffer (loop detection key).",
    )
    scrollback_length: int = Field(
        default=0,
        ge=0,
        description="Length of the visible buffer in characters.",
    )
    last_action_time: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this observation was collected (UTC).",
    )
    error_count: int = Field(
        default=0,
        ge=0,
        description="Number of recognised error markers in the buffer.",
    )
    cost_accumulated: float = Field(
        default=0.0,
        ge=0.0,
        description="Cost accumulated so far, supplied by the host system.",
    )
    time_elapsed: int = Field(
        default=0,
        ge=0,
        description="Seconds since the delegation started.",
    )
    command_history: tuple[str, ...] = Field(
        default=(),
        max_length=MAX_COMMAND_HISTORY,
        description="Commands seen in the buffer, most recent last.",
    )
    files_modified: tuple[str, ...] = Field(
        default=(),
        description="Unique file paths inferred from the buffer, first-seen order.",
    )
    repeat_pattern_detected: bool = Field(
        default=False,
        description="Derived flag set when the loop detector finds a repeat.",
    )

    def with_repeat_pattern(self) -> "Observation":
        """Return a copy of this observation with the repeat flag set."""
        if self.repeat_pattern_detected:
            return self
        return self.model_copy(update={"repeat_pattern_detected": True})

    def to_dict(self) -> dict:
        """Serialise to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")
