"""Terminal session control capability and its tmux implementation."""

from agent_oversight.session.control import (
    SessionControl,
    SessionControlError,
    SessionNotFoundError,
    TmuxSessionControl,
)

__all__ = [
    "SessionControl",
    "SessionControlError",
    "SessionNotFoundError",
    "TmuxSessionControl",
]
