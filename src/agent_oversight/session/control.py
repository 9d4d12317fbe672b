"""Terminal session control surface.

The oversight engine needs three things from a live terminal session: read
its visible buffer, type into it, and kill it.  :class:`SessionControl`
describes that capability; :class:`TmuxSessionControl` implements it on top
of the ``tmux`` command line with bounded timeouts.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Seconds allowed for a single tmux invocation.
DEFAULT_TMUX_TIMEOUT = 5.0

# stderr fragments tmux prints when the target session no longer exists.
_SESSION_GONE_MARKERS = (
    "can't find session",
    "can't find pane",
    "can't find window",
    "no server running",
    "session not found",
    "error connecting to",
)


class SessionControlError(Exception):
    """Raised when a session control operation fails."""


class SessionNotFoundError(SessionControlError):
    """Raised when the target session does not exist (it may have ended)."""


@runtime_checkable
class SessionControl(Protocol):
    """Capability to observe and drive a live terminal session."""

    def capture_pane(self, session_ref: str) -> str:
        """Return the currently visible buffer text.

        Raises SessionControlError (or a subclass) when the buffer cannot be
        read, e.g. because the session has ended.
        """

    def send_keys(self, session_ref: str, keys: str, literal: bool = True) -> None:
        """Inject *keys* into the session.

        With ``literal=True`` the text is typed as-is; with ``literal=False``
        it is interpreted as a key name such as ``"Enter"``.
        """

    def kill_session(self, session_ref: str) -> None:
        """Terminate the session.  A session that is already gone is not an error."""


class TmuxSessionControl:
    """SessionControl backed by the ``tmux`` binary.

    Parameters
    ----------
    tmux_binary:
        Name or path of the tmux executable.
    timeout:
        Seconds allowed per tmux invocation.
    socket_name:
        Optional tmux socket name (``tmux -L``) for isolated servers.
    """

    def __init__(
        self,
        tmux_binary: str = "tmux",
        timeout: float = DEFAULT_TMUX_TIMEOUT,
        socket_name: Optional[str] = None,
    ) -> None:
        self._tmux = tmux_binary
        self._timeout = timeout
        self._socket_name = socket_name

    def capture_pane(self, session_ref: str) -> str:
        return self._run(["capture-pane", "-p", "-J", "-t", session_ref])

    def send_keys(self, session_ref: str, keys: str, literal: bool = True) -> None:
        args = ["send-keys", "-t", session_ref]
        if literal:
            args.append("-l")
        args.append(keys)
        self._run(args)

    def kill_session(self, session_ref: str) -> None:
        try:
            self._run(["kill-session", "-t", session_ref])
        except SessionNotFoundError:
            logger.debug("tmux session %s already gone.", session_ref)

    def has_session(self, session_ref: str) -> bool:
        try:
            self._run(["has-session", "-t", session_ref])
        except SessionControlError:
            return False
        return True

    def _run(self, args: list[str]) -> str:
        command = [self._tmux]
        if self._socket_name:
            command += ["-L", self._socket_name]
        command += args

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise SessionControlError(f"tmux binary not found: {self._tmux}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SessionControlError(
                f"tmux {args[0]} timed out after {self._timeout}s"
            ) from exc
        except OSError as exc:
            raise SessionControlError(f"tmux {args[0]} failed: {exc}") from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if any(marker in stderr.lower() for marker in _SESSION_GONE_MARKERS):
                raise SessionNotFoundError(stderr)
            raise SessionControlError(
                f"tmux {args[0]} exited with {result.returncode}: {stderr}"
            )
        return result.stdout
