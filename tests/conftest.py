"""Shared fixtures for the oversight test suite.

Stores are real JsonDelegationStore instances in temporary directories.
The terminal session is an in-process recorder: it serves scripted buffers
and records every key injection and kill so tests can assert on side
effects without a tmux server.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

from agent_oversight.config import OversightConfig
from agent_oversight.engine.service import OversightEngine
from agent_oversight.models.records import (
    DelegationRecord,
    DelegationStatus,
    SessionRecord,
    TaskRecord,
)
from agent_oversight.session.control import SessionControlError, SessionNotFoundError
from agent_oversight.storage.store import JsonDelegationStore


class RecordingSessionControl:
    """SessionControl that serves scripted buffers and records side effects."""

    def __init__(self) -> None:
        self._scripts: dict[str, list[str]] = {}
        self.captures: list[str] = []
        self.sent: list[tuple[str, str, bool]] = []
        self.killed: list[str] = []
        self.fail_capture = False
        self.fail_send = False
        self.kill_error: Optional[Exception] = None

    def set_buffer(self, session_ref: str, text: str) -> None:
        """Serve *text* on every capture of *session_ref*."""
        self._scripts[session_ref] = [text]

    def script(self, session_ref: str, *texts: str) -> None:
        """Serve *texts* on successive captures; the last one repeats."""
        self._scripts[session_ref] = list(texts)

    def capture_pane(self, session_ref: str) -> str:
        self.captures.append(session_ref)
        if self.fail_capture:
            raise SessionNotFoundError(f"can't find session: {session_ref}")
        script = self._scripts.get(session_ref)
        if not script:
            return ""
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    def send_keys(self, session_ref: str, keys: str, literal: bool = True) -> None:
        if self.fail_send:
            raise SessionControlError("send-keys failed")
        self.sent.append((session_ref, keys, literal))

    def kill_session(self, session_ref: str) -> None:
        self.killed.append(session_ref)
        if self.kill_error is not None:
            raise self.kill_error


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    """A temporary project directory with a .git marker."""
    (tmp_path / ".git").mkdir()
    return tmp_path


@pytest.fixture()
def config(project_dir: Path) -> OversightConfig:
    return OversightConfig(project_root=str(project_dir))


@pytest.fixture()
def store(config: OversightConfig) -> JsonDelegationStore:
    return JsonDelegationStore(config.storage_path)


@pytest.fixture()
def session() -> RecordingSessionControl:
    return RecordingSessionControl()


@pytest.fixture()
def engine(
    store: JsonDelegationStore,
    session: RecordingSessionControl,
    config: OversightConfig,
) -> OversightEngine:
    return OversightEngine(store, session, config=config)


@pytest.fixture()
def seed(store: JsonDelegationStore):
    """Return a helper that saves a delegation with its task and session."""

    def _seed(
        delegation_id: str = "d-1",
        status: DelegationStatus = DelegationStatus.RUNNING,
        description: str = "Add a login page with password reset",
        task_type: str = "feature",
        cost: float = 0.0,
        started_minutes_ago: float = 0.0,
    ) -> DelegationRecord:
        task = TaskRecord(id=f"task-{delegation_id}", description=description, type=task_type)
        session_record = SessionRecord(
            id=f"session-{delegation_id}", session_ref=f"agent-{delegation_id}",
        )
        delegation = DelegationRecord(
            id=delegation_id,
            task_id=task.id,
            session_id=session_record.id,
            status=status,
            agent_provider="claude",
            cost_accumulated=cost,
            created_at=datetime.now(timezone.utc) - timedelta(minutes=started_minutes_ago),
        )
        store.save_task(task)
        store.save_session(session_record)
        store.save_delegation(delegation)
        return delegation

    return _seed
