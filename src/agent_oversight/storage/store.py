"""Delegation store -- read and update delegation, task, and session records.

The oversight engine never owns these records; it reads them and moves
delegation and task statuses forward.  :class:`DelegationStore` is the
capability the engine depends on, and :class:`JsonDelegationStore` is a
file-based implementation that keeps one JSON file per record.  It uses
atomic writes (write-to-temp + rename) so that a crash mid-write never
leaves a truncated record behind.

Layout under the storage root::

    <storage_path>/
        delegations/<delegation_id>.json
        tasks/<task_id>.json
        sessions/<session_id>.json

Typical usage::

    store = JsonDelegationStore("/path/to/project/.oversight")
    store.save_delegation(delegation)
    record = store.get_delegation("d-1")
    store.update_delegation_status("d-1", DelegationStatus.MONITORING)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from agent_oversight.models.records import (
    DelegationRecord,
    DelegationStatus,
    ErrorPayload,
    SessionRecord,
    TaskRecord,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# Subdirectories within the storage root.
DELEGATIONS_SUBDIR = "delegations"
TASKS_SUBDIR = "tasks"
SESSIONS_SUBDIR = "sessions"

RECORD_FILE_EXTENSION = ".json"

_RecordT = TypeVar("_RecordT", bound=BaseModel)


class RecordNotFoundError(LookupError):
    """Raised when a status update targets a record that does not exist."""


@runtime_checkable
class DelegationStore(Protocol):
    """Read/update access to delegation, task, and session records."""

    def get_delegation(self, delegation_id: str) -> Optional[DelegationRecord]: ...

    def get_task(self, task_id: str) -> Optional[TaskRecord]: ...

    def get_session(self, session_id: str) -> Optional[SessionRecord]: ...

    def update_delegation_status(
        self,
        delegation_id: str,
        status: DelegationStatus,
        error: Optional[ErrorPayload] = None,
        completed_at: Optional[datetime] = None,
    ) -> DelegationRecord: ...

    def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        error: Optional[ErrorPayload] = None,
        completed_at: Optional[datetime] = None,
    ) -> TaskRecord: ...

    def list_delegations(
        self,
        statuses: Optional[Iterable[DelegationStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[DelegationRecord]: ...


class JsonDelegationStore:
    """File-based :class:`DelegationStore`.

    Parameters
    ----------
    storage_path:
        Directory holding the record subdirectories.  Created on first use.
    """

    def __init__(self, storage_path: str) -> None:
        self._root = Path(storage_path).resolve()
        self._dirs = {
            DelegationRecord: self._root / DELEGATIONS_SUBDIR,
            TaskRecord: self._root / TASKS_SUBDIR,
            SessionRecord: self._root / SESSIONS_SUBDIR,
        }
        for directory in self._dirs.values():
            directory.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Public API -- Reads
    # ------------------------------------------------------------------

    def get_delegation(self, delegation_id: str) -> Optional[DelegationRecord]:
        return self._load(DelegationRecord, delegation_id)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        return self._load(TaskRecord, task_id)

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self._load(SessionRecord, session_id)

    def list_delegations(
        self,
        statuses: Optional[Iterable[DelegationStatus]] = None,
        limit: Optional[int] = None,
    ) -> list[DelegationRecord]:
        """Return delegations, oldest first, optionally filtered by status.

        Parameters
        ----------
        statuses:
            When given, only delegations in one of these statuses are returned.
        limit:
            Maximum number of records to return.

        Returns
        -------
        list[DelegationRecord]
            Sorted by ``created_at`` then ``id``.  Unreadable files are skipped.
        """
        wanted = set(statuses) if statuses is not None else None
        records: list[DelegationRecord] = []
        for record_id in self._list_ids(DelegationRecord):
            record = self._load(DelegationRecord, record_id)
            if record is None:
                continue
            if wanted is not None and record.status not in wanted:
                continue
            records.append(record)

        records.sort(key=lambda r: (r.created_at, r.id))
        if limit is not None:
            records = records[: max(0, limit)]
        return records

    # ------------------------------------------------------------------
    # Public API -- Writes
    # ------------------------------------------------------------------

    def save_delegation(self, record: DelegationRecord) -> Path:
        return self._save(record)

    def save_task(self, record: TaskRecord) -> Path:
        return self._save(record)

    def save_session(self, record: SessionRecord) -> Path:
        return self._save(record)

    def update_delegation_status(
        self,
        delegation_id: str,
        status: DelegationStatus,
        error: Optional[ErrorPayload] = None,
        completed_at: Optional[datetime] = None,
    ) -> DelegationRecord:
        """Move a delegation to *status*, recording an optional error.

        Raises
        ------
        RecordNotFoundError
            If no delegation with *delegation_id* exists.
        """
        record = self.get_delegation(delegation_id)
        if record is None:
            raise RecordNotFoundError(f"Delegation not found: {delegation_id}")
        updated = record.model_copy(
            update=self._status_update(status, error, completed_at),
        )
        self._save(updated)
        logger.info("Delegation %s -> %s", delegation_id, status.value)
        return updated

    def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        error: Optional[ErrorPayload] = None,
        completed_at: Optional[datetime] = None,
    ) -> TaskRecord:
        """Move a task to *status*, recording an optional error.

        Raises
        ------
        RecordNotFoundError
            If no task with *task_id* exists.
        """
        record = self.get_task(task_id)
        if record is None:
            raise RecordNotFoundError(f"Task not found: {task_id}")
        updated = record.model_copy(
            update=self._status_update(status, error, completed_at),
        )
        self._save(updated)
        logger.info("Task %s -> %s", task_id, status.value)
        return updated

    # ------------------------------------------------------------------
    # Public API -- Introspection
    # ------------------------------------------------------------------

    @property
    def storage_root(self) -> Path:
        """The resolved root directory used for storage."""
        return self._root

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _status_update(
        status: Enum,
        error: Optional[ErrorPayload],
        completed_at: Optional[datetime],
    ) -> dict:
        update: dict = {"status": status, "updated_at": datetime.now(timezone.utc)}
        if error is not None:
            update["error"] = error
        if completed_at is not None:
            update["completed_at"] = completed_at
        return update

    def _record_path(self, model: type[BaseModel], record_id: str) -> Path:
        sanitised = self._sanitise_filename(record_id)
        return self._dirs[model] / f"{sanitised}{RECORD_FILE_EXTENSION}"

    @staticmethod
    def _sanitise_filename(record_id: str) -> str:
        """Replace characters that are unsafe in file names with hyphens."""
        sanitised = record_id.strip()
        for ch in r'/\:*?"<>|':
            sanitised = sanitised.replace(ch, "-")
        return sanitised

    def _list_ids(self, model: type[BaseModel]) -> list[str]:
        directory = self._dirs[model]
        if not directory.is_dir():
            return []
        return sorted(
            entry.name[: -len(RECORD_FILE_EXTENSION)]
            for entry in directory.iterdir()
            if entry.is_file()
            and entry.name.endswith(RECORD_FILE_EXTENSION)
            and not entry.name.startswith(".")
        )

    def _load(self, model: type[_RecordT], record_id: str) -> Optional[_RecordT]:
        file_path = self._record_path(model, record_id)
        data = self._safe_read_json(file_path)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except Exception:
            logger.warning(
                "Failed to deserialize %s from %s. File may be corrupt.",
                model.__name__,
                file_path,
                exc_info=True,
            )
            return None

    def _save(self, record: BaseModel) -> Path:
        file_path = self._record_path(type(record), record.id)
        self._atomic_write(file_path, record.model_dump(mode="json"))
        logger.debug("Saved %s %s to %s", type(record).__name__, record.id, file_path)
        return file_path

    def _atomic_write(self, target: Path, data: dict) -> None:
        """Write *data* as JSON to *target* via a temp file and ``os.replace``."""
        target.parent.mkdir(parents=True, exist_ok=True)

        fd = None
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target.parent),
                prefix=".tmp_",
                suffix=RECORD_FILE_EXTENSION,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fd = None  # os.fdopen owns the descriptor now
                json.dump(data, fp, indent=2, ensure_ascii=False)
                fp.write("\n")
                fp.flush()
                os.fsync(fp.fileno())

            os.replace(tmp_path, str(target))
            tmp_path = None

        except BaseException:
            if fd is not None:
                os.close(fd)
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise

    def _safe_read_json(self, path: Path) -> Optional[dict]:
        """Read and parse a JSON file, returning *None* on any failure."""
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as fp:
                return json.load(fp)
        except json.JSONDecodeError:
            logger.warning(
                "Corrupt JSON in %s. The file will be ignored.",
                path,
                exc_info=True,
            )
            return None
        except OSError:
            logger.warning("Could not read %s.", path, exc_info=True)
            return None
