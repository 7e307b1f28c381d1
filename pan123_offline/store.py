"""
Process-wide mutable state shared by driver instances.

Both stores are plain in-memory maps guarded by a lock, so several driver
instances (coroutines or threads) can read, insert and remove concurrently.
Nothing here is persisted: a restart loses every record, and tasks submitted
before it simply skip reconciliation.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """An authenticated 123pan session."""
    username: str
    token: str
    expires_at: float  # epoch seconds

    def is_usable(self, refresh_lead: float, now: Optional[float] = None) -> bool:
        """True while the token is not within ``refresh_lead`` seconds of expiry."""
        now = time.time() if now is None else now
        return now < self.expires_at - refresh_lead


@dataclass
class SubmittedTaskRecord:
    """Naming intent recorded when an offline task is submitted."""
    task_id: str
    save_path: str
    target_name: str


class SessionCache:
    """Holds at most one session; replaced wholesale on re-login."""

    def __init__(self):
        self._session: Optional[Session] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[Session]:
        with self._lock:
            return self._session

    def set(self, session: Session) -> None:
        with self._lock:
            self._session = session

    def invalidate(self) -> None:
        with self._lock:
            self._session = None


class TaskRecordStore:
    """Mapping of provider task id to the submission record."""

    def __init__(self):
        self._records: Dict[str, SubmittedTaskRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: SubmittedTaskRecord) -> None:
        with self._lock:
            self._records[record.task_id] = record
        logger.info(
            f"Recorded task {record.task_id}: path={record.save_path}, "
            f"name={record.target_name}"
        )

    def get(self, task_id: str) -> Optional[SubmittedTaskRecord]:
        with self._lock:
            return self._records.get(task_id)

    def discard(self, task_id: str) -> Optional[SubmittedTaskRecord]:
        """Remove a record if present. Idempotent."""
        with self._lock:
            return self._records.pop(task_id, None)

    def task_ids(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SharedState:
    """The single authoritative store handed to every driver instance in a process."""

    def __init__(
        self,
        session_cache: Optional[SessionCache] = None,
        task_records: Optional[TaskRecordStore] = None,
    ):
        self.session_cache = session_cache or SessionCache()
        self.task_records = task_records or TaskRecordStore()
