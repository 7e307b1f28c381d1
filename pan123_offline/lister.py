"""
Offline task listing and status normalization.
"""

import logging
from typing import List, Optional, Sequence

from .api import Pan123Api
from .models import PROVIDER_STATUS_TO_STATE, RemoteTask, TaskState
from .store import TaskRecordStore

logger = logging.getLogger(__name__)

ALL_STATUSES = (0, 1, 2, 3)  # queued, downloading, completed, failed
COMPLETED_STATUSES = (2,)


def normalize_progress(state: TaskState, raw_progress) -> float:
    """Percent progress; only a downloading task reports a live fraction."""
    if state == TaskState.COMPLETED:
        return 100.0
    if state == TaskState.DOWNLOADING:
        try:
            return float(raw_progress or 0) * 100
        except (TypeError, ValueError):
            return 0.0
    return 0.0


def normalize_task(item: dict, records: TaskRecordStore) -> Optional[RemoteTask]:
    """Build a RemoteTask from a provider list entry; None for unknown statuses."""
    task_id = str(item["task_id"])
    state = PROVIDER_STATUS_TO_STATE.get(item.get("status"))
    if state is None:
        logger.debug(f"Skipping task {task_id} with unknown status {item.get('status')}")
        return None

    record = records.get(task_id)
    if record is None:
        logger.debug(f"Task {task_id} has no submission record: {item.get('name')}")

    return RemoteTask(
        task_id=task_id,
        display_name=str(item.get("name") or ""),
        size_bytes=int(item.get("size") or 0),
        state=state,
        progress=normalize_progress(state, item.get("progress")),
        download_dir=record.save_path if record else "",
    )


def upload_dir_of(item: dict) -> Optional[int]:
    """Destination folder of a task; the provider spells the field ``upload_idr``."""
    for key in ("upload_idr", "upload_dir"):
        value = item.get(key)
        if value is not None:
            try:
                return int(value) or None
            except (TypeError, ValueError):
                return None
    return None


class TaskStatusLister:
    """Polls the provider's offline task list."""

    def __init__(self, api: Pan123Api, records: TaskRecordStore, page_size: int = 100):
        self._api = api
        self._records = records
        self.page_size = page_size

    async def list_tasks(self) -> List[RemoteTask]:
        """List queued, downloading, completed and failed tasks. Never raises."""
        try:
            raw_tasks = await self._api.list_offline_tasks(ALL_STATUSES, self.page_size)
            tasks = []
            for item in raw_tasks:
                task = normalize_task(item, self._records)
                if task:
                    tasks.append(task)
            return tasks
        except Exception as e:
            logger.error(f"Failed to list 123pan offline tasks: {e}")
            return []

    async def find_task(
        self, task_id: str, statuses: Sequence[int] = COMPLETED_STATUSES
    ) -> Optional[dict]:
        """Return the raw provider entry for ``task_id`` among ``statuses``."""
        for item in await self._api.list_offline_tasks(statuses, self.page_size):
            if str(item.get("task_id")) == str(task_id):
                return item
        return None
