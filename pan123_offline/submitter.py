"""
Offline task submission: magnet -> resolved resources -> submitted task.
"""

import asyncio
import logging
from typing import List, Optional

from .api import Pan123Api
from .exceptions import ProviderResponseError
from .folders import FolderResolver
from .heuristics import adopt_untracked_task_id
from .lister import TaskStatusLister
from .logging_config import LogContext
from .models import ROOT_FOLDER_ID
from .store import SubmittedTaskRecord, TaskRecordStore

logger = logging.getLogger(__name__)


def select_all_files(resources: List[dict]) -> List[dict]:
    """
    Turn a resolve response into the submit ``resource_list``.

    Every resolved resource must have succeeded and list at least one file;
    all of its files are selected.
    """
    if not resources:
        raise ProviderResponseError("Resolve returned no resources")

    selected = []
    for resource in resources:
        result = resource.get("result")
        if result != 0:
            raise ProviderResponseError(
                "Resolve failed",
                code=result,
                details=resource.get("err_msg") or "resolve failed",
            )

        file_ids = [
            int(f["id"]) for f in (resource.get("files") or [])
            if int(f.get("id") or 0) > 0
        ]
        if not file_ids:
            raise ProviderResponseError("Resolved resource has no files")

        selected.append({
            "resource_id": int(resource["id"]),
            "select_file_id": file_ids,
        })
    return selected


def task_id_from_submit(data: dict) -> Optional[str]:
    """Provider-assigned id of the first submitted task, when the response has one."""
    task_list = (data or {}).get("task_list") or []
    if task_list and task_list[0].get("task_id") is not None:
        return str(task_list[0]["task_id"])
    return None


class OfflineTaskSubmitter:
    """Submits magnet links as offline tasks and records their naming intent."""

    def __init__(
        self,
        api: Pan123Api,
        folders: FolderResolver,
        lister: TaskStatusLister,
        records: TaskRecordStore,
        task_lookup_delay: float = 2.0,
    ):
        self._api = api
        self._folders = folders
        self._lister = lister
        self._records = records
        self.task_lookup_delay = task_lookup_delay

    async def submit(self, magnet: str, save_path: str, target_name: str) -> bool:
        """Submit ``magnet`` to be fetched into ``save_path``. Never raises."""
        with LogContext(task_name=target_name, save_path=save_path, operation="submit"):
            try:
                logger.info(f"123pan offline download: {target_name}")

                resources = select_all_files(await self._api.resolve_offline(magnet))
                upload_dir = await self._upload_dir(save_path)
                data = await self._api.submit_offline(resources, upload_dir)

                task_id = task_id_from_submit(data)
                if task_id is None:
                    logger.warning("Submit response carried no task id, searching the task list")
                    task_id = await self._recover_task_id()

                if task_id is None:
                    logger.warning(f"Could not determine task id, files will not be renamed: {target_name}")
                else:
                    self._records.put(SubmittedTaskRecord(
                        task_id=task_id,
                        save_path=save_path,
                        target_name=target_name,
                    ))

                logger.info(f"123pan offline task created: {target_name}")
                return True

            except Exception as e:
                logger.error(f"123pan offline download failed: {e}")
                return False

    async def _upload_dir(self, save_path: str) -> int:
        try:
            return await self._folders.resolve_or_create(save_path)
        except Exception as e:
            logger.warning(f"Could not resolve folder {save_path}, using root: {e}")
            return ROOT_FOLDER_ID

    async def _recover_task_id(self) -> Optional[str]:
        await asyncio.sleep(self.task_lookup_delay)
        tasks = await self._lister.list_tasks()
        task_id = adopt_untracked_task_id((t.task_id for t in tasks), self._records)
        if task_id:
            logger.info(f"Adopted untracked task {task_id} as the new submission")
        return task_id
