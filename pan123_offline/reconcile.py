"""
Post-completion file reconciliation.

Once the provider finishes an offline task its files sit somewhere under the
task's upload folder, named after the torrent. The provider keeps no usable
task -> file link, so the files are found again by name, moved up into the
upload folder, renamed after the recorded template, and the folders they
came from are trashed when left empty.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .api import Pan123Api
from .heuristics import extract_subgroup, matches_task_name
from .lister import TaskStatusLister, upload_dir_of
from .logging_config import LogContext
from .models import RemoteEntry, RemoteFileCandidate, RemoteTask, TaskState
from .renamer import Renamer
from .store import TaskRecordStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation run."""
    task_id: str
    skipped_reason: Optional[str] = None
    candidates: int = 0
    moved: List[int] = field(default_factory=list)
    renamed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    trashed_folders: List[int] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


class FileReconciler:
    """Locates, moves and renames the files of completed offline tasks."""

    def __init__(
        self,
        api: Pan123Api,
        lister: TaskStatusLister,
        records: TaskRecordStore,
        renamer: Renamer,
        page_size: int = 100,
        empty_check_page_size: int = 10,
        move_settle_delay: float = 0.5,
    ):
        self._api = api
        self._lister = lister
        self._records = records
        self._renamer = renamer
        self.page_size = page_size
        self.empty_check_page_size = empty_check_page_size
        self.move_settle_delay = move_settle_delay

    async def reconcile(self, task: RemoteTask) -> ReconcileResult:
        """
        Reconcile the files of a completed task. Never raises.

        Tasks without submission metadata are skipped without any remote
        call. Past that point the task record is always retired, so each
        task is reconciled at most once.
        """
        result = ReconcileResult(task_id=task.task_id)

        if task.state != TaskState.COMPLETED:
            result.skipped_reason = "not completed"
            return result
        if not task.download_dir:
            logger.debug(f"Skipping task without submission record: {task.display_name}")
            result.skipped_reason = "no submission record"
            return result

        with LogContext(task_id=task.task_id, task_name=task.display_name, operation="reconcile"):
            try:
                await self._reconcile(task, result)
            except Exception as e:
                logger.error(f"Reconciliation failed for {task.display_name}: {e}")
                result.skipped_reason = result.skipped_reason or f"error: {e}"
            finally:
                self._records.discard(task.task_id)

        return result

    async def _reconcile(self, task: RemoteTask, result: ReconcileResult) -> None:
        template = self._template(task)
        if not template:
            logger.info(f"No target name available, leaving files untouched: {task.display_name}")
            result.skipped_reason = "no template"
            return

        raw = await self._lister.find_task(task.task_id)
        target_dir = upload_dir_of(raw) if raw else None
        if not target_dir:
            logger.warning(f"No upload folder known for task {task.task_id}")
            result.skipped_reason = "no upload folder"
            return

        candidates = await self.collect_candidates(target_dir, task.display_name)
        result.candidates = len(candidates)
        if not candidates:
            logger.warning(f"No files found for task: {task.display_name}")
            result.skipped_reason = "no files found"
            return

        logger.debug(f"Found {len(candidates)} file(s) for {task.display_name}")
        source_folders: Set[int] = set()
        for candidate in candidates:
            moved = await self._process_file(task, candidate, template, result)
            if moved and candidate.parent_folder_id != target_dir:
                source_folders.add(candidate.parent_folder_id)

        for folder_id in sorted(source_folders):
            if await self.trash_if_empty(folder_id):
                result.trashed_folders.append(folder_id)

        await self._retire_task(task.task_id)

    def _template(self, task: RemoteTask) -> Optional[str]:
        record = self._records.get(task.task_id)
        if record and record.target_name:
            return record.target_name

        subgroup = extract_subgroup(task.display_name)
        try:
            return self._renamer.template_for(task.display_name, subgroup)
        except Exception as e:
            logger.warning(f"Renamer could not build a name for {task.display_name}: {e}")
            return None

    async def _process_file(
        self,
        task: RemoteTask,
        candidate: RemoteFileCandidate,
        template: str,
        result: ReconcileResult,
    ) -> bool:
        """Move and rename one file. Returns True when the file was moved."""
        final_name = self._renamer.final_name(template, candidate.file_name)

        if candidate.file_name == final_name and candidate.is_in_target_directory:
            logger.debug(f"File already in place: {candidate.file_name}")
            return False

        moved = False
        if not candidate.is_in_target_directory:
            try:
                await self._api.move_files([candidate.file_id], candidate.target_folder_id)
                moved = True
                result.moved.append(candidate.file_id)
                logger.info(
                    f"Moved {candidate.file_name} -> folder {candidate.target_folder_id}"
                )
            except Exception as e:
                logger.error(f"Failed to move {candidate.file_name}: {e}")
                result.failed.append(candidate.file_id)
                return False

        if candidate.file_name != final_name:
            try:
                await self._api.rename_file(candidate.file_id, final_name)
                result.renamed.append(candidate.file_id)
                task.display_name = final_name
                logger.info(f"Renamed {candidate.file_name} -> {final_name}")
            except Exception as e:
                logger.error(f"Failed to rename {candidate.file_name}: {e}")
                result.failed.append(candidate.file_id)

        return moved

    async def collect_candidates(self, root_id: int, display_name: str) -> List[RemoteFileCandidate]:
        """
        Depth-first search below ``root_id`` for files matching ``display_name``.

        Uses an explicit stack of folder ids; each folder's own files come
        before those of its subfolders, subfolders in listing order.
        """
        candidates: List[RemoteFileCandidate] = []
        stack = [root_id]
        visited: Set[int] = set()

        while stack:
            folder_id = stack.pop()
            if folder_id in visited:
                continue
            visited.add(folder_id)

            try:
                items = await self._api.list_files(folder_id, limit=self.page_size)
            except Exception as e:
                logger.warning(f"Failed to list folder {folder_id}: {e}")
                continue

            subfolders = []
            for item in items:
                entry = RemoteEntry.from_api(item, folder_id)
                if entry.is_folder:
                    subfolders.append(entry.file_id)
                elif matches_task_name(entry.file_name, display_name):
                    candidates.append(RemoteFileCandidate(
                        file_id=entry.file_id,
                        file_name=entry.file_name,
                        parent_folder_id=folder_id,
                        target_folder_id=root_id,
                    ))

            stack.extend(reversed(subfolders))

        return candidates

    async def trash_if_empty(self, folder_id: int) -> bool:
        """Send ``folder_id`` to the trash only if a fresh listing shows it empty."""
        await asyncio.sleep(self.move_settle_delay)
        try:
            remaining = await self._api.list_files(folder_id, limit=self.empty_check_page_size)
        except Exception as e:
            logger.warning(f"Could not check folder {folder_id}, leaving it: {e}")
            return False

        if remaining:
            logger.debug(f"Folder {folder_id} still has {len(remaining)} entries, keeping it")
            return False

        try:
            await self._api.trash_files([folder_id])
            logger.info(f"Trashed empty folder {folder_id}")
            return True
        except Exception as e:
            logger.warning(f"Failed to trash folder {folder_id}: {e}")
            return False

    async def _retire_task(self, task_id: str) -> None:
        self._records.discard(task_id)
        try:
            await self._api.delete_offline_tasks([task_id])
            logger.info(f"Deleted offline task record {task_id}")
        except Exception as e:
            logger.warning(f"Failed to delete offline task {task_id}: {e}")
