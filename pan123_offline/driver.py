"""
123pan Offline Download Driver
Offloads magnet links to 123pan's offline download and reconciles the
resulting files once the provider has fetched them.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .api import Pan123Api
from .base import BaseDownloader
from .config import Settings
from .folders import FolderResolver
from .lister import TaskStatusLister
from .models import Episode, RemoteTask, Show, TaskState
from .reconcile import FileReconciler, ReconcileResult
from .renamer import DefaultRenamer, Renamer
from .session import SessionManager
from .store import SharedState
from .submitter import OfflineTaskSubmitter
from .torrent import read_magnet

logger = logging.getLogger(__name__)


class Pan123Driver(BaseDownloader):
    """
    Download backend backed by 123pan offline tasks.

    Instances are cheap; the session cache and task records live in the
    injected ``SharedState`` so that every instance in the process sees the
    same login and the same submissions.
    """

    def __init__(
        self,
        state: SharedState,
        settings: Optional[Settings] = None,
        renamer: Optional[Renamer] = None,
        api: Optional[Pan123Api] = None,
    ):
        self.state = state
        self.settings = settings or Settings()
        self.renamer = renamer or DefaultRenamer()
        self.api = api or Pan123Api(
            base_url=self.settings.pan123_base_url,
            login_url=self.settings.pan123_login_url,
        )
        self._build_components()

    def _build_components(self) -> None:
        settings = self.settings
        records = self.state.task_records

        self.sessions = SessionManager(
            self.api,
            self.state.session_cache,
            validity_seconds=settings.token_validity_seconds,
            refresh_lead=settings.token_refresh_lead_seconds,
        )
        self.folders = FolderResolver(
            self.api,
            page_size=settings.folder_page_size,
            settle_delay=settings.folder_settle_delay,
        )
        self.lister = TaskStatusLister(self.api, records, page_size=settings.task_page_size)
        self.submitter = OfflineTaskSubmitter(
            self.api,
            self.folders,
            self.lister,
            records,
            task_lookup_delay=settings.task_lookup_delay,
        )
        self.reconciler = FileReconciler(
            self.api,
            self.lister,
            records,
            self.renamer,
            page_size=settings.folder_page_size,
            empty_check_page_size=settings.empty_check_page_size,
            move_settle_delay=settings.move_settle_delay,
        )

    async def login(self, test: bool, config: Settings) -> bool:
        """
        Log in with ``config``'s credentials; ``test`` forces a fresh login.

        ``config`` only supplies credentials for this call; the instance keeps
        its own settings for later downloads and polling.
        """
        return await self.sessions.login(
            force_refresh=test,
            username=config.pan123_username,
            password=config.pan123_password,
        )

    async def _ensure_session(self) -> bool:
        if self.sessions.ensure_token(self.settings.pan123_username):
            return True
        return await self.login(False, self.settings)

    async def download(
        self,
        show: Show,
        episode: Episode,
        save_path: str,
        torrent_file: Union[str, Path],
        is_special: bool,
    ) -> bool:
        name = episode.rename
        try:
            if not await self._ensure_session():
                logger.error(f"Not logged in to 123pan, cannot download: {name}")
                return False
            magnet = await read_magnet(torrent_file)
        except Exception as e:
            logger.error(f"123pan offline download failed for {name}: {e}")
            return False

        return await self.submitter.submit(magnet, save_path, name)

    async def get_torrents_infos(self) -> List[RemoteTask]:
        if not await self._ensure_session():
            return []
        return await self.lister.list_tasks()

    async def delete(self, task: RemoteTask, delete_files: bool) -> bool:
        if delete_files:
            logger.debug(f"123pan keeps fetched files when deleting a task: {task.display_name}")
        if not await self._ensure_session():
            return False

        try:
            await self.api.delete_offline_tasks([task.task_id])
        except Exception as e:
            logger.error(f"Failed to delete 123pan offline task {task.display_name}: {e}")
            return False

        self.state.task_records.discard(task.task_id)
        logger.info(f"Deleted 123pan offline task: {task.display_name}")
        return True

    async def rename(self, task: RemoteTask) -> None:
        await self.reconcile(task)

    async def reconcile(self, task: RemoteTask) -> ReconcileResult:
        """Run reconciliation for ``task`` and return what it did."""
        if task.state != TaskState.COMPLETED:
            logger.debug(f"Task not completed, skipping rename: {task.display_name}")
            return ReconcileResult(task_id=task.task_id, skipped_reason="not completed")
        if not task.download_dir:
            return await self.reconciler.reconcile(task)
        if not await self._ensure_session():
            return ReconcileResult(task_id=task.task_id, skipped_reason="not logged in")
        return await self.reconciler.reconcile(task)

    async def add_tags(self, task: RemoteTask, tags: str) -> bool:
        logger.debug("123pan has no tags")
        return False

    async def update_trackers(self, trackers: Iterable[str]) -> None:
        logger.debug("123pan needs no trackers")

    async def set_save_path(self, task: RemoteTask, path: str) -> None:
        logger.debug(f"123pan cannot change the save path of {task.display_name}")

    async def close(self) -> None:
        await self.api.close()
