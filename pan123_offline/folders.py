"""
Folder path resolution on the remote drive.
"""

import asyncio
import logging
from typing import List, Optional

from .api import Pan123Api
from .exceptions import ConsistencyError
from .models import ROOT_FOLDER_ID, RemoteEntry

logger = logging.getLogger(__name__)


def split_path(path: Optional[str]) -> List[str]:
    """Split a logical save path into its non-empty segments."""
    if not path:
        return []
    return [segment for segment in path.strip().split("/") if segment.strip()]


def created_folder_id(data: dict) -> Optional[int]:
    """Pull the new folder id out of a creation response, if it carries a usable one."""
    if not data:
        return None
    info = data.get("Info") if isinstance(data.get("Info"), dict) else data
    try:
        folder_id = int(info.get("FileId") or 0)
    except (TypeError, ValueError):
        return None
    return folder_id or None


class FolderResolver:
    """
    Maps a save path such as ``/Show/S1`` to a folder id, creating missing
    segments. No ids are cached: every lookup lists the tree again.
    """

    def __init__(self, api: Pan123Api, page_size: int = 100, settle_delay: float = 0.5):
        self._api = api
        self.page_size = page_size
        self.settle_delay = settle_delay

    async def resolve_or_create(self, path: Optional[str]) -> int:
        """
        Resolve ``path`` to a folder id, creating missing directories.

        Raises:
            ConsistencyError: a created directory never became visible
            Pan123ClientError: listing or creation failed
        """
        segments = split_path(path)
        if not segments:
            return ROOT_FOLDER_ID

        parent_id = ROOT_FOLDER_ID
        for name in segments:
            folder_id = await self.find_folder(parent_id, name)
            if folder_id is None:
                folder_id = await self.create_folder(parent_id, name)
            parent_id = folder_id

        logger.debug(f"Resolved folder {path} -> {parent_id}")
        return parent_id

    async def find_folder(self, parent_id: int, name: str) -> Optional[int]:
        """Return the id of the directory ``name`` directly under ``parent_id``."""
        for item in await self._api.list_files(parent_id, limit=self.page_size):
            entry = RemoteEntry.from_api(item, parent_id)
            if entry.is_folder and entry.file_name == name:
                return entry.file_id
        return None

    async def create_folder(self, parent_id: int, name: str) -> int:
        data = await self._api.create_directory(parent_id, name)
        folder_id = created_folder_id(data)
        if folder_id:
            logger.info(f"Created folder {name} (ID: {folder_id})")
            return folder_id

        # Creation does not always hand back the id; look it up once more.
        logger.info(f"Folder {name} created without an id, looking it up")
        await asyncio.sleep(self.settle_delay)
        folder_id = await self.find_folder(parent_id, name)
        if folder_id is None:
            raise ConsistencyError(
                f"Folder not visible after creation: {name}",
                parent_id=parent_id,
                name=name,
            )
        return folder_id
