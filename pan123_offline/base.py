"""
Download-backend contract consumed by the episode pipeline.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Union

from .config import Settings
from .models import Episode, RemoteTask, Show


class BaseDownloader(ABC):
    """A pluggable download backend (torrent client, cloud drive, ...)."""

    @abstractmethod
    async def login(self, test: bool, config: Settings) -> bool:
        """Authenticate; ``test`` forces a fresh login instead of reusing a cached one."""

    @abstractmethod
    async def download(
        self,
        show: Show,
        episode: Episode,
        save_path: str,
        torrent_file: Union[str, Path],
        is_special: bool,
    ) -> bool:
        """Start downloading ``torrent_file`` into ``save_path``."""

    @abstractmethod
    async def get_torrents_infos(self) -> List[RemoteTask]:
        """Current downloads, normalized."""

    @abstractmethod
    async def delete(self, task: RemoteTask, delete_files: bool) -> bool:
        """Remove a download."""

    @abstractmethod
    async def rename(self, task: RemoteTask) -> None:
        """Bring a finished download's files in line with the naming convention."""

    @abstractmethod
    async def add_tags(self, task: RemoteTask, tags: str) -> bool:
        ...

    @abstractmethod
    async def update_trackers(self, trackers: Iterable[str]) -> None:
        ...

    @abstractmethod
    async def set_save_path(self, task: RemoteTask, path: str) -> None:
        ...

    async def close(self) -> None:
        """Release transport resources."""
