"""
Data models shared by the driver components.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

ROOT_FOLDER_ID = 0


class TaskState(Enum):
    """Driver-level state of an offline task."""
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"


# Provider status codes of the offline task list
PROVIDER_STATUS_TO_STATE = {
    0: TaskState.QUEUED,
    1: TaskState.DOWNLOADING,
    2: TaskState.COMPLETED,
    3: TaskState.FAILED,
}

# Map driver states to torrent-client state strings
STATE_TO_QBIT_STATE = {
    TaskState.QUEUED: "queuedDL",
    TaskState.DOWNLOADING: "downloading",
    TaskState.COMPLETED: "pausedUP",
    TaskState.FAILED: "error",
}


class EntryType(Enum):
    """Type field of a file list entry."""
    FILE = 0
    FOLDER = 1


@dataclass
class RemoteTask:
    """An offline task as seen by the pipeline, rebuilt on every poll."""
    task_id: str
    display_name: str
    size_bytes: int
    state: TaskState
    progress: float  # percent, 0-100
    download_dir: str = ""  # empty when no submission record exists
    tags: List[str] = field(default_factory=lambda: ["ani-rss"])

    @property
    def qbit_state(self) -> str:
        """Get torrent-client compatible state string."""
        return STATE_TO_QBIT_STATE.get(self.state, "unknown")

    def to_dict(self) -> dict:
        return {
            "hash": self.task_id,
            "name": self.display_name,
            "size": self.size_bytes,
            "state": self.state.value,
            "qbit_state": self.qbit_state,
            "progress": self.progress,
            "download_dir": self.download_dir,
            "tags": list(self.tags),
        }


@dataclass
class RemoteEntry:
    """One entry of a remote directory listing."""
    file_id: int
    file_name: str
    entry_type: EntryType
    parent_id: int

    @property
    def is_folder(self) -> bool:
        return self.entry_type == EntryType.FOLDER

    @classmethod
    def from_api(cls, item: dict, parent_id: int) -> "RemoteEntry":
        return cls(
            file_id=int(item["FileId"]),
            file_name=str(item["FileName"]),
            entry_type=EntryType.FOLDER if int(item.get("Type", 0)) == 1 else EntryType.FILE,
            parent_id=int(item.get("ParentFileId", parent_id)),
        )


@dataclass
class RemoteFileCandidate:
    """A file found during reconciliation that belongs to a completed task."""
    file_id: int
    file_name: str
    parent_folder_id: int
    target_folder_id: int

    @property
    def is_in_target_directory(self) -> bool:
        return self.parent_folder_id == self.target_folder_id


@dataclass
class Show:
    """The series an episode belongs to, as known by the pipeline."""
    title: str
    year: Optional[int] = None
    season: int = 1
    subgroup: Optional[str] = None


@dataclass
class Episode:
    """A single release picked up by the pipeline."""
    title: str
    rename: str  # target name template for the downloaded files
    subgroup: Optional[str] = None
