"""
Pytest configuration and shared fixtures.
"""

import itertools
import logging
from typing import Dict, List, Optional

import pytest

from pan123_offline.config import Settings
from pan123_offline.exceptions import AuthenticationError, ProviderResponseError
from pan123_offline.store import SharedState


# ============================================================================
# Fake provider
# ============================================================================

class FakePan123Api:
    """
    In-memory stand-in for ``Pan123Api``: a file tree, an offline task list and
    a credential check. Every call is recorded in ``calls``; ``fail`` maps a
    method name to an exception raised on its next invocations.
    """

    def __init__(self, password: str = "secret"):
        self.token: Optional[str] = None
        self.password = password
        self.valid_tokens = set()
        self.entries: Dict[int, dict] = {}
        self.tasks: List[dict] = []
        self.calls: List[tuple] = []
        self.fail: Dict[str, Exception] = {}

        self.create_returns_id = True
        self.submit_returns_task_id = True
        self.resolve_name = "[Group] Show - 01.mkv"
        self.resolve_result = None
        self.closed = False

        self._file_ids = itertools.count(100)
        self._task_ids = itertools.count(5000)
        self._tokens = itertools.count(1)

    # -- helpers for arranging state -----------------------------------

    def add_folder(self, parent_id: int, name: str) -> int:
        return self._add_entry(parent_id, name, 1)

    def add_file(self, parent_id: int, name: str) -> int:
        return self._add_entry(parent_id, name, 0)

    def _add_entry(self, parent_id: int, name: str, entry_type: int) -> int:
        file_id = next(self._file_ids)
        self.entries[file_id] = {
            "FileId": file_id,
            "FileName": name,
            "Type": entry_type,
            "ParentFileId": parent_id,
        }
        return file_id

    def add_task(self, name: str, status: int = 0, upload_dir: int = 0, progress: float = 0.0) -> str:
        task_id = next(self._task_ids)
        self.tasks.append({
            "task_id": task_id,
            "name": name,
            "size": 1_000_000,
            "status": status,
            "progress": progress,
            "upload_idr": upload_dir,
        })
        return str(task_id)

    def set_status(self, task_id: str, status: int) -> None:
        for task in self.tasks:
            if str(task["task_id"]) == str(task_id):
                task["status"] = status

    def children(self, parent_id: int) -> List[dict]:
        return [e for e in self.entries.values() if e["ParentFileId"] == parent_id]

    def names_in(self, parent_id: int) -> List[str]:
        return sorted(e["FileName"] for e in self.children(parent_id))

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.fail:
            raise self.fail[method]

    def _require_token(self) -> None:
        if not self.token:
            raise AuthenticationError("No access token available")

    # -- Pan123Api surface -----------------------------------------------

    async def sign_in(self, body: dict) -> str:
        self._record("sign_in", body)
        if body.get("password") != self.password:
            raise ProviderResponseError("123pan API error on /user/sign_in", code=401, details="bad credentials")
        token = f"token-{next(self._tokens)}"
        self.valid_tokens.add(token)
        return token

    async def user_info(self) -> dict:
        self._record("user_info")
        self._require_token()
        if self.token not in self.valid_tokens:
            raise ProviderResponseError("123pan API error on /user/info", code=401, details="token expired")
        return {"uid": 1}

    async def resolve_offline(self, magnet: str) -> List[dict]:
        self._record("resolve_offline", magnet)
        self._require_token()
        if self.resolve_result is not None:
            return self.resolve_result
        return [{
            "id": 7,
            "result": 0,
            "name": self.resolve_name,
            "files": [{"id": 71}, {"id": 72}],
        }]

    async def submit_offline(self, resources: List[dict], upload_dir: int) -> dict:
        self._record("submit_offline", resources, upload_dir)
        self._require_token()
        task_id = self.add_task(self.resolve_name, status=0, upload_dir=upload_dir)
        if not self.submit_returns_task_id:
            return {}
        return {"task_list": [{"task_id": int(task_id)}]}

    async def list_offline_tasks(self, statuses, page_size: int = 100, page: int = 1) -> List[dict]:
        statuses = list(statuses)
        self._record("list_offline_tasks", statuses)
        self._require_token()
        matching = [dict(t) for t in self.tasks if t["status"] in statuses]
        matching.sort(key=lambda t: t["task_id"], reverse=True)
        return matching[:page_size]

    async def delete_offline_tasks(self, task_ids) -> None:
        task_ids = [int(t) for t in task_ids]
        self._record("delete_offline_tasks", task_ids)
        self._require_token()
        self.tasks = [t for t in self.tasks if t["task_id"] not in task_ids]

    async def list_files(self, parent_id: int, limit: int = 100) -> List[dict]:
        self._record("list_files", parent_id, limit)
        self._require_token()
        items = sorted(self.children(parent_id), key=lambda e: e["FileId"], reverse=True)
        return [dict(e) for e in items[:limit]]

    async def create_directory(self, parent_id: int, name: str) -> dict:
        self._record("create_directory", parent_id, name)
        self._require_token()
        folder_id = self.add_folder(parent_id, name)
        if not self.create_returns_id:
            return {}
        return {"Info": {"FileId": folder_id, "FileName": name}}

    async def rename_file(self, file_id: int, new_name: str) -> None:
        self._record("rename_file", file_id, new_name)
        self._require_token()
        self.entries[file_id]["FileName"] = new_name

    async def move_files(self, file_ids, parent_id: int) -> None:
        file_ids = list(file_ids)
        self._record("move_files", file_ids, parent_id)
        self._require_token()
        for file_id in file_ids:
            self.entries[file_id]["ParentFileId"] = parent_id

    async def trash_files(self, file_ids) -> None:
        file_ids = list(file_ids)
        self._record("trash_files", file_ids)
        self._require_token()
        for file_id in file_ids:
            self.entries.pop(file_id, None)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_api():
    """An in-memory provider with no token attached."""
    return FakePan123Api()


@pytest.fixture
def logged_in_api(fake_api):
    """An in-memory provider with a valid token attached."""
    fake_api.token = "token-0"
    fake_api.valid_tokens.add("token-0")
    return fake_api


# ============================================================================
# Settings / State Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Settings with test credentials and no settle delays."""
    return Settings(
        pan123_username="user@example.com",
        pan123_password="secret",
        folder_settle_delay=0,
        move_settle_delay=0,
        task_lookup_delay=0,
        poll_interval=0,
        api_key=None,
    )


@pytest.fixture
def shared_state():
    """A fresh, isolated shared state."""
    return SharedState()


@pytest.fixture
def records(shared_state):
    return shared_state.task_records


@pytest.fixture
def driver(shared_state, settings, fake_api):
    """A driver wired to the in-memory provider."""
    from pan123_offline.driver import Pan123Driver

    return Pan123Driver(shared_state, settings, api=fake_api)


@pytest.fixture
def magnet_file(tmp_path):
    """A file holding a magnet link, as the pipeline hands it over."""
    path = tmp_path / "episode.magnet"
    path.write_text("magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567&dn=Show\n")
    return path


# ============================================================================
# Logging Fixtures
# ============================================================================

@pytest.fixture
def activity_log_handler():
    """Create an activity log handler for tests."""
    from pan123_offline.logging_config import ActivityLogHandler

    return ActivityLogHandler(capacity=100)


@pytest.fixture
def clean_logging():
    """Clean up logging handlers before and after test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level

    yield

    # Restore original state
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in original_handlers:
        root.addHandler(handler)
    root.setLevel(original_level)
