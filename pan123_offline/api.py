"""
123pan Web API Client
Thin aiohttp wrapper around the login and B-API endpoints used by the driver.
Every method raises on failure; callers decide how to degrade.
"""

import logging
from typing import Iterable, List, Optional

import aiohttp

from .exceptions import AuthenticationError, ProviderResponseError, TransportError
from .signing import APP_VERSION, PLATFORM, sign_url

logger = logging.getLogger(__name__)

LOGIN_SUCCESS = 200
API_SUCCESS = 0
DRIVE_ID = 0


class Pan123Api:
    """
    Client for the 123pan web API.

    Login endpoints answer ``code == 200`` on success, B-API endpoints
    ``code == 0``. All B-API URLs are signed and carry the bearer token.
    """

    def __init__(
        self,
        base_url: str = "https://www.123pan.com",
        login_url: str = "https://login.123pan.com/api",
        token: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.login_url = login_url.rstrip("/")
        self.b_api_url = f"{self.base_url}/b/api"
        self.token = token

        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _headers(self, auth: bool = True) -> dict:
        headers = {
            "origin": self.base_url,
            "referer": self.base_url + "/",
            "platform": PLATFORM,
            "app-version": APP_VERSION,
        }
        if auth:
            if not self.token:
                raise AuthenticationError("No access token available")
            headers["authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        auth: bool = True,
        sign: bool = True,
        success_code: int = API_SUCCESS,
    ) -> dict:
        """Make a request and return the decoded body once its code is checked."""
        headers = self._headers(auth)
        session = await self._get_session()
        target = sign_url(url) if sign else url

        try:
            async with session.request(
                method, target, json=json, params=params, headers=headers
            ) as response:
                if response.status >= 400:
                    raise TransportError(
                        f"HTTP {response.status}: {response.reason}",
                        status=response.status,
                    )
                result = await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise TransportError("123pan request failed", details=str(e)) from e

        if not isinstance(result, dict):
            raise ProviderResponseError("Unexpected response shape", details=str(result)[:200])

        code = result.get("code")
        if code != success_code:
            message = result.get("message") or "unknown error"
            raise ProviderResponseError(
                f"123pan API error on {url.rsplit('/api', 1)[-1]}",
                code=code,
                details=message,
            )

        return result

    async def _data(self, method: str, endpoint: str, **kwargs) -> dict:
        result = await self._request(method, f"{self.b_api_url}{endpoint}", **kwargs)
        data = result.get("data")
        return data if isinstance(data, dict) else {}

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def sign_in(self, body: dict) -> str:
        """Post credentials and return the access token."""
        result = await self._request(
            "POST",
            f"{self.login_url}/user/sign_in",
            json=body,
            auth=False,
            sign=False,
            success_code=LOGIN_SUCCESS,
        )
        data = result.get("data") or {}
        token = data.get("token")
        if not token:
            raise ProviderResponseError("Login response carried no token")
        return token

    async def user_info(self) -> dict:
        """Lightweight authenticated call used to verify a token."""
        return await self._data("GET", "/user/info")

    # ------------------------------------------------------------------
    # Offline tasks
    # ------------------------------------------------------------------

    async def resolve_offline(self, magnet: str) -> List[dict]:
        """Resolve a magnet link into selectable resources."""
        data = await self._data(
            "POST", "/v2/offline_download/task/resolve", json={"urls": magnet}
        )
        resources = data.get("list")
        return resources if isinstance(resources, list) else []

    async def submit_offline(self, resources: List[dict], upload_dir: int) -> dict:
        """Submit offline tasks; ``resources`` are ``{resource_id, select_file_id}`` dicts."""
        return await self._data(
            "POST",
            "/v2/offline_download/task/submit",
            json={"resource_list": resources, "upload_dir": upload_dir},
        )

    async def list_offline_tasks(
        self, statuses: Iterable[int], page_size: int = 100, page: int = 1
    ) -> List[dict]:
        data = await self._data(
            "POST",
            "/offline_download/task/list",
            json={
                "current_page": page,
                "page_size": page_size,
                "status_arr": list(statuses),
            },
        )
        tasks = data.get("list")
        return tasks if isinstance(tasks, list) else []

    async def delete_offline_tasks(self, task_ids: Iterable[int]) -> None:
        await self._data(
            "POST",
            "/offline_download/task/delete",
            json={"task_ids": [int(t) for t in task_ids]},
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def list_files(self, parent_id: int, limit: int = 100) -> List[dict]:
        """List one page of a directory's children, newest first."""
        data = await self._data(
            "GET",
            "/file/list/new",
            params={
                "driveId": DRIVE_ID,
                "limit": limit,
                "parentFileId": parent_id,
                "trashed": "false",
                "orderBy": "file_id",
                "orderDirection": "desc",
            },
        )
        entries = data.get("InfoList")
        return entries if isinstance(entries, list) else []

    async def create_directory(self, parent_id: int, name: str) -> dict:
        return await self._data(
            "POST",
            "/file/upload_request",
            json={
                "driveId": DRIVE_ID,
                "etag": "",
                "fileName": name,
                "parentFileId": parent_id,
                "size": 0,
                "type": 1,
            },
        )

    async def rename_file(self, file_id: int, new_name: str) -> None:
        await self._data(
            "POST",
            "/file/rename",
            json={"driveId": DRIVE_ID, "fileId": file_id, "fileName": new_name},
        )

    async def move_files(self, file_ids: Iterable[int], parent_id: int) -> None:
        await self._data(
            "POST",
            "/file/mod_pid",
            json={
                "fileIdList": [{"FileId": f} for f in file_ids],
                "parentFileId": parent_id,
            },
        )

    async def trash_files(self, file_ids: Iterable[int]) -> None:
        """Send files or folders to the provider's trash (not permanent deletion)."""
        await self._data(
            "POST",
            "/file/trash",
            json={
                "driveId": DRIVE_ID,
                "operation": True,
                "fileTrashInfoList": [{"FileId": f} for f in file_ids],
            },
        )
