"""
Admin HTTP surface for the 123pan offline driver.
Exposes login and offline-download test actions, the current task list and
the activity log, and runs the poll loop that reconciles finished tasks.
"""

import asyncio
import logging
import os
import re
import tempfile
import time
from contextlib import asynccontextmanager
from typing import Optional

import aiofiles
from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .config import Settings
from .driver import Pan123Driver
from .exceptions import MissingCredentialsError
from .logging_config import ActivityLogHandler, setup_logging
from .models import Episode, Show, TaskState
from .store import SharedState

logger = logging.getLogger(__name__)

# Values substituted into download_path_template by the test-download action
TEST_SHOW = Show(title="Test Show", year=2024, season=1)
TEST_EPISODE_TITLE = "Test Show S01E01"
# Prefix of the unique target name given to each test download
TEST_RENAME_PREFIX = "Test-Offline-Download"

# Global instances
settings = Settings()
shared_state: Optional[SharedState] = None
driver: Optional[Pan123Driver] = None
activity_log_handler: Optional[ActivityLogHandler] = None
_poll_task: Optional[asyncio.Task] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class OfflineDownloadRequest(BaseModel):
    magnet: str
    username: Optional[str] = None
    password: Optional[str] = None
    save_path: Optional[str] = None


async def poll_once(target: Pan123Driver) -> int:
    """List tasks and reconcile the completed ones. Returns how many were reconciled."""
    reconciled = 0
    for task in await target.get_torrents_infos():
        if task.state != TaskState.COMPLETED or not task.download_dir:
            continue
        await target.rename(task)
        reconciled += 1
    return reconciled


async def _periodic_task_poller():
    """Periodically poll the provider and reconcile completed tasks."""
    while True:
        try:
            await asyncio.sleep(settings.poll_interval)
            if driver:
                count = await poll_once(driver)
                if count:
                    logger.info(f"Poll cycle reconciled {count} task(s)")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Error in task poller: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global shared_state, driver, activity_log_handler, _poll_task

    # Setup logging first
    activity_log_handler = setup_logging(settings)

    logger.info("Starting 123pan offline driver...")

    shared_state = SharedState()
    driver = Pan123Driver(shared_state, settings)

    if settings.pan123_username:
        if await driver.login(False, settings):
            logger.info("123pan session ready")
        else:
            logger.error("123pan login failed at startup, will retry on demand")
    else:
        logger.warning("PAN123_USERNAME not set, driver stays logged out")

    if settings.poll_interval > 0:
        _poll_task = asyncio.create_task(_periodic_task_poller())

    yield

    if _poll_task:
        _poll_task.cancel()
        try:
            await _poll_task
        except asyncio.CancelledError:
            pass
        _poll_task = None

    if driver:
        await driver.close()
    logger.info("123pan offline driver stopped")


app = FastAPI(
    title="123pan Offline Driver",
    description="Offline-download backend for 123pan with post-download renaming",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Helper Functions
# =============================================================================


def check_api_key(api_key: Optional[str]) -> None:
    """Reject the request when an API key is configured and does not match."""
    if settings.api_key and api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_driver() -> Pan123Driver:
    if not driver:
        raise HTTPException(status_code=500, detail="Driver not initialized")
    return driver


def make_driver(config: Settings) -> Pan123Driver:
    """A short-lived driver for one test action, sharing the process session cache and task records."""
    if shared_state is None:
        raise HTTPException(status_code=500, detail="Driver not initialized")
    return Pan123Driver(shared_state, config)


def request_settings(username: Optional[str], password: Optional[str]) -> Settings:
    try:
        return settings.with_credentials(username, password).require_credentials()
    except MissingCredentialsError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def unique_test_name() -> str:
    return f"{TEST_RENAME_PREFIX}-{int(time.time() * 1000)}"


def sanitize_error_message(error: Exception) -> str:
    """Sanitize error messages to avoid leaking sensitive information."""
    error_str = str(error)
    sensitive_patterns = ["token", "password", "secret", "bearer", "credential"]
    error_lower = error_str.lower()
    for pattern in sensitive_patterns:
        if pattern in error_lower:
            return "An internal error occurred. Check server logs for details."
    if len(error_str) > 200:
        return error_str[:200] + "..."
    return error_str


def render_save_path(template: str, show: Show = TEST_SHOW, title: str = TEST_EPISODE_TITLE) -> str:
    """Substitute ``${name}``, ``${year}``, ``${season}`` and ``${title}`` in ``template``."""
    values = {
        "name": show.title,
        "year": str(show.year or ""),
        "season": str(show.season),
        "title": title,
    }
    return re.sub(
        r"\$\{(\w+)\}",
        lambda m: values.get(m.group(1), m.group(0)),
        template,
    )


# =============================================================================
# Test Actions
# =============================================================================


@app.post("/pan123TestLogin")
async def test_login(body: LoginRequest, x_api_key: Optional[str] = Header(None)):
    """Log in with the given (or configured) credentials, reusing the cached token."""
    check_api_key(x_api_key)

    config = request_settings(body.username, body.password)
    target = make_driver(config)
    try:
        ok = await target.login(False, config)
    finally:
        await target.close()

    if not ok:
        return JSONResponse({"success": False, "message": "123pan login failed"}, status_code=401)
    return JSONResponse({"success": True, "message": "123pan login succeeded"})


@app.post("/pan123TestOfflineDownload")
async def test_offline_download(body: OfflineDownloadRequest, x_api_key: Optional[str] = Header(None)):
    """Log in and submit ``magnet`` as an offline download under a unique target name."""
    check_api_key(x_api_key)

    if not body.magnet.strip():
        raise HTTPException(status_code=400, detail="Magnet link is required")

    config = request_settings(body.username, body.password)
    save_path = body.save_path or render_save_path(settings.download_path_template)
    rename = unique_test_name()
    episode = Episode(title=TEST_EPISODE_TITLE, rename=rename)

    target = make_driver(config)
    fd, magnet_file = tempfile.mkstemp(suffix=".magnet")
    os.close(fd)
    try:
        if not await target.login(False, config):
            return JSONResponse({"success": False, "message": "123pan login failed"}, status_code=401)

        async with aiofiles.open(magnet_file, "w") as f:
            await f.write(body.magnet.strip())
        ok = await target.download(TEST_SHOW, episode, save_path, magnet_file, False)
    except Exception as e:
        raise HTTPException(status_code=500, detail=sanitize_error_message(e)) from e
    finally:
        await target.close()
        try:
            os.remove(magnet_file)
        except OSError as e:
            logger.debug(f"Could not remove temp file {magnet_file}: {e}")

    if not ok:
        return JSONResponse(
            {"success": False, "message": "Offline download failed", "save_path": save_path},
            status_code=502,
        )
    logger.info(f"Test download submitted to {save_path} as {rename}")
    return JSONResponse({
        "success": True,
        "message": "Offline task created",
        "save_path": save_path,
        "rename": rename,
    })


# =============================================================================
# Status Endpoints
# =============================================================================


@app.get("/api/tasks")
async def get_tasks(x_api_key: Optional[str] = Header(None)):
    """Current offline tasks in torrent-client form."""
    check_api_key(x_api_key)
    target = get_driver()

    tasks = await target.get_torrents_infos()
    return JSONResponse({
        "count": len(tasks),
        "tasks": [t.to_dict() for t in tasks],
        "tracked": len(target.state.task_records),
    })


@app.get("/api/logs")
async def get_activity_logs(
    limit: int = 100,
    level: Optional[str] = None,
    task_id: Optional[str] = None,
    x_api_key: Optional[str] = Header(None),
):
    """Get activity logs for debugging and monitoring."""
    check_api_key(x_api_key)

    if not activity_log_handler:
        return JSONResponse({"count": 0, "logs": []})

    logs = activity_log_handler.recent(limit=limit, level=level, task_id=task_id)
    return JSONResponse({
        "count": len(logs),
        "logs": logs,
    })


@app.get("/health")
async def health():
    logged_in = bool(shared_state and shared_state.session_cache.get())
    return JSONResponse({
        "status": "ok",
        "version": __version__,
        "logged_in": logged_in,
    })


# =============================================================================
# Main entry point
# =============================================================================


def main():
    """Run the server."""
    import uvicorn
    uvicorn.run(
        "pan123_offline.server:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
