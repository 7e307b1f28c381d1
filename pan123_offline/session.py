"""
Session management: credential login with a process-wide token cache.
"""

import logging
import time
from typing import Optional

from .api import Pan123Api
from .store import Session, SessionCache

logger = logging.getLogger(__name__)


def is_email(username: str) -> bool:
    return "@" in username


def credential_body(username: str, password: str) -> dict:
    """Build the sign-in body; email and phone-number logins use different fields."""
    if is_email(username):
        return {"mail": username, "password": password, "type": 2}
    return {"passport": username, "password": password, "remember": True}


class SessionManager:
    """
    Owns login and token validation for one API client, backed by a shared cache.

    A cached token is reused until ``refresh_lead`` seconds before its
    recorded expiry; after that a full login is required.
    """

    def __init__(
        self,
        api: Pan123Api,
        cache: SessionCache,
        validity_seconds: float = 24 * 3600,
        refresh_lead: float = 300.0,
    ):
        self._api = api
        self._cache = cache
        self.validity_seconds = validity_seconds
        self.refresh_lead = refresh_lead

    async def login(self, force_refresh: bool, username: str, password: str) -> bool:
        """Log in, reusing a verified cached token unless ``force_refresh``. Never raises."""
        if not username or not password:
            logger.warning("123pan credentials are not configured")
            return False

        try:
            if not force_refresh:
                cached = self._cache.get()
                if cached and cached.username == username:
                    if cached.is_usable(self.refresh_lead):
                        self._api.token = cached.token
                        if await self.verify_token():
                            logger.debug("Reusing cached 123pan token")
                            return True
                        logger.info("Cached 123pan token rejected, logging in again")
                    else:
                        logger.info("Cached 123pan token is about to expire, logging in again")
                    self._cache.invalidate()

            return await self._sign_in(username, password)

        except Exception as e:
            logger.error(f"123pan login failed: {e}")
            return False

    async def _sign_in(self, username: str, password: str) -> bool:
        logger.info("Logging in to 123pan...")
        try:
            token = await self._api.sign_in(credential_body(username, password))
        except Exception as e:
            logger.error(f"123pan login failed: {e}")
            return False

        self._api.token = token
        self._cache.set(Session(
            username=username,
            token=token,
            expires_at=time.time() + self.validity_seconds,
        ))
        logger.info("123pan login succeeded, token cached")
        return True

    async def verify_token(self) -> bool:
        """Check the current token with an authenticated call."""
        try:
            await self._api.user_info()
            return True
        except Exception as e:
            logger.debug(f"Token verification failed: {e}")
            return False

    def ensure_token(self, username: Optional[str] = None) -> bool:
        """
        Attach the cached token to the API client without a network call.

        Returns False when no usable session is cached (absent, for another
        user, or within the refresh lead of expiry); the caller must log in.
        """
        cached = self._cache.get()
        if not cached or (username and cached.username != username):
            return False
        if not cached.is_usable(self.refresh_lead):
            return False
        if self._api.token != cached.token:
            logger.debug("Restored 123pan token from cache")
            self._api.token = cached.token
        return True
