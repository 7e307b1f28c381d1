"""
Settings for the 123pan offline driver, loaded from the environment.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import MissingCredentialsError


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 123pan credentials (email or phone number)
    pan123_username: str = ""
    pan123_password: str = ""

    # Provider endpoints
    pan123_base_url: str = "https://www.123pan.com"
    pan123_login_url: str = "https://login.123pan.com/api"

    # Session cache
    token_validity_hours: float = 24.0
    token_refresh_lead_seconds: float = 300.0

    # Listing bounds (single page each)
    task_page_size: int = 100
    folder_page_size: int = 100
    empty_check_page_size: int = 10

    # Settle delays for the eventually-consistent file tree (seconds)
    folder_settle_delay: float = 0.5
    move_settle_delay: float = 0.5
    task_lookup_delay: float = 2.0

    # Save path used by the test-download endpoint
    download_path_template: str = "/"

    # Admin server
    host: str = "0.0.0.0"
    port: int = 8080
    api_key: Optional[str] = None
    poll_interval: float = 60.0

    # Logging settings
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = "text"  # "text" or "json"
    log_max_size_mb: int = 10
    log_backup_count: int = 5
    activity_log_size: int = 1000

    @property
    def token_validity_seconds(self) -> float:
        return self.token_validity_hours * 3600

    def with_credentials(self, username: Optional[str], password: Optional[str]) -> "Settings":
        """Return a copy with the given credentials, keeping the current ones where blank."""
        update = {}
        if username:
            update["pan123_username"] = username
        if password:
            update["pan123_password"] = password
        return self.model_copy(update=update)

    def require_credentials(self) -> "Settings":
        """Return self, or raise ``MissingCredentialsError`` when username or password is blank."""
        missing = [
            name for name, value in (
                ("PAN123_USERNAME", self.pan123_username),
                ("PAN123_PASSWORD", self.pan123_password),
            )
            if not value
        ]
        if missing:
            raise MissingCredentialsError(
                "123pan credentials are not configured",
                details=f"set {', '.join(missing)}",
            )
        return self
