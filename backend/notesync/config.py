"""Configuration from environment (no hardcoded secrets)."""

from pathlib import Path
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Backend settings from env."""

    model_config = SettingsConfigDict(env_prefix="NOTESYNC_", extra="ignore")

    # Database: database_url wins; otherwise SQLite at db_path
    db_path: Path = Path("/data/notesync.db")
    database_url: str = ""

    # JWT
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7

    # First admin (bootstrap)
    admin_email: str = ""
    admin_initial_password: str = ""

    # CORS: set as comma-separated string in env (e.g. https://notes.example.com)
    # so pydantic-settings does not try to JSON-decode it
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list (split on comma)."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or [
            "http://localhost:3000"
        ]

    @property
    def sqlalchemy_url(self) -> str:
        """Async SQLAlchemy URL (sqlite+aiosqlite unless database_url is set)."""
        if self.database_url.strip():
            return self.database_url.strip()
        return f"sqlite+aiosqlite:///{self.db_path}"

    # Sync engine
    # increment: version N+1 per write; fixed: always version 1 (legacy behavior)
    version_mode: Literal["increment", "fixed"] = "increment"
    async_metadata: bool = True
    max_upload_bytes: int = 32 * 1024 * 1024
    default_sync_operations_limit: int = 50
    # SQLite only: how long a writer waits for the database lock
    sqlite_busy_timeout_ms: int = 30000

    # Server
    port: int = 8090

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = "INFO"
    log_file: str = ""


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
