"""
Configuration management for the TeamTrack API and sync client.
"""

from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List


DEFAULT_TEAM_MEMBERS = ["Akhilesh", "Pravallika", "Chandu", "Sharanya"]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Paths
    workspace_dir: str = "../workspace"
    document_file: str = "workspace.json"
    client_state_dir: str = "~/.teamtrack"

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    dev_mode: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Shared secrets (one per role). These are literal passcodes compared for
    # equality, not credentials: anyone holding one can overwrite the document.
    lead_passcode: str = "admin123"
    member_passcode: str = "team2024"

    # Roster
    default_team_members: List[str] = list(DEFAULT_TEAM_MEMBERS)
    primary_member: str = DEFAULT_TEAM_MEMBERS[0]
    protect_primary_member: bool = True

    # Business rules
    require_blocker_disclosure: bool = False

    # Sync client
    remote_url: str = "http://localhost:5000"
    poll_interval_seconds: float = 5.0
    request_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        env_prefix = "TEAMTRACK_"

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_workspace_path(subpath: str = "", settings: Settings = None) -> Path:
    """Get absolute path within workspace directory."""
    settings = settings or get_settings()
    base = Path(settings.workspace_dir).resolve()
    if subpath:
        return base / subpath
    return base


def get_client_state_path(settings: Settings = None) -> Path:
    """Get the directory where a client caches its session."""
    settings = settings or get_settings()
    return Path(settings.client_state_dir).expanduser().resolve()
