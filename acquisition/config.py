"""Settings for acquisition entry points, read from the environment.

Entry points call load_dotenv() first, so values may also come from a .env file.
"""
import os
from dataclasses import dataclass
from typing import Dict, Optional


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AcquisitionSettings:
    """Configuration shared by the CLI and its collaborators."""
    github_host: str = "github.com"
    default_branch: str = "main"
    github_token: Optional[str] = None
    temp_dir: Optional[str] = None
    chunk_size: int = 64 * 1024
    content_folder_name: str = "githubcontent"
    attempts: int = 1
    record_attempts: bool = False

    @classmethod
    def from_env(cls) -> 'AcquisitionSettings':
        """Build settings from environment variables."""
        return cls(
            github_host=os.getenv("GITHUB_HOST", "github.com"),
            default_branch=os.getenv("DEFAULT_BRANCH", "main"),
            github_token=os.getenv("GITHUB_TOKEN") or None,
            temp_dir=os.getenv("ACQUISITION_TEMP_DIR") or None,
            chunk_size=int(os.getenv("DOWNLOAD_CHUNK_SIZE", str(64 * 1024))),
            content_folder_name=os.getenv("CONTENT_FOLDER_NAME", "githubcontent"),
            attempts=int(os.getenv("ACQUIRE_ATTEMPTS", "1")),
            record_attempts=_env_flag("RECORD_ATTEMPTS")
        )

    def request_headers(self) -> Dict[str, str]:
        """Headers the caller attaches to archive requests."""
        if not self.github_token:
            return {}
        return {"Authorization": f"Bearer {self.github_token}"}


def get_connection_string() -> str:
    """Build PostgreSQL connection string from environment variables."""
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    database = os.getenv("POSTGRES_DB", "repository_acquisition")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")

    return f"host={host} port={port} dbname={database} user={user} password={password}"
