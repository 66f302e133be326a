"""
Runtime configuration.

Values come from the environment, optionally seeded from a ``.env`` file in
the working directory.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


DEFAULT_STORAGE_PATH = Path.home() / ".boutique" / "storage.json"


class Settings(BaseModel):
    api_url: str = Field(default="http://localhost:5000", description="REST API base URL")
    storage_path: Optional[Path] = Field(
        default=DEFAULT_STORAGE_PATH,
        description="Client-side persisted state; None keeps it in memory",
    )
    http_timeout: float = Field(default=10.0, gt=0)
    mongo_uri: str = Field(default="mongodb://localhost:27017/boutique")
    uploads_dir: Path = Field(default=Path("uploads"))
    profile_stats_attempts: int = Field(default=3, ge=1)
    retry_backoff: float = Field(default=1.0, ge=0, description="Seconds per attempt of linear backoff")


def get_settings() -> Settings:
    """Build settings from the environment (after loading ``.env``)."""
    load_dotenv()
    storage_path = os.getenv("BOUTIQUE_STORAGE_PATH")
    return Settings(
        api_url=os.getenv("BOUTIQUE_API_URL", "http://localhost:5000"),
        storage_path=Path(storage_path) if storage_path else DEFAULT_STORAGE_PATH,
        http_timeout=float(os.getenv("BOUTIQUE_HTTP_TIMEOUT", "10")),
        mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017/boutique"),
        uploads_dir=Path(os.getenv("UPLOADS_DIR", "uploads")),
    )
