"""Configuration management for Postimages."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def parse_media_feeds(value: str) -> dict[str, str]:
    """Parse ``name=base_url`` pairs separated by commas."""
    feeds: dict[str, str] = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, base_url = entry.partition("=")
        if not sep or not name.strip() or not base_url.strip():
            raise ValueError(f"Invalid media feed entry: {entry!r}")
        feeds[name.strip().lower()] = base_url.strip()
    return feeds


class Config:
    """Application configuration."""

    # Application
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "7675"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:7675").rstrip("/")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./postimages.db")

    # Media Storage
    MEDIA_ROOT: Path = Path(os.getenv("MEDIA_ROOT", "./media"))
    MEDIA_URL: str = os.getenv("MEDIA_URL", "/media").rstrip("/")

    # Images referenced by URL are looked up below this directory
    DOCUMENT_ROOT: Path = Path(os.getenv("DOCUMENT_ROOT", "./public"))

    # Image variants
    IMAGE_QUALITY: int = int(os.getenv("IMAGE_QUALITY", "90"))

    # Media feeds
    MEDIA_FEED_SAFE_MODE: bool = (
        os.getenv("MEDIA_FEED_SAFE_MODE", "true").lower() == "true"
    )
    MEDIA_FEEDS: dict[str, str] = parse_media_feeds(os.getenv("MEDIA_FEEDS", ""))
    MEDIA_FEED_TOKEN: str | None = os.getenv("MEDIA_FEED_TOKEN") or None
    MEDIA_FEED_TIMEOUT: float = float(os.getenv("MEDIA_FEED_TIMEOUT", "10"))

    @classmethod
    def ensure_media_dirs(cls) -> None:
        """Ensure media directories exist."""
        cls.MEDIA_ROOT.mkdir(parents=True, exist_ok=True)
        (cls.MEDIA_ROOT / "uploads").mkdir(exist_ok=True)


config = Config()
