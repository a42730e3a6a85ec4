"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


BACKEND_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = f"sqlite:///{BACKEND_DIR / 'data' / 'rentals.db'}"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # CORS Configuration
    cors_origins: List[str] = ["*"]

    # Scraper Configuration
    scraper_timeout: int = 30
    scraper_max_retries: int = 3
    scraper_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # Bare page names (e.g. "quick-rent.html") are resolved against this directory
    pages_dir: Path = BACKEND_DIR / "pages"

    # Scrape pipeline
    scrape_interval_seconds: float = 300.0
    scrape_batch_size: int = 50
    scrape_strict: bool = False
    scheduler_enabled: bool = True
    scheduler_prevent_overlap: bool = False

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return BACKEND_DIR.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "backend.log"

    @property
    def data_dir(self) -> Path:
        """Get the data directory path."""
        return BACKEND_DIR / "data"

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
