"""
WordFlow - Configuration Module
"""
import os
from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List

# Compute paths at module level for consistency
_BASE_DIR = Path(__file__).parent.parent

# Data directory: use WORDFLOW_DATA_DIR env var, or default to ~/.wordflow
_DATA_DIR = Path(os.environ.get("WORDFLOW_DATA_DIR", Path.home() / ".wordflow"))
_DATABASE_PATH = _DATA_DIR / "wordflow.db"


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "WordFlow"
    DEBUG: bool = False

    # Paths
    BASE_DIR: Path = _BASE_DIR
    DATA_DIR: Path = _DATA_DIR

    # Database - use absolute path for consistent resolution
    DATABASE_URL: str = f"sqlite+aiosqlite:///{_DATABASE_PATH}"

    # Glossary languages: source + two translation targets
    SOURCE_LANG: str = "en"
    TARGET_A_LANG: str = "ms"
    TARGET_B_LANG: str = "zh-CN"

    # Glossary defaults
    DEFAULT_CATEGORY: str = "General"
    DEFAULT_CATEGORIES: List[str] = ["General", "Brand", "Technical", "Product"]

    # Import / resolution
    TERM_WRITE_CONCURRENCY: int = 8  # Parallel store writes per resolution batch
    MAX_IMPORT_ROWS: int = 5000
    IMPORT_SESSION_TTL: int = 1800  # Seconds an unresolved import is kept

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    IMPORT_RATE_LIMIT: str = "20/minute"

    # API Settings
    API_HOST: str = "127.0.0.1"  # Default to localhost; use 0.0.0.0 only behind a proxy
    API_PORT: int = 8888
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
