"""Project configuration read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Project structure
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "dev_cache"

DEFAULT_SEARCH_MODEL = "gpt-4o"
DEFAULT_SEARCH_TIMEOUT = 15.0


def _env_flag(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    search_model: str = DEFAULT_SEARCH_MODEL
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT
    catalog_backend: str = "memory"
    catalog_db_path: Path = DATA_DIR / "catalog.db"
    catalog_seed: str = "sample"
    catalog_seed_key: str = "catalog.json"
    minio_endpoint: Optional[str] = None
    minio_access_key: Optional[str] = None
    minio_secret_key: Optional[str] = None
    minio_bucket_name: Optional[str] = None
    minio_secure: bool = True
    log_level: str = "INFO"
    web_port: int = 8000

    @property
    def external_ranking_enabled(self) -> bool:
        return bool(self.openai_api_key)


def load_settings() -> Settings:
    """Build settings from the process environment (and a .env file if present)."""
    load_dotenv()

    backend = os.getenv("CATALOG_BACKEND", "memory").lower()
    if backend not in ("memory", "sqlite"):
        raise RuntimeError(f"CATALOG_BACKEND must be 'memory' or 'sqlite', got {backend!r}")

    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        search_model=os.getenv("SEARCH_MODEL", DEFAULT_SEARCH_MODEL),
        search_timeout=float(os.getenv("SEARCH_TIMEOUT_SECONDS", str(DEFAULT_SEARCH_TIMEOUT))),
        catalog_backend=backend,
        catalog_db_path=Path(os.getenv("CATALOG_DB_PATH", str(DATA_DIR / "catalog.db"))),
        catalog_seed=os.getenv("CATALOG_SEED", "sample"),
        catalog_seed_key=os.getenv("CATALOG_SEED_KEY", "catalog.json"),
        minio_endpoint=os.getenv("MINIO_ENDPOINT"),
        minio_access_key=os.getenv("MINIO_ACCESS_KEY"),
        minio_secret_key=os.getenv("MINIO_SECRET_KEY"),
        minio_bucket_name=os.getenv("MINIO_BUCKET_NAME"),
        minio_secure=_env_flag("MINIO_SECURE", default=True),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        web_port=int(os.getenv("WEB_PORT", "8000")),
    )
