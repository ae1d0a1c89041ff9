from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env if present
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY: str = os.getenv("SECRET_KEY", os.urandom(32).hex())

    # Database
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", "sqlite:///taxonomy.db")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    # Category hierarchy
    # Deepest level a category may be created or moved to. The ancestor walk
    # uses the same bound, so a longer chain can only come from corrupt data.
    CATEGORY_MAX_DEPTH: int = int(os.getenv("CATEGORY_MAX_DEPTH", "256"))
    # Row-lock the moving category, the candidate parent's ancestors and the
    # moved subtree for the duration of the transaction (ignored by SQLite)
    CATEGORY_LOCK_ANCESTORS: bool = _env_bool("CATEGORY_LOCK_ANCESTORS", "true")
    CATEGORY_PAGE_SIZE_MAX: int = 100

    # Rate limiting
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "100 per minute")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask env
    ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = ENV != "production"
