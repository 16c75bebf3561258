"""
Shared configuration for catgraph core.
"""

from __future__ import annotations

import logging
import os

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("catgraph")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _derive_effective_backend(db_backend: str) -> str:
    return db_backend if db_backend in {"postgres", "sqlite"} else "postgres"


# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "postgres").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "/data/catgraph.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_BACKEND_EFFECTIVE = _derive_effective_backend(DB_BACKEND)
SQLITE_BUSY_TIMEOUT_SECONDS = _get_float("SQLITE_BUSY_TIMEOUT_SECONDS", 30.0)

# Database initialization controls
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Sessions
SESSION_TOKEN_BYTES = _get_int("CATGRAPH_SESSION_TOKEN_BYTES", 32)

# Pagination
DEFAULT_PAGE_LIMIT = _get_int("CATGRAPH_DEFAULT_PAGE_LIMIT", 20)
MAX_PAGE_LIMIT = _get_int("CATGRAPH_MAX_PAGE_LIMIT", 100)
FOLLOW_PAGE_LIMIT = _get_int("CATGRAPH_FOLLOW_PAGE_LIMIT", 25)
COLLECTION_PAGE_LIMIT = _get_int("CATGRAPH_COLLECTION_PAGE_LIMIT", 10)
PROFILE_COLLECTIONS_LIMIT = _get_int("CATGRAPH_PROFILE_COLLECTIONS_LIMIT", 10)

# Request/input limits
USERNAME_MIN_LENGTH = _get_int("CATGRAPH_USERNAME_MIN_LENGTH", 4)
USERNAME_MAX_LENGTH = _get_int("CATGRAPH_USERNAME_MAX_LENGTH", 32)
MAX_EMAIL_LENGTH = _get_int("CATGRAPH_MAX_EMAIL_LENGTH", 255)
MAX_BIO_LENGTH = _get_int("CATGRAPH_MAX_BIO_LENGTH", 500)
MAX_LOCATION_LENGTH = _get_int("CATGRAPH_MAX_LOCATION_LENGTH", 100)
MAX_CAT_NAME_LENGTH = _get_int("CATGRAPH_MAX_CAT_NAME_LENGTH", 100)
MAX_DESCRIPTION_LENGTH = _get_int("CATGRAPH_MAX_DESCRIPTION_LENGTH", 1000)
MAX_TAG_ITEMS = _get_int("CATGRAPH_MAX_TAG_ITEMS", 10)
MAX_TAG_LENGTH = _get_int("CATGRAPH_MAX_TAG_LENGTH", 30)
MAX_COLLECTION_NAME_LENGTH = _get_int("CATGRAPH_MAX_COLLECTION_NAME_LENGTH", 100)
MAX_COMMENT_LENGTH = _get_int("CATGRAPH_MAX_COMMENT_LENGTH", 1000)

# Image storage
IMAGE_STORE_DIR = os.environ.get("IMAGE_STORE_DIR", "/data/images")
MAX_IMAGE_BYTES = _get_int("MAX_IMAGE_BYTES", 5_000_000)


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL, DB_BACKEND_EFFECTIVE

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        url_lower = DATABASE_URL.lower()
        is_sqlite_url = url_lower.startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    if SESSION_TOKEN_BYTES < 16:
        errors.append("CATGRAPH_SESSION_TOKEN_BYTES must be at least 16")

    if USERNAME_MIN_LENGTH <= 0 or USERNAME_MIN_LENGTH > USERNAME_MAX_LENGTH:
        errors.append("CATGRAPH_USERNAME_MIN_LENGTH must be between 1 and CATGRAPH_USERNAME_MAX_LENGTH")

    for name, value in (
        ("CATGRAPH_DEFAULT_PAGE_LIMIT", DEFAULT_PAGE_LIMIT),
        ("CATGRAPH_FOLLOW_PAGE_LIMIT", FOLLOW_PAGE_LIMIT),
        ("CATGRAPH_COLLECTION_PAGE_LIMIT", COLLECTION_PAGE_LIMIT),
        ("CATGRAPH_PROFILE_COLLECTIONS_LIMIT", PROFILE_COLLECTIONS_LIMIT),
    ):
        if value <= 0 or value > MAX_PAGE_LIMIT:
            errors.append(f"{name} must be between 1 and CATGRAPH_MAX_PAGE_LIMIT")

    DB_BACKEND_EFFECTIVE = _derive_effective_backend(DB_BACKEND)

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
