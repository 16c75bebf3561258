"""
Shared helpers and configuration for catgraph services.
"""

from __future__ import annotations

from contextlib import contextmanager
from functools import wraps
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

import core.config as config
from core.errors import Conflict, ServiceError, StorageFailure, ValidationIssue
from core.validators import (
    clean_optional_text as _clean_optional_text,
    normalize_tags as _normalize_tags,
    validate_coordinate as _validate_coordinate,
    validate_email as _validate_email,
    validate_limit as _validate_limit,
    validate_optional_text as _validate_optional_text,
    validate_password_hash as _validate_password_hash,
    validate_required_text as _validate_required_text,
    validate_session_token as _validate_session_token,
    validate_username as _validate_username,
    validate_uuid as _validate_uuid,
)

# =============================================================================
# Configuration
# =============================================================================

logger = config.logger

DEFAULT_PAGE_LIMIT = config.DEFAULT_PAGE_LIMIT
MAX_PAGE_LIMIT = config.MAX_PAGE_LIMIT
FOLLOW_PAGE_LIMIT = config.FOLLOW_PAGE_LIMIT
COLLECTION_PAGE_LIMIT = config.COLLECTION_PAGE_LIMIT
PROFILE_COLLECTIONS_LIMIT = config.PROFILE_COLLECTIONS_LIMIT

MAX_BIO_LENGTH = config.MAX_BIO_LENGTH
MAX_LOCATION_LENGTH = config.MAX_LOCATION_LENGTH
MAX_CAT_NAME_LENGTH = config.MAX_CAT_NAME_LENGTH
MAX_DESCRIPTION_LENGTH = config.MAX_DESCRIPTION_LENGTH
MAX_COLLECTION_NAME_LENGTH = config.MAX_COLLECTION_NAME_LENGTH
MAX_COMMENT_LENGTH = config.MAX_COMMENT_LENGTH
MAX_IMAGE_BYTES = config.MAX_IMAGE_BYTES

SessionFactory = Callable[[], DBSession]


# =============================================================================
# Transactions
# =============================================================================

@contextmanager
def atomic(
    db: DBSession,
    *,
    operation: str,
    conflict_message: Optional[str] = None,
) -> Iterator[DBSession]:
    """
    Run the enclosed statements as one transaction.

    Commits on success and rolls back on any failure. SQLAlchemy errors are
    converted to StorageFailure, or to Conflict when a unique constraint
    fires and a conflict message was supplied.
    """
    try:
        yield db
        db.commit()
    except ServiceError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        if conflict_message:
            raise Conflict(conflict_message) from exc
        logger.warning(
            "storage_integrity_error",
            extra={"operation": operation, "error": exc.__class__.__name__},
        )
        raise StorageFailure(f"Failed to {operation}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "storage_failure",
            extra={"operation": operation, "error": exc.__class__.__name__},
        )
        raise StorageFailure(f"Failed to {operation}") from exc


@contextmanager
def reading(db: DBSession, *, operation: str) -> Iterator[DBSession]:
    """Convert SQLAlchemy errors raised by read queries into StorageFailure."""
    try:
        yield db
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "storage_failure",
            extra={"operation": operation, "error": exc.__class__.__name__},
        )
        raise StorageFailure(f"Failed to {operation}") from exc


# =============================================================================
# Helper Functions
# =============================================================================

def _tool_error_payload(tool_name: str, exc: ServiceError) -> dict:
    payload = {
        "status": "error",
        "error_type": exc.error_kind,
        "tool": tool_name,
        "message": str(exc),
    }
    if exc.field:
        payload["field"] = exc.field
    if exc.retryable:
        payload["retryable"] = True
    return payload


def _log_service_error(tool_name: str, exc: ServiceError, warn: bool = False) -> None:
    payload = {
        "tool": tool_name,
        "field": exc.field,
        "error_type": getattr(exc, "error_type", exc.error_kind),
        "detail": str(exc),
    }
    if warn:
        logger.warning("tool_service_error", extra=payload)
    else:
        logger.info("tool_service_error", extra=payload)


def _tool_error_handler(fn: Callable[..., dict]) -> Callable[..., dict]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ServiceError as exc:
            _log_service_error(fn.__name__, exc, warn=exc.retryable)
            return _tool_error_payload(fn.__name__, exc)
        except ValueError as exc:
            issue = ValidationIssue(str(exc), field="unknown", error_type="value_error")
            _log_service_error(fn.__name__, issue, warn=True)
            return _tool_error_payload(fn.__name__, issue)
        except Exception:
            logger.exception("tool_internal_error", extra={"tool": fn.__name__})
            return {
                "status": "error",
                "error_type": "internal_error",
                "tool": fn.__name__,
                "message": "Internal server error",
            }
    return wrapper


def service_tool(fn: Callable[..., dict]) -> Callable[..., dict]:
    return _tool_error_handler(fn)


def is_error(result: dict) -> bool:
    return result.get("status") == "error"


def isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None
