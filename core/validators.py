"""
Shared validation helpers for catgraph services.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from core.config import (
    MAX_EMAIL_LENGTH,
    MAX_TAG_ITEMS,
    MAX_TAG_LENGTH,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
)
from core.errors import AuthError, ValidationIssue

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SHA256_HEX_RE = re.compile(r"^[a-fA-F0-9]{64}$")
_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_limit(value: int, field: str, max_value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationIssue(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value <= 0 or value > max_value:
        raise ValidationIssue(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")


def validate_username(value: Optional[str], field: str = "username") -> None:
    if not value or not isinstance(value, str):
        raise ValidationIssue(f"Missing {field}", field=field, error_type="required")
    if len(value) < USERNAME_MIN_LENGTH or len(value) > USERNAME_MAX_LENGTH:
        raise ValidationIssue(
            f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters long",
            field=field,
            error_type="out_of_range",
        )


def validate_email(value: Optional[str], field: str = "email") -> None:
    if not isinstance(value, str) or not _EMAIL_RE.match(value) or len(value) > MAX_EMAIL_LENGTH:
        raise ValidationIssue("Invalid email address", field=field, error_type="invalid_format")


def validate_password_hash(value: Optional[str], field: str = "password_hash") -> None:
    if not isinstance(value, str) or not _SHA256_HEX_RE.match(value):
        raise ValidationIssue(
            f"Invalid {field} (expected sha256 hex string)",
            field=field,
            error_type="invalid_format",
        )


def validate_session_token(value: Optional[str]) -> None:
    if not value or not isinstance(value, str):
        raise AuthError("Missing session_token", field="session_token")


def validate_uuid(value: Optional[str], field: str) -> None:
    if not value:
        raise ValidationIssue(f"Missing {field}", field=field, error_type="required")
    if not isinstance(value, str) or not _UUID_RE.match(value):
        raise ValidationIssue(f"Invalid {field}", field=field, error_type="invalid_id")


def validate_coordinate(value: Optional[float], field: str, bound: float) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationIssue(f"{field} must be a number", field=field, error_type="invalid_type")
    if value < -bound or value > bound:
        raise ValidationIssue(f"{field} must be between -{bound} and {bound}", field=field, error_type="out_of_range")


def normalize_tags(values: Optional[Sequence[str]], field: str = "tags") -> list[str]:
    """Trim, lowercase and de-duplicate tags while keeping their order."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")
    if len(values) > MAX_TAG_ITEMS:
        raise ValidationIssue(f"{field} exceeds max items {MAX_TAG_ITEMS}", field=field, error_type="max_items")
    tags: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise ValidationIssue(f"{field} must contain only strings", field=field, error_type="invalid_type")
        tag = item.strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationIssue(
                f"{field} item exceeds max length {MAX_TAG_LENGTH}",
                field=field,
                error_type="max_length",
            )
        if tag not in tags:
            tags.append(tag)
    return tags


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None
